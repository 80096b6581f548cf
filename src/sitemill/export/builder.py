"""Builder — materialize the resource list into the build directory.

Pipeline order:
    1. Run before-build hooks
    2. Snapshot existing output files as cleaning candidates (if cleaning)
    3. Render stylesheets, then rescan sources and recompute the sitemap
       (generators may inspect the half-built tree and add resources)
    4. Render everything else: images and fonts, then scripts, then the rest
    5. Delete cleaning candidates that were not produced (if cleaning)
    6. Run after-build hooks

Every output file ends up as exactly one ``BuildEvent``: created, updated,
identical, deleted or error.  Identical output is never rewritten.  A
resource that fails is reported and skipped; the build carries on and
``run()`` returns False at the end.
"""

from __future__ import annotations

import filecmp
import fnmatch
import os
import shutil
import tempfile
import time
import traceback
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from sitemill._errors import ConfigError, RenderError
from sitemill.observability.events import BuildEvent
from sitemill.rendering import encode_output
from sitemill.util import all_files_under, is_hidden_output

if TYPE_CHECKING:
    from sitemill._types import BuildEventKind
    from sitemill.config import SitemillConfig
    from sitemill.observability.collector import Collector
    from sitemill.sitemap.resource import Resource
    from sitemill.sitemap.store import Store
    from sitemill.sources.watcher import Sources

# Sort order: images, fonts, js/css and finally everything else.
SORT_ORDER: tuple[str, ...] = (
    ".png", ".jpeg", ".jpg", ".gif", ".bmp", ".svg", ".svgz", ".ico",
    ".woff", ".otf", ".ttf", ".eot", ".js", ".css",
)
_UNLISTED = len(SORT_ORDER) + 100

type BuildHook = Callable[[Builder], object]
type BuildEventCallback = Callable[[BuildEvent], object]


def sort_key(ext: str) -> int:
    """Position of an extension in the build order; unlisted sort last."""
    try:
        return SORT_ORDER.index(ext)
    except ValueError:
        return _UNLISTED


class Builder:
    """Builds every resource of a store into the build directory.

    Args:
        store: The sitemap store to build.
        sources: The watcher, rescanned after stylesheets are rendered.
        config: Site configuration (source and build directories).
        glob: Only build resources whose destination path matches.
        clean: Remove output files this build did not produce.
        collector: Receives every ``BuildEvent`` and a ``BuildFinished``.

    Raises:
        ConfigError: The build directory is the source directory or one of
            its ancestors.

    """

    def __init__(
        self,
        store: Store,
        sources: Sources,
        config: SitemillConfig,
        *,
        glob: str | None = None,
        clean: bool = True,
        collector: Collector | None = None,
    ) -> None:
        self._store = store
        self._sources = sources
        self._source_dir = config.source_path
        self._build_dir = config.build_path

        source_resolved = self._source_dir.resolve()
        build_resolved = self._build_dir.resolve()
        if build_resolved == source_resolved or build_resolved in source_resolved.parents:
            msg = (
                f"build_dir ({self._build_dir}) cannot be a parent of "
                f"source_dir ({self._source_dir})"
            )
            raise ConfigError(msg)

        self._glob = glob
        self._cleaning = clean
        self._collector = collector

        self._before_build: list[BuildHook] = []
        self._after_build: list[BuildHook] = []
        self._event_callbacks: list[BuildEventCallback] = []

        self._has_error = False
        self._events: dict[str, list[Path]] = {}
        self._to_clean: set[Path] = set()

    @property
    def build_dir(self) -> Path:
        return self._build_dir

    @property
    def store(self) -> Store:
        return self._store

    @property
    def events(self) -> dict[str, list[Path]]:
        """Output paths per event kind from the last run."""
        return {kind: list(paths) for kind, paths in self._events.items()}

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def before_build(self, callback: BuildHook) -> None:
        """Run ``callback(builder)`` before anything is built."""
        self._before_build.append(callback)

    def after_build(self, callback: BuildHook) -> None:
        """Run ``callback(builder)`` after everything is built and cleaned."""
        self._after_build.append(callback)

    def on_build_event(self, callback: BuildEventCallback) -> list[BuildEventCallback]:
        """Subscribe to every build outcome."""
        self._event_callbacks.append(callback)
        return self._event_callbacks

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self) -> bool:
        """Run the build.

        Returns:
            True when no resource produced an error.

        """
        start = time.perf_counter()
        self._has_error = False
        self._events = {}

        for hook in self._before_build:
            hook(self)

        if self._cleaning:
            self.queue_current_paths()

        self.prerender_css()
        self.output_files()

        if self._cleaning:
            self.clean()

        for hook in self._after_build:
            hook(self)

        success = not self._has_error
        if self._collector is not None:
            self._collector.record_build_finished(
                success,
                {kind: len(paths) for kind, paths in self._events.items()},
                duration_ms=(time.perf_counter() - start) * 1000,
            )
        return success

    def prerender_css(self) -> list[Resource]:
        """Build stylesheets first, then pick up anything they caused."""
        css_files = [r for r in self._store.resources() if r.ext == ".css"]
        for resource in css_files:
            self.output_resource(resource)

        self._sources.find_new_files()
        self._store.ensure_updated()

        return css_files

    def output_files(self) -> list[Resource]:
        """Build every non-stylesheet resource in extension order."""
        resources = sorted(self._store.resources(), key=lambda r: sort_key(r.ext))
        selected = [
            r for r in resources
            if r.ext != ".css"
            and (self._glob is None or fnmatch.fnmatch(r.destination_path, self._glob))
        ]
        for resource in selected:
            self.output_resource(resource)
        return selected

    # ------------------------------------------------------------------
    # Per-resource output
    # ------------------------------------------------------------------

    def output_path_for(self, resource: Resource) -> Path:
        return self._build_dir / resource.destination_path.replace("%20", " ")

    def output_resource(self, resource: Resource) -> None:
        """Copy or render one resource; failures are reported, not raised."""
        output_file = self.output_path_for(resource)

        try:
            if resource.binary():
                source = resource.source_file
                if source is None:
                    msg = f"{resource!r} is binary but has no source file"
                    raise RenderError(msg)
                self.export_file(output_file, source.full_path)
            else:
                self.export_file(output_file, resource.render())
        except Exception as exc:
            self._has_error = True
            trace = exc.trace if isinstance(exc, RenderError) and exc.trace else traceback.format_exc()
            self.trigger("error", output_file, f"{exc}\n{trace}")
            return

        if self._cleaning:
            self._to_clean.discard(output_file)

    def export_file(self, output_file: Path, source: Path | str | bytes) -> BuildEventKind:
        """Place ``source`` at ``output_file`` unless it is already there.

        ``source`` is either a file to copy or rendered content.

        """
        if isinstance(source, Path):
            mode = self.which_mode(output_file, source)
            if mode != "identical":
                output_file.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, output_file)
        else:
            data = encode_output(source) if isinstance(source, str) else source
            mode = self.which_mode_for_bytes(output_file, data)
            if mode != "identical":
                output_file.parent.mkdir(parents=True, exist_ok=True)
                self._write_atomic(output_file, data)

        self.trigger(mode, output_file)
        return mode

    @staticmethod
    def which_mode(output_file: Path, source: Path) -> BuildEventKind:
        """Classify copying ``source`` over ``output_file``."""
        if not output_file.exists():
            return "created"
        return "identical" if filecmp.cmp(source, output_file, shallow=False) else "updated"

    @staticmethod
    def which_mode_for_bytes(output_file: Path, data: bytes) -> BuildEventKind:
        """Classify writing ``data`` over ``output_file``."""
        if not output_file.exists():
            return "created"
        if output_file.stat().st_size != len(data):
            return "updated"
        return "identical" if output_file.read_bytes() == data else "updated"

    @staticmethod
    def _write_atomic(output_file: Path, data: bytes) -> None:
        """Stage ``data`` next to ``output_file`` and move it into place."""
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{output_file.name}.", suffix=".tmp", dir=output_file.parent,
        )
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp_name, output_file)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    # ------------------------------------------------------------------
    # Cleaning
    # ------------------------------------------------------------------

    def queue_current_paths(self) -> None:
        """Remember every existing output file as a deletion candidate.

        Dotfiles are never candidates, except ``.htaccess``/``.htpasswd``.

        """
        self._to_clean = {
            path
            for path in all_files_under(self._build_dir)
            if not is_hidden_output(path.relative_to(self._build_dir))
        }

    def clean(self) -> list[Path]:
        """Delete output files this build did not produce."""
        removed: list[Path] = []
        for path in sorted(self._to_clean):
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                self._has_error = True
                self.trigger("error", path, f"Cannot remove stale file: {exc}")
                continue
            removed.append(path)
            self.trigger("deleted", path)
        self._to_clean = set()
        return removed

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def trigger(self, kind: BuildEventKind, target: Path, extra: str | None = None) -> None:
        """Record an outcome and hand it to every subscriber."""
        self._events.setdefault(kind, []).append(target)

        event = BuildEvent(kind=kind, target=str(target), extra=extra)
        for callback in list(self._event_callbacks):
            callback(event)
        if self._collector is not None:
            self._collector.record_build(event)
