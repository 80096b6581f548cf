"""On-disk manipulator — one resource per file in the source directory.

Also keeps the store in step with the watcher: every touched or removed
file marks the store dirty, and in dev mode (once the site is ready) the
list is recomputed right away so the next read is cheap.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from sitemill.sitemap.resource import Resource
from sitemill.util import DOTFILE_ALLOWLIST

if TYPE_CHECKING:
    from sitemill.sitemap.store import ResourceList, Store
    from sitemill.sources.file import SourceFile
    from sitemill.sources.watcher import Sources

type SitemapMatcher = Callable[[SourceFile], bool]


def _is_source_dotfile(file: SourceFile) -> bool:
    if file.relative_path.name in DOTFILE_ALLOWLIST:
        return False
    return any(part.startswith(".") for part in file.relative_path.parts)


def _is_partial(file: SourceFile) -> bool:
    return file.relative_path.name.startswith("_")


def _layout_matcher(layouts_dir: str) -> SitemapMatcher:
    prefix = layouts_dir.strip("/") + "/"

    def is_layout(file: SourceFile) -> bool:
        return file.posix_path.startswith(prefix)

    return is_layout


class OnDisk:
    """Injects a resource for every sitemap-worthy source file.

    Files matched by a sitemap matcher (dotfiles, partials, layouts) stay
    known to the watcher but never become resources.

    Args:
        sources: The watcher; only ``"source"`` roots feed resources.
        store: The store to inject into and invalidate.
        build_mode: Never recompute eagerly; the builder drives the store.
        layouts_dir: Source-relative directory holding layouts.

    """

    def __init__(
        self,
        sources: Sources,
        store: Store,
        *,
        build_mode: bool = False,
        layouts_dir: str = "layouts",
    ) -> None:
        self._sources = sources
        self._store = store
        self._build_mode = build_mode
        self.waiting_for_ready = True

        self._matchers: dict[str, SitemapMatcher] = {
            "source_dotfiles": _is_source_dotfile,
            "partials": _is_partial,
            "layout": _layout_matcher(layouts_dir),
        }

        sources.changed(self.touch_file)
        sources.deleted(self.remove_file)

    def ready(self) -> None:
        """Mark the site ready and make the resource list current."""
        self.waiting_for_ready = False
        self._store.ensure_updated()

    def add_matcher(self, name: str, matcher: SitemapMatcher) -> None:
        """Keep matching files out of the sitemap."""
        self._matchers[name] = matcher
        self._store.invalidate("sitemap_matcher")

    def ignored(self, file: SourceFile) -> bool:
        return any(matcher(file) for matcher in list(self._matchers.values()))

    def touch_file(self, file: SourceFile) -> None:
        """A file was added or updated."""
        if self.ignored(file):
            return

        # Any touched file may matter to some manipulator, even when it
        # never becomes a resource itself.
        self._store.invalidate("touched_file")
        self._refresh()

    def remove_file(self, file: SourceFile) -> None:
        """A file was removed."""
        if self.ignored(file):
            return

        self._store.invalidate("removed_file")
        self._refresh()

    def _refresh(self) -> None:
        if self.waiting_for_ready or self._build_mode:
            return
        self._store.ensure_updated()

    def files_for_sitemap(self) -> list[SourceFile]:
        """Source files that become resources, sorted by relative path."""
        files = [f for f in self._sources.by_type("source").files() if not self.ignored(f)]
        return sorted(files, key=lambda f: f.posix_path)

    def manipulate_resource_list(self, resources: ResourceList) -> ResourceList:
        return resources + [
            Resource(self._store, self._store.extensionless_path(file.posix_path), file)
            for file in self.files_for_sitemap()
        ]
