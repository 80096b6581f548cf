"""Sources — change detection over every watched directory.

Owns the global ignore table and the watched roots, and fans file
notifications from every root out to subscribers:

- ``changed`` callbacks get a ``SourceFile`` each time a file is added or
  updated (or re-announced by a poll)
- ``deleted`` callbacks get a ``SourceFile`` when a known file disappears

In build mode nothing listens in the background; ``find_new_files()``
is the only way changes are noticed.  In dev mode every root gets a
watchfiles listener unless the watcher is disabled.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from re import Pattern
from typing import TYPE_CHECKING

from sitemill.sources.directory import FileCallback, SourceDirectory
from sitemill.sources.listeners import watchfiles_factory

if TYPE_CHECKING:
    from sitemill._types import FileMatcher, IgnoreScope, SitemillMode
    from sitemill.observability.collector import Collector
    from sitemill.sources.file import SourceFile
    from sitemill.sources.listeners import ListenerFactory


# Editor and VCS droppings that never count as source files.
DEFAULT_IGNORES: dict[str, Pattern[str]] = {
    "emacs_files": re.compile(r"(^|/)\.?#"),
    "tilde_files": re.compile(r"~$"),
    "ds_store": re.compile(r"\.DS_Store$"),
    "git": re.compile(r"(^|/)\.git(ignore|modules|/)"),
}


@dataclass(frozen=True, slots=True)
class IgnoreEntry:
    """One named watcher ignore rule.

    Attributes:
        scope: ``"all"`` or the logical type the rule applies to.
        matcher: Regex searched in the relative path, or a predicate.

    """

    scope: IgnoreScope
    matcher: FileMatcher

    def applies_to(self, file: SourceFile) -> bool:
        if self.scope != "all" and self.scope != file.type:
            return False
        if isinstance(self.matcher, Pattern):
            return self.matcher.search(file.posix_path) is not None
        return bool(self.matcher(file))


class Sources:
    """Watches any number of directories and reports file changes.

    Args:
        mode: ``"build"`` forces pull-only polling; ``"dev"`` listens.
        disable_watcher: Never listen, even in dev mode.
        force_polling: Ask watchfiles to poll instead of native events.
        debounce: watchfiles debounce in milliseconds.
        step: watchfiles step in milliseconds.
        listener_factory: Replaces the watchfiles listener (tests use a fake).
        collector: Receives a ``SourceChanged`` event per notification.

    """

    def __init__(
        self,
        *,
        mode: SitemillMode = "dev",
        disable_watcher: bool = False,
        force_polling: bool = False,
        debounce: int = 300,
        step: int = 100,
        listener_factory: ListenerFactory | None = None,
        collector: Collector | None = None,
    ) -> None:
        self.mode = mode
        self._collector = collector
        self._directories: list[SourceDirectory] = []
        self._ignores: dict[str, IgnoreEntry] = {}

        if mode == "build" or disable_watcher:
            self._listener_factory: ListenerFactory | None = None
        elif listener_factory is not None:
            self._listener_factory = listener_factory
        else:
            self._listener_factory = watchfiles_factory(
                force_polling=force_polling, debounce=debounce, step=step,
            )

        self._on_change_callbacks: list[FileCallback] = []
        self._on_delete_callbacks: list[FileCallback] = []

        self._running = False

        self._update_count = 0
        self._last_update_count = -1

    @property
    def directories(self) -> tuple[SourceDirectory, ...]:
        """Every watched root, in registration order."""
        return tuple(self._directories)

    @property
    def is_running(self) -> bool:
        """Whether ``start()`` has been called (and not ``stop()``)."""
        return self._running

    @property
    def update_count(self) -> int:
        """Counter bumped by every change, deletion, ignore and unwatch."""
        return self._update_count

    def bump_count(self) -> None:
        self._update_count += 1

    # ------------------------------------------------------------------
    # Ignores
    # ------------------------------------------------------------------

    def ignore(self, name: str, scope: IgnoreScope, matcher: FileMatcher) -> None:
        """Register (or replace) a named ignore rule.

        Matching files are dropped from every current and future directory
        in scope.  When already running, all roots are re-polled.

        """
        self._ignores[name] = IgnoreEntry(scope=scope, matcher=matcher)

        self.bump_count()
        if self._running:
            self.find_new_files()

    def globally_ignored(self, file: SourceFile) -> bool:
        """Whether any registered ignore rule matches ``file``."""
        return any(entry.applies_to(file) for entry in list(self._ignores.values()))

    # ------------------------------------------------------------------
    # Directories
    # ------------------------------------------------------------------

    def watch(
        self,
        type: str,
        path: str | Path,
        *,
        validator: Callable[[SourceFile], bool] | None = None,
        ignored: Callable[[SourceFile], bool] | None = None,
    ) -> SourceDirectory:
        """Start tracking ``path`` as a root of the given logical type."""
        handler = SourceDirectory(
            self,
            type,
            Path(path),
            validator=validator,
            ignored=ignored,
            listener_factory=self._listener_factory,
        )
        self._directories.append(handler)

        if self._running:
            handler.poll_once()
            handler.listen()

        return handler

    def unwatch(self, directory: SourceDirectory) -> None:
        """Stop tracking a root."""
        if directory in self._directories:
            self._directories.remove(directory)

        directory.unwatch()

        self.bump_count()

    def by_type(self, type: str) -> Sources:
        """A view over the roots of one logical type."""
        view = Sources(mode="build", collector=self._collector)
        view._ignores = self._ignores
        view._directories = [d for d in self._directories if d.type == type]
        return view

    def files(self) -> list[SourceFile]:
        """Every known file across all roots."""
        return [f for d in list(self._directories) for f in d.files()]

    def find(self, type: str, path: str | Path) -> SourceFile | None:
        """First known file at ``path`` among roots of ``type``."""
        for directory in list(self._directories):
            if directory.type != type:
                continue
            found = directory.find(path)
            if found is not None:
                return found
        return None

    def exists(self, type: str, path: str | Path) -> bool:
        return self.find(type, path) is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start push listeners on every root (a no-op in build mode)."""
        for directory in list(self._directories):
            directory.listen()
        self._running = True

    def stop(self) -> None:
        """Stop every push listener."""
        for directory in list(self._directories):
            directory.stop_listener()
        self._running = False

    def find_new_files(self) -> None:
        """Poll every root, if anything changed since the last call."""
        if self._update_count == self._last_update_count:
            return

        self._last_update_count = self._update_count
        for directory in list(self._directories):
            directory.poll_once()

    def poll_once(self) -> None:
        """Poll every root unconditionally."""
        self._last_update_count = self._update_count
        for directory in list(self._directories):
            directory.poll_once()

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def changed(self, callback: FileCallback) -> list[FileCallback]:
        """Add a callback run for each added or updated file in any root."""
        self._on_change_callbacks.append(callback)
        return self._on_change_callbacks

    def deleted(self, callback: FileCallback) -> list[FileCallback]:
        """Add a callback run for each removed file in any root."""
        self._on_delete_callbacks.append(callback)
        return self._on_delete_callbacks

    def did_change(self, file: SourceFile) -> None:
        """Notify subscribers that ``file`` was added or updated."""
        self.bump_count()
        if self._collector is not None:
            self._collector.record_source_change("changed", file.type, file.posix_path)
        for callback in list(self._on_change_callbacks):
            callback(file)

    def did_delete(self, file: SourceFile) -> None:
        """Notify subscribers that ``file`` was removed."""
        self.bump_count()
        if self._collector is not None:
            self._collector.record_source_change("deleted", file.type, file.posix_path)
        for callback in list(self._on_delete_callbacks):
            callback(file)
