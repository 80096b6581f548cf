"""SourceDirectory — the file set of one watched (type, root) pair.

Files enter the set through ``poll_once()`` (a full rescan) or through
batches from a push listener.  Every valid file seen is announced to the
``changed`` callbacks; every known file that disappears is announced to
the ``deleted`` callbacks.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from sitemill.sources.file import SourceFile
from sitemill.util import all_files_under

if TYPE_CHECKING:
    from sitemill.sources.listeners import Listener, ListenerFactory
    from sitemill.sources.watcher import Sources

type FileCallback = Callable[[SourceFile], object]


def _always(_file: SourceFile) -> bool:
    return True


def _never(_file: SourceFile) -> bool:
    return False


class SourceDirectory:
    """Tracks the files of one watched root and reports changes.

    A root that does not exist yet is simply empty; push observation starts
    the first time a poll sees it.

    Args:
        parent: The owning Sources, consulted for global ignores.
        type: Logical type of the root (e.g., ``"source"``, ``"data"``).
        directory: Root directory to watch.
        validator: Files failing this predicate are skipped.
        ignored: Files matching this predicate are skipped.
        listener_factory: Builds the push listener; ``None`` means pull-only.

    """

    def __init__(
        self,
        parent: Sources,
        type: str,
        directory: Path,
        *,
        validator: Callable[[SourceFile], bool] | None = None,
        ignored: Callable[[SourceFile], bool] | None = None,
        listener_factory: ListenerFactory | None = None,
    ) -> None:
        self._parent = parent
        self.type = type
        self._directory = Path(os.path.abspath(directory))
        self._files: dict[Path, SourceFile] = {}
        self._lock = threading.Lock()

        self._validator = validator or _always
        self._ignored = ignored or _never

        self._listener_factory = listener_factory
        self._listener: Listener | None = None

        self._on_change_callbacks: list[FileCallback] = []
        self._on_delete_callbacks: list[FileCallback] = []

        self._waiting_for_existence = not self._directory.exists()

    def __repr__(self) -> str:
        return f"SourceDirectory(type={self.type!r}, directory={str(self._directory)!r})"

    @property
    def directory(self) -> Path:
        """Absolute path of the watched root."""
        return self._directory

    @property
    def is_listening(self) -> bool:
        """Whether a push listener is active for this root."""
        return self._listener is not None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def files(self) -> list[SourceFile]:
        """Every currently known file."""
        with self._lock:
            return list(self._files.values())

    def find(self, path: str | Path) -> SourceFile | None:
        """Look up a known file by relative path or absolute path."""
        p = Path(path)
        if p.is_absolute():
            if not p.is_relative_to(self._directory):
                return None
        else:
            p = self._directory / p
        with self._lock:
            return self._files.get(p)

    def exists(self, path: str | Path) -> bool:
        """Whether a file is known at ``path``."""
        return self.find(path) is not None

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def changed(self, callback: FileCallback) -> list[FileCallback]:
        """Add a callback run for each added or updated file."""
        self._on_change_callbacks.append(callback)
        return self._on_change_callbacks

    def deleted(self, callback: FileCallback) -> list[FileCallback]:
        """Add a callback run for each removed file."""
        self._on_delete_callbacks.append(callback)
        return self._on_delete_callbacks

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def listen(self) -> None:
        """Start push observation, when allowed and the root exists."""
        if self._listener_factory is None or self._listener is not None:
            return
        if self._waiting_for_existence:
            return

        self._listener = self._listener_factory(self._directory, self.on_listener_change)
        self._listener.start()

    def stop_listener(self) -> None:
        """Stop push observation if it is running."""
        if self._listener is None:
            return

        self._listener.stop()
        self._listener = None

    def unwatch(self) -> None:
        """Stop observing this root."""
        self.stop_listener()

    def update_path(self, directory: Path) -> None:
        """Point this handle at a new root.

        Every known file is announced as deleted, then the new root is
        polled and, unless push observation is disabled, listened to.

        """
        self.stop_listener()

        for path in self._known_paths():
            self.remove(path)

        self._directory = Path(os.path.abspath(directory))
        self._waiting_for_existence = not self._directory.exists()

        self.poll_once()
        self.listen()

    def poll_once(self) -> None:
        """Rescan the root and announce every surviving and removed file.

        Surviving files are re-announced even when unchanged; consumers
        de-duplicate.

        """
        subset = set(self._known_paths())

        for filepath in all_files_under(self._directory):
            subset.discard(filepath)
            self.update(filepath)

        for filepath in sorted(subset):
            self.remove(filepath)

        if self._waiting_for_existence and self._directory.exists():
            self._waiting_for_existence = False
            self.listen()

    def on_listener_change(
        self,
        modified: list[Path],
        added: list[Path],
        removed: list[Path],
    ) -> None:
        """Apply one batch of push notifications."""
        for path in (*modified, *added):
            if path.is_dir():
                for filepath in all_files_under(path):
                    self.update(filepath)
            elif path.exists():
                self.update(path)
            else:
                self.remove(path)

        for path in removed:
            if self.find(path) is not None:
                self.remove(path)
                continue
            # A removed directory takes every known file below it along.
            for known in self._known_paths():
                if known.is_relative_to(path):
                    self.remove(known)

    # ------------------------------------------------------------------
    # File set maintenance
    # ------------------------------------------------------------------

    def update(self, path: Path) -> None:
        """Record ``path`` and announce it, if it is valid."""
        if not path.is_relative_to(self._directory):
            return

        descriptor = self._path_to_source_file(path)

        if not self.valid(descriptor):
            return

        with self._lock:
            self._files[path] = descriptor

        self._parent.did_change(descriptor)
        self._run_callbacks(self._on_change_callbacks, descriptor)

    def remove(self, path: Path) -> None:
        """Forget ``path`` and announce the removal, if it was known and valid."""
        with self._lock:
            descriptor = self._files.pop(path, None)

        if descriptor is None or not self.valid(descriptor):
            return

        self._parent.did_delete(descriptor)
        self._run_callbacks(self._on_delete_callbacks, descriptor)

    def valid(self, file: SourceFile) -> bool:
        """Custom validator passes, and neither global nor local ignores match."""
        return (
            self._validator(file)
            and not self._parent.globally_ignored(file)
            and not self._ignored(file)
        )

    def _path_to_source_file(self, path: Path) -> SourceFile:
        return SourceFile(
            relative_path=path.relative_to(self._directory),
            full_path=path,
            directory=self._directory,
            type=self.type,
        )

    def _known_paths(self) -> list[Path]:
        with self._lock:
            return list(self._files)

    @staticmethod
    def _run_callbacks(callbacks: list[FileCallback], descriptor: SourceFile) -> None:
        for callback in list(callbacks):
            callback(descriptor)
