"""Push-notification listeners for watched directories.

A listener observes one directory on a background thread and hands
batched ``(modified, added, removed)`` path lists to a callback.  The
watcher never talks to watchfiles directly; it asks a listener factory
for one, so tests can substitute a fake that delivers batches by hand.
"""

from __future__ import annotations

import sys
import threading
from collections.abc import Callable
from functools import partial
from pathlib import Path
from typing import Protocol

from watchfiles import Change

# Receives (modified, added, removed) absolute paths.
type BatchCallback = Callable[[list[Path], list[Path], list[Path]], None]


class Listener(Protocol):
    """Something that observes a directory until stopped."""

    def start(self) -> None: ...

    def stop(self) -> None: ...


type ListenerFactory = Callable[[Path, BatchCallback], Listener]


def split_changes(raw_changes: set[tuple[Change, str]]) -> tuple[list[Path], list[Path], list[Path]]:
    """Split a watchfiles change set into sorted modified/added/removed lists."""
    modified: list[Path] = []
    added: list[Path] = []
    removed: list[Path] = []
    for change_type, path_str in raw_changes:
        path = Path(path_str)
        if change_type == Change.added:
            added.append(path)
        elif change_type == Change.deleted:
            removed.append(path)
        else:
            modified.append(path)
    return sorted(modified), sorted(added), sorted(removed)


class WatchfilesListener:
    """Watches one directory with watchfiles in a background thread.

    watchfiles already debounces: every batch it yields covers all changes
    seen within ``debounce`` milliseconds, and each batch becomes exactly
    one callback invocation.

    Args:
        directory: Directory to watch (recursively).
        callback: Receives each batch.
        force_polling: Poll the file system instead of using native events.
        debounce: Milliseconds to group changes for.
        step: Milliseconds to wait between checks for new changes.

    """

    def __init__(
        self,
        directory: Path,
        callback: BatchCallback,
        *,
        force_polling: bool = False,
        debounce: int = 300,
        step: int = 100,
    ) -> None:
        self._directory = directory
        self._callback = callback
        self._force_polling = force_polling
        self._debounce = debounce
        self._step = step
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        """Whether the watcher background thread is active."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start watching for file changes in a background thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._watch_loop,
            name=f"sitemill-watcher:{self._directory.name}",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        """Signal the watcher to stop and wait for the thread to finish."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None

    def _watch_loop(self) -> None:
        """Background thread: run watchfiles and hand batches to the callback."""
        from watchfiles import watch

        for raw_changes in watch(
            self._directory,
            watch_filter=None,
            stop_event=self._stop_event,
            debounce=self._debounce,
            step=self._step,
            force_polling=self._force_polling,
        ):
            modified, added, removed = split_changes(raw_changes)
            try:
                self._callback(modified, added, removed)
            except Exception as exc:
                print(f"  Watcher error: {self._directory}: {exc}", file=sys.stderr)


def watchfiles_factory(
    *,
    force_polling: bool = False,
    debounce: int = 300,
    step: int = 100,
) -> ListenerFactory:
    """Build a factory producing WatchfilesListener with the given tuning."""
    return partial(
        WatchfilesListener,
        force_polling=force_polling,
        debounce=debounce,
        step=step,
    )
