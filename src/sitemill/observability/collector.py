"""Collector — the single place watcher, store and builder report to.

Each subsystem takes an optional collector and calls the matching
``record_*`` method; the events land in an ``EventLog``.  Listeners can
also subscribe to see events as they are recorded (the CLI uses this to
print progress lines).

Thread Safety:
    The collector delegates storage to ``EventLog`` which is internally
    locked.  Subscribers are called on the recording thread.

"""

from __future__ import annotations

from collections.abc import Callable

from sitemill.observability.events import (
    BuildEvent,
    BuildFinished,
    ResourceListRebuilt,
    SourceChanged,
    StackEvent,
)
from sitemill.observability.log import EventLog


class Collector:
    """Unified event collector for the watcher, store and builder.

    Args:
        log: The EventLog to store events in.

    """

    __slots__ = ("_log", "_subscribers")

    def __init__(self, log: EventLog | None = None) -> None:
        self._log = log if log is not None else EventLog()
        self._subscribers: list[Callable[[StackEvent], None]] = []

    @property
    def log(self) -> EventLog:
        """The underlying event log."""
        return self._log

    def subscribe(self, callback: Callable[[StackEvent], None]) -> None:
        """Call ``callback`` with every event recorded from now on."""
        self._subscribers.append(callback)

    def record(self, event: StackEvent) -> None:
        """Store an event and hand it to subscribers."""
        self._log.append(event)
        for callback in self._subscribers:
            callback(event)

    # ----- Watcher events -----

    def record_source_change(self, kind: str, type: str, path: str) -> None:
        """Record a watcher change or deletion."""
        self.record(SourceChanged(kind=kind, type=type, path=path))  # type: ignore[arg-type]

    # ----- Sitemap events -----

    def record_rebuild(
        self,
        update_count: int,
        *,
        resources: int = 0,
        manipulators: int = 0,
        duration_ms: float = 0.0,
    ) -> None:
        """Record a resource list recompute."""
        self.record(
            ResourceListRebuilt(
                update_count=update_count,
                resources=resources,
                manipulators=manipulators,
                duration_ms=duration_ms,
            )
        )

    # ----- Build events -----

    def record_build_finished(
        self,
        success: bool,
        counts: dict[str, int],
        *,
        duration_ms: float = 0.0,
    ) -> None:
        """Record the end of a build run."""
        self.record(BuildFinished(success=success, counts=dict(counts), duration_ms=duration_ms))

    def record_build(self, event: BuildEvent) -> None:
        """Record one build outcome."""
        self.record(event)
