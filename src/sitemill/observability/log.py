"""Event log — what the watcher, store and builder have reported.

A bounded buffer of ``StackEvent`` objects.  The watcher thread appends
while the caller reads, so every method takes the lock.

"""

import threading
from collections import deque

from sitemill.observability.events import StackEvent


def _event_path(event: StackEvent) -> str:
    """Source path or build target an event refers to, if any."""
    return getattr(event, "path", None) or getattr(event, "target", None) or ""


class EventLog:
    """Recent sitemap and build events, oldest dropped first.

    Args:
        max_events: How many events to keep.

    """

    __slots__ = ("_events", "_lock")

    def __init__(self, max_events: int = 10_000) -> None:
        self._events: deque[StackEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    def append(self, event: StackEvent) -> None:
        with self._lock:
            self._events.append(event)

    def query[E: StackEvent](
        self,
        *,
        event_type: type[E] | None = None,
        path: str | None = None,
        limit: int | None = None,
    ) -> list[E]:
        """Matching events, most recent first.

        ``path`` matches as a substring of a change's source path or a build
        outcome's target.

        """
        with self._lock:
            events = list(self._events)

        results: list[E] = []
        for event in reversed(events):
            if limit is not None and len(results) >= limit:
                break
            if event_type is not None and not isinstance(event, event_type):
                continue
            if path is not None and path not in _event_path(event):
                continue
            results.append(event)  # type: ignore[arg-type]
        return results

    def last[E: StackEvent](self, event_type: type[E]) -> E | None:
        """Most recent event of ``event_type``."""
        found = self.query(event_type=event_type, limit=1)
        return found[0] if found else None

    def recent(self, n: int = 20) -> list[StackEvent]:
        """The ``n`` most recent events, oldest first."""
        with self._lock:
            return list(self._events)[-n:]

    def clear(self) -> int:
        """Drop everything; returns how many events were dropped."""
        with self._lock:
            count = len(self._events)
            self._events.clear()
            return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
