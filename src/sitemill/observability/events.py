"""Unified event model for sitemill observability.

Defines event types for the source watcher, the sitemap store and the
builder.

All events are frozen dataclasses with:
- ``timestamp_ns``: Monotonic nanosecond timestamp
- Descriptive fields for the specific event type

Thread Safety:
    All events are frozen (immutable) and safe to share across threads.
    Watcher events are produced on the watchfiles background thread.

"""

import time
from dataclasses import dataclass, field
from typing import Literal


def now_ns() -> int:
    """Return the current monotonic clock value in nanoseconds."""
    return time.monotonic_ns()


# ---------------------------------------------------------------------------
# Watcher events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SourceChanged:
    """A watched file was (re-)announced or removed.

    Attributes:
        kind: ``"changed"`` for additions and updates, ``"deleted"`` for removals.
        type: Logical type of the watched directory (e.g., ``"source"``).
        path: Path relative to the watched directory.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    kind: Literal["changed", "deleted"]
    type: str
    path: str
    timestamp_ns: int = field(default_factory=now_ns)


# ---------------------------------------------------------------------------
# Sitemap events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ResourceListRebuilt:
    """The store folded its manipulators into a new resource list.

    Attributes:
        update_count: Store update count after the rebuild.
        resources: Number of resources in the new list (ignored included).
        manipulators: Number of manipulators folded.
        duration_ms: Time spent folding and indexing.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    update_count: int
    resources: int
    manipulators: int
    duration_ms: float
    timestamp_ns: int = field(default_factory=now_ns)


# ---------------------------------------------------------------------------
# Build events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BuildEvent:
    """The outcome for one output file.

    Attributes:
        kind: What happened to the file.
        target: Absolute path of the output file.
        extra: Diagnostic text for errors, ``None`` otherwise.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    kind: Literal["created", "updated", "identical", "deleted", "error"]
    target: str
    extra: str | None = None
    timestamp_ns: int = field(default_factory=now_ns)


@dataclass(frozen=True, slots=True)
class BuildFinished:
    """A build run completed.

    Attributes:
        success: True when no resource produced an error.
        counts: Number of outcomes per kind.
        duration_ms: Wall-clock time of the run.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    success: bool
    counts: dict[str, int]
    duration_ms: float
    timestamp_ns: int = field(default_factory=now_ns)


# ---------------------------------------------------------------------------
# Union type
# ---------------------------------------------------------------------------

type StackEvent = SourceChanged | ResourceListRebuilt | BuildEvent | BuildFinished
