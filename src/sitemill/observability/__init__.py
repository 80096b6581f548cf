"""Observability — one event model for the watcher, the store and the builder.

All events are frozen dataclasses with nanosecond timestamps, safe for
concurrent production from the watcher thread and the caller.

Quick Start:
    >>> from sitemill.observability import Collector, EventLog
    >>> log = EventLog()
    >>> collector = Collector(log)
    >>> # Pass collector to Sources, Store and Builder

"""

from sitemill.observability.collector import Collector
from sitemill.observability.events import (
    BuildEvent,
    BuildFinished,
    ResourceListRebuilt,
    SourceChanged,
    StackEvent,
    now_ns,
)
from sitemill.observability.log import EventLog

__all__ = [
    "BuildEvent",
    "BuildFinished",
    "Collector",
    "EventLog",
    "ResourceListRebuilt",
    "SourceChanged",
    "StackEvent",
    "now_ns",
]
