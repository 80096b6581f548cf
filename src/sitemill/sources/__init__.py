"""Source layer — change detection over watched directories.

Tracks the files under each watched root, applies ignore rules, and
announces additions, updates and removals to subscribers.
"""

from sitemill.sources.directory import SourceDirectory
from sitemill.sources.file import SourceFile
from sitemill.sources.listeners import Listener, WatchfilesListener
from sitemill.sources.watcher import DEFAULT_IGNORES, Sources

__all__ = [
    "DEFAULT_IGNORES",
    "Listener",
    "SourceDirectory",
    "SourceFile",
    "Sources",
    "WatchfilesListener",
]
