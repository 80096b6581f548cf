"""Sitemap store — the authoritative resource list.

The store owns a chain of manipulators.  Each manipulator receives the
resource list produced by the one before it and returns a new list
(filtered, reordered or extended).  The list is never patched: any
change marks the store dirty and the next read folds every manipulator
again, starting from an empty list.

Ordering:
    Manipulators run by ``(priority, registration order)``.  Priority
    defaults to 50; lower runs earlier.

Thread Safety:
    Registration, invalidation and recompute share one reentrant lock.
    Watcher callbacks arrive on a background thread and only ever mark
    the store dirty; readers see either the previous list or the new one.

"""

from __future__ import annotations

import re
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from itertools import count
from numbers import Real
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from sitemill.rendering import RendererRegistry, is_binary
from sitemill.util import normalize_path, path_match

if TYPE_CHECKING:
    from sitemill._types import PathMatcher
    from sitemill.config import SitemillConfig
    from sitemill.observability.collector import Collector
    from sitemill.sitemap.resource import Resource

type ResourceList = list[Resource]

DEFAULT_PRIORITY = 50


class ResourceListManipulator(Protocol):
    """Anything that can transform the resource list."""

    def manipulate_resource_list(self, resources: ResourceList) -> ResourceList: ...


@dataclass(frozen=True, slots=True)
class Manipulator:
    """A registered stage of the resource pipeline.

    Attributes:
        name: Name for diagnostics.
        priority: Sort key; lower runs first.
        sequence: Registration order, breaks priority ties.
        transform: The resource-list transform itself.

    """

    name: str
    priority: float
    sequence: int
    transform: Callable[[ResourceList], ResourceList]


class Store:
    """Manages the resource list and its lookup indices.

    Args:
        config: Site configuration (used for URLs and paths).
        renderers: Renderer registry deciding what is a template.
        binary_classifier: Decides whether a source path is copied as bytes.
            Defaults to extension/MIME/content sniffing.
        collector: Receives a ``ResourceListRebuilt`` event per recompute.

    """

    def __init__(
        self,
        config: SitemillConfig,
        *,
        renderers: RendererRegistry | None = None,
        binary_classifier: Callable[[Path], bool] | None = None,
        collector: Collector | None = None,
    ) -> None:
        self.config = config
        self.renderers = renderers if renderers is not None else RendererRegistry()
        self.binary_classifier = binary_classifier or (
            lambda path: is_binary(path, self.renderers)
        )
        self._collector = collector

        self._lock = threading.RLock()
        self._sequence = count()
        self._manipulators: list[Manipulator] = []
        self._needs_rebuild = True
        self._update_count = 0

        self._resources: ResourceList = []
        self._resources_not_ignored: ResourceList | None = None
        self._lookup_by_path: dict[str, Resource] = {}
        self._lookup_by_destination_path: dict[str, Resource] = {}

        self._ignores: list[PathMatcher] = []

    # ------------------------------------------------------------------
    # Manipulators
    # ------------------------------------------------------------------

    def register(
        self,
        name: str,
        manipulator: ResourceListManipulator | Callable[[ResourceList], ResourceList],
        priority: float = DEFAULT_PRIORITY,
    ) -> None:
        """Register a resource list manipulator.

        Manipulators with equal priority run in registration order.  The
        store is marked dirty but nothing is recomputed until the next read.

        """
        if not isinstance(priority, Real) or isinstance(priority, bool):
            priority = DEFAULT_PRIORITY

        transform = getattr(manipulator, "manipulate_resource_list", manipulator)
        if not callable(transform):
            msg = f"Manipulator {name!r} is not callable and has no manipulate_resource_list()"
            raise TypeError(msg)

        with self._lock:
            self._manipulators.append(
                Manipulator(
                    name=name,
                    priority=priority,
                    sequence=next(self._sequence),
                    transform=transform,
                )
            )
            self._manipulators.sort(key=lambda m: (m.priority, m.sequence))
            self.invalidate("registered_new")

    @property
    def manipulators(self) -> tuple[Manipulator, ...]:
        """Registered manipulators in run order."""
        with self._lock:
            return tuple(self._manipulators)

    # ------------------------------------------------------------------
    # Invalidation and recompute
    # ------------------------------------------------------------------

    def invalidate(self, reason: str | None = None) -> None:
        """Mark the resource list stale.  ``reason`` is for diagnostics only."""
        with self._lock:
            self._needs_rebuild = True

    @property
    def needs_rebuild(self) -> bool:
        return self._needs_rebuild

    @property
    def update_count(self) -> int:
        """Number of recomputes performed so far."""
        return self._update_count

    def ensure_updated(self) -> None:
        """Recompute the resource list if anything invalidated it.

        The dirty flag is cleared before the fold, so an invalidation raised
        while manipulators run schedules another recompute.  If a manipulator
        fails the store stays dirty and the previous list stays published.

        """
        with self._lock:
            if not self._needs_rebuild:
                return
            self._needs_rebuild = False

            t0 = time.perf_counter()
            try:
                resources: ResourceList = []
                for manipulator in tuple(self._manipulators):
                    resources = list(manipulator.transform(resources))
            except BaseException:
                self._needs_rebuild = True
                raise

            by_path: dict[str, Resource] = {}
            by_destination_path: dict[str, Resource] = {}
            for resource in resources:
                by_path[resource.path] = resource
                by_destination_path[resource.destination_path] = resource

            self._resources = resources
            self._lookup_by_path = by_path
            self._lookup_by_destination_path = by_destination_path
            self._resources_not_ignored = None
            self._update_count += 1

            if self._collector is not None:
                self._collector.record_rebuild(
                    self._update_count,
                    resources=len(resources),
                    manipulators=len(self._manipulators),
                    duration_ms=(time.perf_counter() - t0) * 1000,
                )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_path(self, path: str) -> Resource | None:
        """The resource with the given source path, or None."""
        with self._lock:
            path = normalize_path(path)
            self.ensure_updated()
            return self._lookup_by_path.get(path)

    def find_by_destination_path(self, path: str) -> Resource | None:
        """The resource with the given destination (output) path, or None."""
        with self._lock:
            path = normalize_path(path)
            self.ensure_updated()
            return self._lookup_by_destination_path.get(path)

    def resources(self, include_ignored: bool = False) -> ResourceList:
        """All resources, by default without the ignored ones."""
        with self._lock:
            self.ensure_updated()
            if include_ignored:
                return list(self._resources)
            if self._resources_not_ignored is None:
                self._resources_not_ignored = [r for r in self._resources if not r.ignored()]
            return list(self._resources_not_ignored)

    # ------------------------------------------------------------------
    # Ignores
    # ------------------------------------------------------------------

    def ignore(self, matcher: PathMatcher) -> None:
        """Ignore resources whose path (or raw source path) matches.

        ``matcher`` may be an exact path, a glob containing ``*``, a
        compiled regex, or a predicate over the path string.

        """
        if isinstance(matcher, str):
            matcher = normalize_path(matcher)
        with self._lock:
            self._ignores.append(matcher)
            self.invalidate_not_ignored_cache()

    def ignored(self, path: str) -> bool:
        """Whether any ignore rule matches ``path``."""
        path = normalize_path(path)
        return any(path_match(matcher, path) for matcher in list(self._ignores))

    def invalidate_not_ignored_cache(self) -> None:
        """Drop the cached non-ignored view (after ignore rules change)."""
        with self._lock:
            self._resources_not_ignored = None

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def extensionless_path(self, path: str) -> str:
        """Strip trailing extensions while a renderer is registered for them."""
        stem, ext = _split_ext(path)
        while ext and self.renderers.registered(ext):
            path = stem
            stem, ext = _split_ext(path)
        return path

    def __repr__(self) -> str:
        return (
            f"Store(manipulators={len(self._manipulators)}, "
            f"update_count={self._update_count}, dirty={self._needs_rebuild})"
        )


_EXT_RE = re.compile(r"(\.[^./]+)$")


def _split_ext(path: str) -> tuple[str, str]:
    match = _EXT_RE.search(path)
    if match is None or match.start() == path.rfind("/") + 1:
        return path, ""
    return path[: match.start()], match.group(1)
