"""Tests for sitemill.sitemap.store — manipulator folding and lookups."""

from __future__ import annotations

import re
import threading
import time
from collections.abc import Callable
from pathlib import Path

import pytest

from sitemill.config import SitemillConfig
from sitemill.observability.collector import Collector
from sitemill.observability.events import ResourceListRebuilt
from sitemill.rendering import RendererRegistry
from sitemill.sitemap.resource import Resource
from sitemill.sitemap.store import DEFAULT_PRIORITY, ResourceList, Store

from .conftest import format_renderer


@pytest.fixture
def store(tmp_path: Path) -> Store:
    return Store(SitemillConfig(root=tmp_path))


def adds(store: Store, *paths: str) -> Callable[[ResourceList], ResourceList]:
    """A manipulator appending one resource per path."""

    def manipulate(resources: ResourceList) -> ResourceList:
        return resources + [Resource(store, p) for p in paths]

    return manipulate


# ---------------------------------------------------------------------------
# Recompute
# ---------------------------------------------------------------------------


class TestRecompute:
    """ensure_updated — dirty tracking and idempotence."""

    def test_empty_store(self, store: Store) -> None:
        assert store.resources() == []
        assert store.update_count == 1

    def test_idempotent(self, store: Store) -> None:
        store.register("a", adds(store, "a.html"))
        store.ensure_updated()
        first = store.resources()
        store.ensure_updated()
        store.ensure_updated()

        assert store.update_count == 1
        assert [r.path for r in store.resources()] == [r.path for r in first]

    def test_invalidate_forces_recompute(self, store: Store) -> None:
        store.register("a", adds(store, "a.html"))
        store.ensure_updated()
        store.invalidate("test")

        assert store.needs_rebuild
        store.ensure_updated()
        assert store.update_count == 2
        assert not store.needs_rebuild

    def test_registration_is_lazy(self, store: Store) -> None:
        calls: list[int] = []

        def manipulate(resources: ResourceList) -> ResourceList:
            calls.append(1)
            return resources

        store.register("spy", manipulate)
        assert calls == []
        store.resources()
        assert calls == [1]

    def test_failure_keeps_store_dirty(self, store: Store) -> None:
        fail = {"now": False}

        def flaky(resources: ResourceList) -> ResourceList:
            if fail["now"]:
                raise RuntimeError("boom")
            return resources + [Resource(store, "ok.html")]

        store.register("flaky", flaky)
        store.ensure_updated()
        fail["now"] = True
        store.invalidate()

        with pytest.raises(RuntimeError, match="boom"):
            store.ensure_updated()

        assert store.needs_rebuild

        fail["now"] = False
        assert [r.path for r in store.resources()] == ["ok.html"]
        assert not store.needs_rebuild

    def test_failure_keeps_previous_list_published(self, store: Store) -> None:
        fail = {"now": False}

        def flaky(resources: ResourceList) -> ResourceList:
            if fail["now"]:
                raise RuntimeError("boom")
            return resources + [Resource(store, "ok.html")]

        store.register("flaky", flaky)
        store.ensure_updated()
        fail["now"] = True
        store.invalidate()
        with pytest.raises(RuntimeError):
            store.ensure_updated()

        assert [r.path for r in store._resources] == ["ok.html"]
        assert store.update_count == 1

    def test_invalidation_during_fold_schedules_another(self, store: Store) -> None:
        def noisy(resources: ResourceList) -> ResourceList:
            store.invalidate("from_inside")
            return resources

        store.register("noisy", noisy)
        store.ensure_updated()
        assert store.needs_rebuild

    def test_collector_records_rebuilds(self, tmp_path: Path) -> None:
        collector = Collector()
        store = Store(SitemillConfig(root=tmp_path), collector=collector)
        store.register("a", adds(store, "a.html", "b.html"))
        store.ensure_updated()

        events = collector.log.query(event_type=ResourceListRebuilt)
        assert len(events) == 1
        assert events[0].resources == 2  # type: ignore[union-attr]
        assert events[0].manipulators == 1  # type: ignore[union-attr]


# ---------------------------------------------------------------------------
# Manipulator ordering
# ---------------------------------------------------------------------------


class TestOrdering:
    """Manipulators run by (priority, registration order)."""

    def test_priority_then_registration(self, store: Store) -> None:
        store.register("A", adds(store, "a.html"), priority=50)
        store.register("B", adds(store, "b.html"), priority=10)
        store.register("C", adds(store, "c.html"), priority=50)

        assert [m.name for m in store.manipulators] == ["B", "A", "C"]
        assert [r.path for r in store.resources()] == ["b.html", "a.html", "c.html"]

    def test_default_priority(self, store: Store) -> None:
        store.register("a", adds(store, "a.html"))
        assert store.manipulators[0].priority == DEFAULT_PRIORITY

    def test_invalid_priority_falls_back(self, store: Store) -> None:
        store.register("a", adds(store, "a.html"), priority="high")  # type: ignore[arg-type]
        store.register("b", adds(store, "b.html"), priority=True)
        assert [m.priority for m in store.manipulators] == [DEFAULT_PRIORITY, DEFAULT_PRIORITY]

    def test_object_manipulator(self, store: Store) -> None:
        class Doubler:
            def manipulate_resource_list(self, resources: ResourceList) -> ResourceList:
                return resources + resources

        store.register("a", adds(store, "a.html"))
        store.register("double", Doubler())
        assert len(store.resources()) == 2

    def test_non_callable_rejected(self, store: Store) -> None:
        with pytest.raises(TypeError, match="bogus"):
            store.register("bogus", 42)  # type: ignore[arg-type]

    def test_filtering_manipulator(self, store: Store) -> None:
        store.register("a", adds(store, "a.html", "drafts/b.html"))
        store.register("no_drafts", lambda rs: [r for r in rs if not r.path.startswith("drafts/")])
        assert [r.path for r in store.resources()] == ["a.html"]


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


class TestLookups:
    """find_by_path / find_by_destination_path."""

    def test_find_by_path(self, store: Store) -> None:
        store.register("a", adds(store, "blog/index.html"))
        found = store.find_by_path("/blog/index.html")
        assert found is not None
        assert found.path == "blog/index.html"

    def test_miss_returns_none(self, store: Store) -> None:
        assert store.find_by_path("nope.html") is None
        assert store.find_by_destination_path("nope.html") is None

    def test_destination_rewritten_by_later_stage(self, store: Store) -> None:
        store.register("a", adds(store, "about.html"))

        def pretty(resources: ResourceList) -> ResourceList:
            for resource in resources:
                resource.destination_path = resource.path.replace(".html", "/index.html")
            return resources

        store.register("pretty", pretty)

        resource = store.find_by_path("about.html")
        assert resource is not None
        assert store.find_by_destination_path("about/index.html") is resource
        assert store.find_by_destination_path("about.html") is None

    def test_collision_last_wins(self, store: Store) -> None:
        store.register("first", adds(store, "a.html"))
        store.register("second", adds(store, "a.html"))

        resources = store.resources()
        assert len(resources) == 2
        assert store.find_by_path("a.html") is resources[-1]

    def test_spaces_normalized(self, store: Store) -> None:
        store.register("a", adds(store, "my page.html"))
        assert store.find_by_path("my page.html") is not None

    def test_every_destination_found_across_stages(self, store: Store) -> None:
        count = 30
        for stage in range(3):
            paths = [f"s{stage}/page{i}.html" for i in range(count // 3)]
            store.register(f"stage{stage}", adds(store, *paths))

        def relocate(resources: ResourceList) -> ResourceList:
            for i, resource in enumerate(resources):
                resource.destination_path = f"out/{i}/index.html"
            return resources

        store.register("relocate", relocate, priority=DEFAULT_PRIORITY + 1)

        resources = store.resources()
        assert len(resources) == count
        for i, resource in enumerate(resources):
            assert store.find_by_destination_path(f"out/{i}/index.html") is resource
            assert store.find_by_path(resource.path) is resource
            assert store.find_by_destination_path(resource.path) is None
        assert store.find_by_destination_path(f"out/{count}/index.html") is None


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


class TestConcurrency:
    """One fold at a time, whichever thread asks."""

    def test_concurrent_readers_share_one_fold(self, store: Store) -> None:
        calls: list[int] = []

        def slow(resources: ResourceList) -> ResourceList:
            calls.append(1)
            time.sleep(0.05)
            return resources + [Resource(store, "a.html")]

        store.register("slow", slow)
        barrier = threading.Barrier(8)
        found: list[Resource | None] = []

        def reader(n: int) -> None:
            barrier.wait()
            if n % 2:
                found.append(store.find_by_path("a.html"))
            else:
                found.extend(store.resources())

        threads = [threading.Thread(target=reader, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert calls == [1]
        assert store.update_count == 1
        assert len(found) == 8
        assert all(r is not None and r.path == "a.html" for r in found)

    def test_invalidation_from_another_thread_waits_for_fold(self, store: Store) -> None:
        folding = threading.Event()

        def slow(resources: ResourceList) -> ResourceList:
            folding.set()
            time.sleep(0.05)
            return resources + [Resource(store, "a.html")]

        store.register("slow", slow)

        def invalidator() -> None:
            folding.wait(timeout=5)
            store.invalidate("source changed")

        thread = threading.Thread(target=invalidator)
        thread.start()
        store.ensure_updated()
        thread.join()

        assert store.update_count == 1
        assert store.needs_rebuild
        store.ensure_updated()
        assert store.update_count == 2
        assert not store.needs_rebuild


# ---------------------------------------------------------------------------
# Ignores
# ---------------------------------------------------------------------------


class TestIgnores:
    """Ignored resources drop out of the default view only."""

    def test_exact_glob_regex_and_predicate(self, store: Store) -> None:
        store.register("a", adds(store, "a.html", "drafts/b.html", "c.tmp", "d.html"))
        store.ignore("/a.html")
        store.ignore("drafts/*")
        store.ignore(re.compile(r"\.tmp$"))
        store.ignore(lambda p: p == "nothing")

        assert [r.path for r in store.resources()] == ["d.html"]
        assert len(store.resources(include_ignored=True)) == 4

    def test_ignore_does_not_recompute(self, store: Store) -> None:
        store.register("a", adds(store, "a.html", "b.html"))
        store.resources()
        store.ignore("a.html")

        assert [r.path for r in store.resources()] == ["b.html"]
        assert store.update_count == 1

    def test_ignored_resource_still_found(self, store: Store) -> None:
        store.register("a", adds(store, "a.html"))
        store.ignore("a.html")
        assert store.find_by_path("a.html") is not None


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


class TestExtensionlessPath:
    """Template extensions are stripped while a renderer claims them."""

    def test_strips_registered(self, tmp_path: Path) -> None:
        renderers = RendererRegistry()
        renderers.register(".tmpl", format_renderer)
        store = Store(SitemillConfig(root=tmp_path), renderers=renderers)

        assert store.extensionless_path("a.html.tmpl") == "a.html"
        assert store.extensionless_path("a.tmpl.tmpl") == "a"
        assert store.extensionless_path("a.html") == "a.html"

    def test_dotfile_kept(self, tmp_path: Path) -> None:
        renderers = RendererRegistry()
        renderers.register(".tmpl", format_renderer)
        store = Store(SitemillConfig(root=tmp_path), renderers=renderers)
        assert store.extensionless_path("dir/.tmpl") == "dir/.tmpl"
