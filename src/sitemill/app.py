"""Sitemill application — wires the watcher, the store and the builder.

Two modes::

    sitemill.build("my-site/")   # One-shot build into build/
    sitemill.dev("my-site/")     # Keep the resource list current while editing

A ``Site`` is the explicit owner of one watcher, one store and their
manipulators; everything that needs the resource list gets the store
from it.
"""

from __future__ import annotations

import sys
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sitemill.config_loader import load_config
from sitemill.export.builder import Builder
from sitemill.observability.collector import Collector
from sitemill.observability.events import (
    BuildEvent,
    BuildFinished,
    ResourceListRebuilt,
    SourceChanged,
)
from sitemill.rendering import RendererRegistry
from sitemill.setup_loader import load_setup
from sitemill.sitemap.extensions.on_disk import OnDisk
from sitemill.sitemap.extensions.proxies import ProxyDescriptor, Proxies
from sitemill.sitemap.store import Store
from sitemill.sources.watcher import DEFAULT_IGNORES, Sources

if TYPE_CHECKING:
    from collections.abc import Callable

    from sitemill._types import PathMatcher, SitemillMode
    from sitemill.config import SitemillConfig
    from sitemill.observability.events import StackEvent
    from sitemill.rendering import Renderer
    from sitemill.sitemap.store import ResourceList, ResourceListManipulator
    from sitemill.sources.listeners import ListenerFactory

# On-disk files enter the list before anything else can look at them.
ON_DISK_PRIORITY = 10


class Site:
    """One site: configuration, watcher, renderers, store and manipulators.

    Args:
        config: Frozen site configuration.
        mode: ``"build"`` polls only; ``"dev"`` listens for changes.
        collector: Event collector; a fresh one is created if omitted.
        listener_factory: Replaces the watchfiles listener (tests).

    """

    def __init__(
        self,
        config: SitemillConfig,
        *,
        mode: SitemillMode = "dev",
        collector: Collector | None = None,
        listener_factory: ListenerFactory | None = None,
    ) -> None:
        self.config = config
        self.mode = mode
        self.collector = collector if collector is not None else Collector()
        self.renderers = RendererRegistry()

        self.sources = Sources(
            mode=mode,
            disable_watcher=config.watcher_disable,
            force_polling=config.force_polling,
            debounce=config.watcher_debounce,
            step=config.watcher_step,
            listener_factory=listener_factory,
            collector=self.collector,
        )
        for name, pattern in DEFAULT_IGNORES.items():
            self.sources.ignore(name, "all", pattern)

        self.store = Store(config, renderers=self.renderers, collector=self.collector)
        self.source_directory = self.sources.watch("source", config.source_path)

        self.on_disk = OnDisk(
            self.sources,
            self.store,
            build_mode=self.is_build,
            layouts_dir=config.layouts_dir,
        )
        self.proxies = Proxies(self.store)
        self.store.register("on_disk", self.on_disk, priority=ON_DISK_PRIORITY)
        self.store.register("proxies", self.proxies)

    @property
    def is_build(self) -> bool:
        return self.mode == "build"

    # ------------------------------------------------------------------
    # Configuration surface (used by sitemill_setup.py)
    # ------------------------------------------------------------------

    def register_renderer(self, ext: str, renderer: Renderer | Callable[..., str]) -> None:
        """Render source files ending in ``ext`` through ``renderer``."""
        self.renderers.register(ext, renderer)
        # Resource paths drop template extensions, so they may all change.
        self.store.invalidate("renderer_registered")

    def register_manipulator(
        self,
        name: str,
        manipulator: ResourceListManipulator | Callable[[ResourceList], ResourceList],
        priority: float = 50,
    ) -> None:
        self.store.register(name, manipulator, priority)

    def ignore(self, matcher: PathMatcher) -> None:
        """Keep matching resources out of the build."""
        self.store.ignore(matcher)

    def proxy(self, path: str, target: str, **kwargs: Any) -> ProxyDescriptor:
        """Declare a virtual page; see ``Proxies.proxy``."""
        return self.proxies.proxy(path, target, **kwargs)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def ready(self) -> None:
        """Scan sources, start listening (dev mode) and compute the sitemap."""
        self.sources.find_new_files()
        self.sources.start()
        self.on_disk.ready()

    def close(self) -> None:
        """Stop every background listener."""
        self.sources.stop()

    def builder(self, *, glob: str | None = None, clean: bool | None = None) -> Builder:
        """A builder for this site; unset options come from the config."""
        return Builder(
            self.store,
            self.sources,
            self.config,
            glob=glob if glob is not None else self.config.glob,
            clean=clean if clean is not None else self.config.clean,
            collector=self.collector,
        )


def create_site(
    root: str | Path = ".",
    *,
    mode: SitemillMode = "dev",
    **kwargs: object,
) -> Site:
    """Load config, run the setup module and return a ready site."""
    config = load_config(Path(root), **kwargs)
    site = Site(config, mode=mode)

    configure = load_setup(config)
    if configure is not None:
        configure(site)

    site.ready()
    return site


def build(root: str | Path = ".", **kwargs: object) -> bool:
    """Build the site once.

    Args:
        root: Path to the project root.
        **kwargs: Override SitemillConfig fields (e.g., ``glob``, ``clean``).

    Returns:
        True when every resource was built without error.

    """
    t0 = time.perf_counter()
    site = create_site(root, mode="build", **kwargs)

    builder = site.builder()
    builder.on_build_event(_print_build_event)
    success = builder.run()

    finished = site.collector.log.last(BuildFinished)
    _print_build_summary(finished, builder.build_dir, (time.perf_counter() - t0) * 1000)
    return success


def dev(root: str | Path = ".", **kwargs: object) -> None:
    """Watch the site and keep its resource list current until interrupted."""
    site = create_site(root, mode="dev", **kwargs)
    site.collector.subscribe(_print_dev_event)

    resources = site.store.resources()
    print(
        f"  Watching {site.config.source_path} "
        f"({len(resources)} resource{'s' if len(resources) != 1 else ''})",
        file=sys.stderr,
    )

    stop = threading.Event()
    try:
        stop.wait()
    except KeyboardInterrupt:
        pass
    finally:
        site.close()


# ---------------------------------------------------------------------------
# Console output
# ---------------------------------------------------------------------------

_EVENT_LABELS = {
    "created": "create",
    "updated": "update",
    "identical": "identical",
    "deleted": "remove",
    "error": "error",
}


def _print_build_event(event: BuildEvent) -> None:
    """Print one build outcome to stderr."""
    label = _EVENT_LABELS.get(event.kind, event.kind)
    print(f"  {label:>10}  {event.target}", file=sys.stderr)
    if event.kind == "error" and event.extra:
        print(event.extra, file=sys.stderr)


def _print_build_summary(finished: BuildFinished | None, build_dir: Path, elapsed_ms: float) -> None:
    """Print build completion summary to stderr."""
    counts = finished.counts if finished is not None else {}
    success = finished.success if finished is not None else False
    lines = ["", "─" * 41]
    for kind in ("created", "updated", "identical", "deleted", "error"):
        if counts.get(kind):
            lines.append(f"  {_EVENT_LABELS[kind].capitalize()}: {counts[kind]}")
    lines.append(f"  Output: {build_dir}")
    lines.append(f"  {'Done' if success else 'Failed'} in {elapsed_ms:.0f}ms")

    print("\n".join(lines), file=sys.stderr)


def _print_dev_event(event: StackEvent) -> None:
    """Print watcher and sitemap activity in dev mode."""
    if isinstance(event, SourceChanged):
        print(f"  {event.kind:>8}  {event.type}: {event.path}", file=sys.stderr)
    elif isinstance(event, ResourceListRebuilt):
        print(
            f"  sitemap #{event.update_count}: {event.resources} resources "
            f"in {event.duration_ms:.1f}ms",
            file=sys.stderr,
        )
