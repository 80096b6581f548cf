"""Sitemill — a sitemap-driven static site builder.

The source tree is watched, folded through resource list manipulators
into a sitemap, and the sitemap is materialized into a build directory.

Quick start::

    import sitemill

    sitemill.build("my-site/")

Two modes::

    sitemill.build("my-site/")    # One-shot build
    sitemill.dev("my-site/")      # Watch and keep the sitemap current

"""

__version__ = "0.1.0"
__all__ = [
    "Site",
    "SitemillConfig",
    "__version__",
    "build",
    "dev",
]


def __getattr__(name: str) -> object:
    """Lazy imports for the public API.

    Keeps ``import sitemill`` fast while providing a clean top-level API.
    """
    if name == "SitemillConfig":
        from sitemill.config import SitemillConfig

        return SitemillConfig

    if name == "Site":
        from sitemill.app import Site

        return Site

    if name == "dev":
        from sitemill.app import dev

        return dev

    if name == "build":
        from sitemill.app import build

        return build

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
