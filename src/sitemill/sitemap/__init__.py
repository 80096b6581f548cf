"""Sitemap layer — the resource graph.

The store folds registered manipulators into the resource list and
indexes it by source path and destination path.
"""

from sitemill.sitemap.resource import ProxyResource, Resource
from sitemill.sitemap.store import DEFAULT_PRIORITY, Manipulator, Store

__all__ = ["DEFAULT_PRIORITY", "Manipulator", "ProxyResource", "Resource", "Store"]
