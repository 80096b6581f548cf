"""Built-in resource list manipulators."""

from sitemill.sitemap.extensions.on_disk import OnDisk
from sitemill.sitemap.extensions.proxies import ProxyDescriptor, Proxies

__all__ = ["OnDisk", "Proxies", "ProxyDescriptor"]
