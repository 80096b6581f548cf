"""Sitemill error hierarchy.

All sitemill-specific errors inherit from SitemillError for easy catching.
"""


class SitemillError(Exception):
    """Base error for all sitemill operations."""


class ConfigError(SitemillError):
    """Invalid or missing configuration."""


class ProxyError(ConfigError):
    """A proxy resource was declared or resolved incorrectly."""


class SelfProxyError(ProxyError):
    """A proxy resource points at its own path."""


class UnresolvedProxyError(ProxyError):
    """A proxy resource points at a path with no resource."""


class ChainedProxyError(ProxyError):
    """A proxy resource points at another proxy resource."""


class RenderError(SitemillError):
    """A renderer failed to produce output for a resource.

    Attributes:
        trace: Diagnostic text (usually a formatted traceback) from the
            renderer, empty when none was supplied.

    """

    def __init__(self, message: str, trace: str = "") -> None:
        super().__init__(message)
        self.trace = trace
