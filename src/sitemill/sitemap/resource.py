"""Resource model — one addressable unit of the generated site.

A ``Resource`` has two identities:

- ``path``: where it comes from (source-relative, template extensions
  stripped, slash-normalized, spaces escaped)
- ``destination_path``: where it goes in the build directory; starts equal
  to ``path`` and may be rewritten by later manipulators

``ProxyResource`` is a resource at its own path whose content comes from
another (non-proxy) resource.
"""

from __future__ import annotations

import mimetypes
import posixpath
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sitemill._errors import ChainedProxyError, SelfProxyError, UnresolvedProxyError
from sitemill.rendering import read_source
from sitemill.util import deep_merge, normalize_path

if TYPE_CHECKING:
    from sitemill._types import Metadata
    from sitemill.sitemap.store import Store
    from sitemill.sources.file import SourceFile

# Output types that never get a layout unless one is asked for.
_NO_LAYOUT_EXTS = frozenset({".js", ".json", ".css", ".txt"})


class Resource:
    """A page, asset or virtual page in the sitemap.

    Args:
        store: The store this resource belongs to.
        path: Source identity, normalized on construction.
        source_file: The on-disk file backing this resource, if any.

    """

    def __init__(self, store: Store, path: str, source_file: SourceFile | None = None) -> None:
        self._store = store
        self.path = normalize_path(path)
        self._source_file = source_file
        self.destination_path = self.path
        self._ignored = False

        # options: rendering/sitemap options (layout, content_type, ...)
        # locals: variables available when rendering the template
        # page: arbitrary data exposed through ``data``
        self.metadata: Metadata = {"options": {}, "locals": {}, "page": {}}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} path={self.path}>"

    @property
    def store(self) -> Store:
        return self._store

    @property
    def source_file(self) -> SourceFile | None:
        """The on-disk file for this resource, if there is one."""
        return self._source_file

    @property
    def ext(self) -> str:
        """Extension of the path (e.g., ``.js``)."""
        return posixpath.splitext(self.path)[1]

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def add_metadata(self, meta: dict[str, Any]) -> Metadata:
        """Deep-merge a ``{options, locals, page}`` block into the metadata."""
        deep_merge(self.metadata, meta)
        return self.metadata

    @property
    def options(self) -> dict[str, Any]:
        """Rendering options, such as ``layout``."""
        return self.metadata["options"]

    @property
    def locals(self) -> dict[str, Any]:
        """Variables passed to the template when rendering."""
        return self.metadata["locals"]

    @property
    def data(self) -> dict[str, Any]:
        """Page data, populated by manipulators."""
        return self.metadata["page"]

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def template(self) -> bool:
        """Whether a renderer is registered for the source file's extension."""
        source = self.source_file
        if source is None:
            return False
        return self._store.renderers.registered(source.full_path.suffix)

    def binary(self) -> bool:
        """Whether the source file should be copied rather than rendered."""
        if self.template():
            return False
        source = self.source_file
        return source is not None and self._store.binary_classifier(source.full_path)

    def ignore(self) -> None:
        """Ignore this resource directly, without an ignore rule."""
        self._ignored = True

    def ignored(self) -> bool:
        """Explicitly ignored, or matched by the store's ignore rules."""
        if self._ignored:
            return True
        if self._store.ignored(self.path):
            return True
        source = self._source_file
        return source is not None and self._store.ignored(source.posix_path)

    def content_type(self) -> str | None:
        """MIME type from the ``content_type`` option or the extension."""
        explicit = self.options.get("content_type")
        if explicit:
            return explicit
        mime, _encoding = mimetypes.guess_type(f"x{self.ext}") if self.ext else (None, None)
        return mime

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def url(self) -> str:
        """The link to this resource, without a trailing index file."""
        config = self._store.config
        url_path = self.destination_path
        if config.strip_index_file:
            url_path = re.sub(
                rf"(^|/){re.escape(config.index_file)}$",
                "/" if config.trailing_slash else "",
                url_path,
            )
        return posixpath.join(config.http_prefix, url_path.lstrip("/"))

    def render(
        self,
        locals: dict[str, Any] | None = None,
        options: dict[str, Any] | None = None,
    ) -> str:
        """Render this resource to text.

        Non-template files are returned as-is.  Templates go through the
        renderer registered for their source extension with the resource
        metadata merged under the given locals and options.

        """
        source = self.source_file
        if source is None:
            msg = f"{self!r} has no source file to render"
            raise ValueError(msg)

        if not self.template():
            return read_source(source.full_path)

        opts = deep_merge(deep_merge({}, self.options), options or {})
        locs = deep_merge(deep_merge({}, self.locals), locals or {})
        locs.setdefault("current_path", self.destination_path)

        if "layout" not in opts and self.ext in _NO_LAYOUT_EXTS:
            opts["layout"] = False

        return self._store.renderers.render(Path(source.full_path), locs, opts)


class ProxyResource(Resource):
    """A resource whose content is another resource's.

    The target is checked for existence only when it is resolved, so
    proxies may be declared before their targets exist.

    Raises:
        SelfProxyError: ``target`` is the proxy's own path.

    """

    def __init__(self, store: Store, path: str, target: str) -> None:
        super().__init__(store, path)

        target = normalize_path(target)
        if target == self.path:
            msg = f"You can't proxy {self.path} to itself!"
            raise SelfProxyError(msg)
        self.target = target

    def target_resource(self) -> Resource:
        """The resource this proxy renders.

        Raises:
            UnresolvedProxyError: No resource exists at the target path.
            ChainedProxyError: The target is itself a proxy.

        """
        resource = self._store.find_by_path(self.target)

        if resource is None:
            msg = f"Path {self.path} proxies to unknown file {self.target}"
            raise UnresolvedProxyError(msg)

        if isinstance(resource, ProxyResource):
            msg = f"You can't proxy {self.path} to {self.target} which is itself a proxy."
            raise ChainedProxyError(msg)

        return resource

    @property
    def source_file(self) -> SourceFile | None:
        return self.target_resource().source_file

    def ignored(self) -> bool:
        # Proxies are only ignored by their own path.
        return self._ignored or self._store.ignored(self.path)

    def content_type(self) -> str | None:
        mime = super().content_type()
        if mime is not None:
            return mime
        return self.target_resource().content_type()
