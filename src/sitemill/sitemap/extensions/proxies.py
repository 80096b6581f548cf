"""Proxy manipulator — virtual pages rendered from another resource.

    site.proxies.proxy("/about/team.html", "/templates/person.html",
                       locals={"person": "ada"}, ignore=True)

declares a page at ``about/team.html`` whose content is the
``templates/person.html`` template rendered with ``person="ada"``.
``ignore=True`` keeps the template itself out of the build.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sitemill._errors import SelfProxyError
from sitemill.sitemap.resource import ProxyResource
from sitemill.util import normalize_path

if TYPE_CHECKING:
    from sitemill.sitemap.store import ResourceList, Store


@dataclass(frozen=True, slots=True)
class ProxyDescriptor:
    """A declared proxy, turned into a fresh ProxyResource on every rebuild.

    Attributes:
        path: Path of the new page.
        target: Path of the resource that supplies its content.
        locals: Template locals for the new page.
        data: Page data for the new page.
        options: Rendering options (e.g., ``layout``).

    """

    path: str
    target: str
    locals: dict[str, Any] = field(default_factory=dict)
    data: dict[str, Any] = field(default_factory=dict)
    options: dict[str, Any] = field(default_factory=dict)

    def to_resource(self, store: Store) -> ProxyResource:
        resource = ProxyResource(store, self.path, self.target)
        resource.add_metadata({
            "locals": self.locals,
            "page": self.data,
            "options": self.options,
        })
        return resource


class Proxies:
    """Holds proxy declarations and appends them to the resource list."""

    def __init__(self, store: Store) -> None:
        self._store = store
        self._descriptors: list[ProxyDescriptor] = []

    @property
    def descriptors(self) -> tuple[ProxyDescriptor, ...]:
        return tuple(self._descriptors)

    def proxy(
        self,
        path: str,
        target: str,
        *,
        ignore: bool = False,
        locals: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        **options: Any,
    ) -> ProxyDescriptor:
        """Declare a page at ``path`` rendered from the resource at ``target``.

        Raises:
            SelfProxyError: ``path`` and ``target`` are the same.

        """
        path = normalize_path(path)
        target = normalize_path(target)
        if path == target:
            msg = f"You can't proxy {path} to itself!"
            raise SelfProxyError(msg)

        if ignore:
            self._store.ignore(target)

        descriptor = ProxyDescriptor(
            path=path,
            target=target,
            locals=dict(locals or {}),
            data=dict(data or {}),
            options=options,
        )
        self._descriptors.append(descriptor)
        self._store.invalidate("added_proxy")
        return descriptor

    def manipulate_resource_list(self, resources: ResourceList) -> ResourceList:
        return resources + [d.to_resource(self._store) for d in list(self._descriptors)]
