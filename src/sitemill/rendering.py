"""Renderer contract — how templated source files become text.

Sitemill does not ship a template engine.  Engines are registered per
source extension; a resource whose source file has a registered extension
is a template and is rendered through it, everything else is either
copied byte-for-byte (binary) or passed through as text.
"""

from __future__ import annotations

import mimetypes
import traceback
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

from sitemill._errors import RenderError

# Bytes that do not appear in text files.
_BINARY_BYTES = frozenset({
    0, 1, 2, 3, 4, 5, 6, 11, 14, 15, 16, 17, 18, 19, 20,
    21, 22, 23, 24, 25, 26, 28, 29, 30, 31,
})

_SNIFF_SIZE = 4096


class Renderer(Protocol):
    """Renders one source file with the given locals and options."""

    def render(self, source: Path, locals: dict[str, Any], options: dict[str, Any]) -> str: ...


class _CallableRenderer:
    """Adapts a plain function to the Renderer protocol."""

    __slots__ = ("_func",)

    def __init__(self, func: Callable[[Path, dict[str, Any], dict[str, Any]], str]) -> None:
        self._func = func

    def render(self, source: Path, locals: dict[str, Any], options: dict[str, Any]) -> str:
        return self._func(source, locals, options)


def _normalize_ext(ext: str) -> str:
    ext = ext.lower()
    return ext if ext.startswith(".") else f".{ext}"


class RendererRegistry:
    """Maps source file extensions to renderers.

    Extensions are case-insensitive and may be given with or without the
    leading dot.

    """

    __slots__ = ("_renderers",)

    def __init__(self) -> None:
        self._renderers: dict[str, Renderer] = {}

    def register(self, ext: str, renderer: Renderer | Callable[..., str]) -> None:
        """Register ``renderer`` for source files ending in ``ext``."""
        if not hasattr(renderer, "render"):
            renderer = _CallableRenderer(renderer)  # type: ignore[arg-type]
        self._renderers[_normalize_ext(ext)] = renderer  # type: ignore[assignment]

    def get(self, ext: str) -> Renderer | None:
        """The renderer for ``ext``, or None."""
        if not ext:
            return None
        return self._renderers.get(_normalize_ext(ext))

    def registered(self, ext: str) -> bool:
        return self.get(ext) is not None

    @property
    def extensions(self) -> tuple[str, ...]:
        """Registered extensions, sorted."""
        return tuple(sorted(self._renderers))

    def render(self, source: Path, locals: dict[str, Any], options: dict[str, Any]) -> str:
        """Render ``source`` with the renderer registered for its extension.

        Raises:
            RenderError: No renderer is registered, or the renderer failed.
                Failures other than RenderError are wrapped with their
                traceback as ``trace``.

        """
        renderer = self.get(source.suffix)
        if renderer is None:
            msg = f"No renderer registered for {source.suffix!r} ({source.name})"
            raise RenderError(msg)
        try:
            return renderer.render(source, locals, options)
        except RenderError:
            raise
        except Exception as exc:
            msg = f"Failed to render {source.name}: {exc}"
            raise RenderError(msg, trace=traceback.format_exc()) from exc


def read_source(path: Path) -> str:
    """Raw text of a non-template source file.

    Line endings are kept and undecodable bytes survive as surrogates, so
    ``encode_output`` gives back the exact source bytes.

    """
    with path.open(encoding="utf-8", errors="surrogateescape", newline="") as fh:
        return fh.read()


def encode_output(text: str) -> bytes:
    """Bytes to write for rendered or passed-through text."""
    return text.encode("utf-8", errors="surrogateescape")


def nonbinary_mime(mime: str) -> bool:
    """Is the MIME type known to be text?"""
    return (
        mime.startswith("text/")
        or "xml" in mime
        or "json" in mime
        or "javascript" in mime
    )


def contents_include_binary_bytes(path: Path) -> bool:
    """Read the first few KiB and look for control bytes."""
    with path.open("rb") as fh:
        head = fh.read(_SNIFF_SIZE)
    return any(byte in _BINARY_BYTES for byte in head)


def is_binary(path: Path, renderers: RendererRegistry | None = None) -> bool:
    """Whether ``path`` should be copied as bytes rather than rendered.

    Gzipped SVGs are always binary and files with a registered renderer
    never are.  Otherwise the MIME type decides, and unknown types are
    sniffed.

    """
    ext = path.suffix.lower()
    if ext == ".svgz":
        return True
    if renderers is not None and renderers.registered(ext):
        return False

    mime, _encoding = mimetypes.guess_type(path.name)
    if mime is not None:
        return not nonbinary_mime(mime)
    return contents_include_binary_bytes(path)
