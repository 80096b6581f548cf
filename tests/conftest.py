"""Shared test fixtures for sitemill."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from sitemill.config import SitemillConfig

PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01"


@pytest.fixture
def site_root(tmp_path: Path) -> Path:
    """Create a minimal site for testing.

    Returns the project root; the source tree lives in ``source/``.
    """
    source = tmp_path / "source"
    source.mkdir()
    (source / "index.html").write_text("<h1>Home</h1>\n")
    (source / "about.html").write_text("<h1>About</h1>\n")

    blog = source / "blog"
    blog.mkdir()
    (blog / "index.html").write_text("<h1>Blog</h1>\n")

    css = source / "css"
    css.mkdir()
    (css / "site.css").write_text("body { margin: 0; }\n")

    images = source / "images"
    images.mkdir()
    (images / "logo.png").write_bytes(PNG_BYTES)

    js = source / "js"
    js.mkdir()
    (js / "app.js").write_text("console.log('hi');\n")

    (source / "_nav.html").write_text("<nav></nav>\n")

    layouts = source / "layouts"
    layouts.mkdir()
    (layouts / "base.html").write_text("<html>{{ yield }}</html>\n")

    (source / ".secret").write_text("hidden\n")

    return tmp_path


@pytest.fixture
def config(site_root: Path) -> SitemillConfig:
    """A SitemillConfig rooted at the test site."""
    return SitemillConfig(root=site_root)


def format_renderer(source: Path, locals: dict[str, Any], options: dict[str, Any]) -> str:
    """Tiny template engine: ``str.format`` over the template locals."""
    return source.read_text(encoding="utf-8").format(**locals)


class FakeListener:
    """Stands in for a watchfiles listener; tests push batches by hand."""

    def __init__(self, directory: Path, callback: Callable[..., None]) -> None:
        self.directory = directory
        self.callback = callback
        self.started = False
        self.stopped = False

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def push(
        self,
        modified: list[Path] | None = None,
        added: list[Path] | None = None,
        removed: list[Path] | None = None,
    ) -> None:
        self.callback(modified or [], added or [], removed or [])


class FakeListenerFactory:
    """Listener factory that remembers every listener it built."""

    def __init__(self) -> None:
        self.listeners: list[FakeListener] = []

    def __call__(self, directory: Path, callback: Callable[..., None]) -> FakeListener:
        listener = FakeListener(directory, callback)
        self.listeners.append(listener)
        return listener

    @property
    def last(self) -> FakeListener:
        return self.listeners[-1]


@pytest.fixture
def listener_factory() -> FakeListenerFactory:
    return FakeListenerFactory()
