"""Tests for sitemill.export.builder — writing the sitemap to disk."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from sitemill._errors import ConfigError
from sitemill.app import Site
from sitemill.config import SitemillConfig
from sitemill.export.builder import SORT_ORDER, Builder, sort_key
from sitemill.observability.events import BuildEvent, BuildFinished
from sitemill.sitemap.resource import Resource

from .conftest import PNG_BYTES, format_renderer


def make_site(config: SitemillConfig, renderer: Any = format_renderer) -> Site:
    site = Site(config, mode="build")
    site.register_renderer(".tmpl", renderer)
    site.ready()
    return site


def run_build(config: SitemillConfig, **kwargs: Any) -> tuple[bool, list[BuildEvent], Builder]:
    site = make_site(config)
    builder = site.builder(**kwargs)
    events: list[BuildEvent] = []
    builder.on_build_event(events.append)
    return builder.run(), events, builder


def outcomes(events: list[BuildEvent], build_dir: Path) -> dict[str, str]:
    return {Path(e.target).relative_to(build_dir).as_posix(): e.kind for e in events}


# ---------------------------------------------------------------------------
# Sort order
# ---------------------------------------------------------------------------


class TestSortKey:
    """Extension table ordering."""

    def test_listed_in_table_order(self) -> None:
        assert sort_key(".png") < sort_key(".woff") < sort_key(".js") < sort_key(".css")

    def test_unlisted_last(self) -> None:
        assert sort_key(".html") > sort_key(SORT_ORDER[-1])
        assert sort_key("") == sort_key(".html")


# ---------------------------------------------------------------------------
# Diffing
# ---------------------------------------------------------------------------


class TestDiffing:
    """created / updated / identical classification."""

    def test_first_build_creates(self, config: SitemillConfig) -> None:
        ok, events, builder = run_build(config)
        build = config.build_path

        assert ok
        assert set(outcomes(events, build).values()) == {"created"}
        assert (build / "index.html").read_text() == "<h1>Home</h1>\n"
        assert (build / "images" / "logo.png").read_bytes() == PNG_BYTES
        assert builder.events["created"]

    def test_rebuild_is_identical_and_untouched(self, config: SitemillConfig) -> None:
        run_build(config)
        build = config.build_path
        mtimes = {p: p.stat().st_mtime_ns for p in build.rglob("*") if p.is_file()}

        ok, events, _builder = run_build(config)

        assert ok
        assert set(outcomes(events, build).values()) == {"identical"}
        assert {p: p.stat().st_mtime_ns for p in build.rglob("*") if p.is_file()} == mtimes

    def test_changed_source_updates(self, config: SitemillConfig) -> None:
        run_build(config)
        (config.source_path / "about.html").write_text("<h1>About us</h1>\n")
        (config.source_path / "images" / "logo.png").write_bytes(PNG_BYTES + b"\x00")

        _ok, events, _builder = run_build(config)
        result = outcomes(events, config.build_path)

        assert result["about.html"] == "updated"
        assert result["images/logo.png"] == "updated"
        assert result["index.html"] == "identical"
        assert (config.build_path / "about.html").read_text() == "<h1>About us</h1>\n"

    def test_template_rendered(self, config: SitemillConfig) -> None:
        (config.source_path / "hello.html.tmpl").write_text("Hello from {current_path}")
        run_build(config)
        assert (config.build_path / "hello.html").read_text() == "Hello from hello.html"

    def test_escaped_space_unescaped_on_disk(self, config: SitemillConfig) -> None:
        (config.source_path / "my page.html").write_text("spaced")
        run_build(config)
        assert (config.build_path / "my page.html").read_text() == "spaced"

    def test_no_temp_files_left(self, config: SitemillConfig) -> None:
        run_build(config)
        assert not [p for p in config.build_path.rglob("*.tmp")]

    def test_crlf_text_kept_byte_for_byte(self, config: SitemillConfig) -> None:
        data = b"a { color: red; }\r\nb { margin: 0; }\r\n"
        (config.source_path / "c.css").write_bytes(data)
        (config.source_path / "b.js").write_bytes(b"one();\r\ntwo();\r\n")

        ok, _events, _builder = run_build(config)

        assert ok
        assert (config.build_path / "c.css").read_bytes() == data
        assert (config.build_path / "b.js").read_bytes() == b"one();\r\ntwo();\r\n"

    def test_non_utf8_text_kept_byte_for_byte(self, config: SitemillConfig) -> None:
        data = "café crème\n".encode("latin-1")
        (config.source_path / "notes.txt").write_bytes(data)

        ok, events, _builder = run_build(config)

        assert ok
        assert outcomes(events, config.build_path)["notes.txt"] == "created"
        assert (config.build_path / "notes.txt").read_bytes() == data

    def test_passthrough_rebuild_identical(self, config: SitemillConfig) -> None:
        (config.source_path / "notes.txt").write_bytes(b"caf\xe9\r\n")
        run_build(config)

        _ok, events, _builder = run_build(config)
        assert outcomes(events, config.build_path)["notes.txt"] == "identical"


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


class TestOrdering:
    """Stylesheets first, then the extension table, then the rest."""

    def test_end_to_end_order(self, tmp_path: Path) -> None:
        source = tmp_path / "source"
        source.mkdir()
        (source / "b.js").write_text("b")
        (source / "a.png").write_bytes(PNG_BYTES)
        (source / "c.css").write_text("c")

        _ok, events, _builder = run_build(SitemillConfig(root=tmp_path))

        assert [Path(e.target).name for e in events] == ["c.css", "a.png", "b.js"]

    def test_full_site_order(self, config: SitemillConfig) -> None:
        _ok, events, _builder = run_build(config)
        names = [Path(e.target).relative_to(config.build_path).as_posix() for e in events]

        assert names.index("css/site.css") == 0
        assert names.index("images/logo.png") < names.index("js/app.js")
        assert names.index("js/app.js") < names.index("about.html")

    def test_files_generated_during_css_are_built(self, config: SitemillConfig) -> None:
        generated = config.source_path / "generated.txt"

        def generating(source: Path, locals: dict[str, Any], options: dict[str, Any]) -> str:
            generated.write_text("made while rendering css")
            return "body { color: red; }"

        (config.source_path / "theme.css.tmpl").write_text("")
        site = make_site(config, renderer=generating)
        assert site.builder().run()

        assert (config.build_path / "theme.css").read_text() == "body { color: red; }"
        assert (config.build_path / "generated.txt").read_text() == "made while rendering css"

    def test_glob_limits_non_css(self, config: SitemillConfig) -> None:
        _ok, events, _builder = run_build(config, glob="*.html")
        built = set(outcomes(events, config.build_path))

        assert "css/site.css" in built
        assert "index.html" in built
        assert "blog/index.html" in built
        assert "images/logo.png" not in built
        assert "js/app.js" not in built


# ---------------------------------------------------------------------------
# Cleaning
# ---------------------------------------------------------------------------


class TestCleaning:
    """Stale output removal."""

    def _seed(self, build: Path) -> None:
        (build / "old").mkdir(parents=True)
        (build / "old" / "stale.html").write_text("stale")
        (build / ".keep").write_text("keep")
        (build / ".htaccess").write_text("stale access")

    def test_clean_removes_stale(self, config: SitemillConfig) -> None:
        build = config.build_path
        self._seed(build)

        ok, events, _builder = run_build(config)
        result = outcomes(events, build)

        assert ok
        assert result["old/stale.html"] == "deleted"
        assert result[".htaccess"] == "deleted"
        assert ".keep" not in result
        assert (build / ".keep").exists()
        assert not (build / "old" / "stale.html").exists()
        assert [e.kind for e in events].count("deleted") == 2

    def test_produced_files_survive(self, config: SitemillConfig) -> None:
        run_build(config)
        _ok, events, _builder = run_build(config)
        assert "deleted" not in {e.kind for e in events}
        assert (config.build_path / "index.html").exists()

    def test_no_clean_keeps_stale(self, config: SitemillConfig) -> None:
        build = config.build_path
        self._seed(build)

        _ok, events, _builder = run_build(config, clean=False)

        assert "deleted" not in {e.kind for e in events}
        assert (build / "old" / "stale.html").exists()

    def test_htaccess_from_source_survives(self, config: SitemillConfig) -> None:
        (config.source_path / ".htaccess").write_text("Options -Indexes\n")
        run_build(config)
        _ok, _events, _builder = run_build(config)
        assert (config.build_path / ".htaccess").read_text() == "Options -Indexes\n"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrors:
    """Per-resource failures are reported and the build carries on."""

    def test_render_failure_reported(self, config: SitemillConfig) -> None:
        (config.source_path / "broken.html.tmpl").write_text("{missing}")

        ok, events, builder = run_build(config)
        result = outcomes(events, config.build_path)

        assert not ok
        assert result["broken.html"] == "error"
        assert result["index.html"] == "created"
        error = next(e for e in events if e.kind == "error")
        assert "missing" in (error.extra or "")
        assert "Traceback" in (error.extra or "")
        assert builder.events["error"] == [config.build_path / "broken.html"]

    def test_unresolved_proxy_reported(self, config: SitemillConfig) -> None:
        site = make_site(config)
        site.proxy("ghost.html", "nowhere.html")
        builder = site.builder()
        events: list[BuildEvent] = []
        builder.on_build_event(events.append)

        assert not builder.run()
        assert outcomes(events, config.build_path)["ghost.html"] == "error"

    def test_binary_without_source_reported(self, config: SitemillConfig) -> None:
        site = make_site(config)
        resource = Resource(site.store, "ghost.png")
        resource.binary = lambda: True  # type: ignore[method-assign]
        builder = site.builder()
        events: list[BuildEvent] = []
        builder.on_build_event(events.append)

        builder.output_resource(resource)

        assert [e.kind for e in events] == ["error"]
        assert "no source file" in (events[0].extra or "")

    def test_build_dir_equal_to_source_rejected(self, site_root: Path) -> None:
        config = SitemillConfig(root=site_root, build_dir=Path("source"))
        site = Site(config, mode="build")
        with pytest.raises(ConfigError, match="build_dir"):
            site.builder()

    def test_build_dir_parent_of_source_rejected(self, site_root: Path) -> None:
        config = SitemillConfig(root=site_root, build_dir=site_root)
        site = Site(config, mode="build")
        with pytest.raises(ConfigError):
            site.builder()


# ---------------------------------------------------------------------------
# Hooks and reporting
# ---------------------------------------------------------------------------


class TestHooks:
    """before/after hooks and collector reporting."""

    def test_hooks_run_in_order(self, config: SitemillConfig) -> None:
        site = make_site(config)
        builder = site.builder()
        calls: list[str] = []
        builder.before_build(lambda b: calls.append("before"))
        builder.on_build_event(lambda e: calls.append("event"))
        builder.after_build(lambda b: calls.append("after"))

        builder.run()

        assert calls[0] == "before"
        assert calls[-1] == "after"
        assert set(calls[1:-1]) == {"event"}

    def test_hooks_receive_builder(self, config: SitemillConfig) -> None:
        site = make_site(config)
        builder = site.builder()
        seen: list[Builder] = []
        builder.after_build(seen.append)
        builder.run()
        assert seen == [builder]

    def test_collector_records_finish(self, config: SitemillConfig) -> None:
        site = make_site(config)
        site.builder().run()

        finished = site.collector.log.query(event_type=BuildFinished)
        assert len(finished) == 1
        event = finished[0]
        assert isinstance(event, BuildFinished)
        assert event.success
        assert event.counts["created"] == 6

    def test_events_property_is_copy(self, config: SitemillConfig) -> None:
        _ok, _events, builder = run_build(config)
        snapshot = builder.events
        snapshot["created"].clear()
        assert builder.events["created"]
