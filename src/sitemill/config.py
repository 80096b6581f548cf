"""Sitemill configuration.

SitemillConfig is the central configuration object, frozen after creation.
"""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True, slots=True)
class SitemillConfig:
    """Configuration for a sitemill site.

    Attributes:
        root: Path to the project root (contains source/, sitemill.yaml, etc.).
              Always resolved to an absolute path on construction.
        source_dir: Directory containing the source tree, relative to root.
        build_dir: Output directory for builds.
        layouts_dir: Directory (inside source_dir) holding layouts, which
            never become resources on their own.
        setup_file: Python module in root that configures the site.
        index_file: File name treated as a directory index.
        strip_index_file: Drop ``index_file`` from resource URLs.
        trailing_slash: Keep a trailing slash where the index file was stripped.
        http_prefix: Prefix joined onto every resource URL.
        watcher_disable: Never start push observation, even in dev mode.
        force_polling: Ask watchfiles to poll instead of using native events.
        watcher_debounce: Milliseconds watchfiles groups changes for.
        watcher_step: Milliseconds watchfiles waits between checks.
        clean: Remove output files not produced by the current build.
        glob: Only build resources whose destination path matches this glob.

    """

    root: Path = field(default_factory=Path.cwd)
    source_dir: str = "source"
    build_dir: Path = field(default_factory=lambda: Path("build"))
    layouts_dir: str = "layouts"
    setup_file: str = "sitemill_setup.py"
    index_file: str = "index.html"
    strip_index_file: bool = True
    trailing_slash: bool = True
    http_prefix: str = "/"
    watcher_disable: bool = False
    force_polling: bool = False
    watcher_debounce: int = 300
    watcher_step: int = 100
    clean: bool = True
    glob: str | None = None

    def __post_init__(self) -> None:
        # Resolve root to absolute so that watchfiles (which returns
        # absolute paths) can be compared via Path.relative_to().
        if not self.root.is_absolute():
            object.__setattr__(self, "root", self.root.resolve())

    @property
    def source_path(self) -> Path:
        """Absolute path to the source directory."""
        return self.root / self.source_dir

    @property
    def build_path(self) -> Path:
        """Absolute path to the build directory."""
        if self.build_dir.is_absolute():
            return self.build_dir
        return self.root / self.build_dir

    @property
    def setup_path(self) -> Path:
        """Absolute path to the site setup module."""
        return self.root / self.setup_file
