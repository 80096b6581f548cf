"""Load SitemillConfig from sitemill.yaml if present.

Merges file config with CLI kwargs. CLI overrides file.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

import yaml

from sitemill._errors import ConfigError
from sitemill.config import SitemillConfig

_CONFIG_KEYS = frozenset({
    "source_dir", "build_dir", "layouts_dir", "setup_file",
    "index_file", "strip_index_file", "trailing_slash", "http_prefix",
    "watcher_disable", "force_polling", "watcher_debounce", "watcher_step",
    "clean", "glob",
})


def load_config(root: Path, **overrides: object) -> SitemillConfig:
    """Load SitemillConfig from root, optionally merging sitemill.yaml.

    Looks for sitemill.yaml, sitemill.yml, or sitemill.toml in root. If found,
    loads and merges with overrides. Overrides take precedence; ``None``
    overrides are treated as "not given".
    """
    file_config = _read_sitemill_config(root)
    merged = {**file_config, **{k: v for k, v in overrides.items() if v is not None}}
    unknown = sorted(set(merged) - _CONFIG_KEYS)
    if unknown:
        msg = f"Unknown configuration keys: {', '.join(unknown)}"
        raise ConfigError(msg)
    # Normalize build_dir to Path
    if "build_dir" in merged and not isinstance(merged["build_dir"], Path):
        merged["build_dir"] = Path(str(merged["build_dir"]))
    return SitemillConfig(root=root, **merged)


def _read_sitemill_config(root: Path) -> dict[str, object]:
    """Read sitemill config from yaml/toml if present. Returns empty dict otherwise."""
    for name in ("sitemill.yaml", "sitemill.yml"):
        path = root / name
        if path.is_file():
            return _parse_yaml(path)
    toml_path = root / "sitemill.toml"
    if toml_path.is_file():
        return _parse_toml(toml_path)
    return {}


def _parse_yaml(path: Path) -> dict[str, object]:
    """Parse YAML config."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        msg = f"Cannot read {path.name}: {exc}"
        raise ConfigError(msg) from exc
    if not isinstance(data, dict):
        msg = f"{path.name} must contain a mapping at the top level"
        raise ConfigError(msg)
    return _flatten_sitemill_section(data)


def _parse_toml(path: Path) -> dict[str, object]:
    """Parse TOML config."""
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as exc:
        msg = f"Cannot read {path.name}: {exc}"
        raise ConfigError(msg) from exc
    return _flatten_sitemill_section(data)


def _flatten_sitemill_section(data: dict[str, object]) -> dict[str, object]:
    """Extract sitemill.* keys into top-level config."""
    result: dict[str, object] = {}
    section = data.get("sitemill")
    if isinstance(section, dict):
        for k, v in section.items():
            result[k] = v
    for k, v in data.items():
        if k != "sitemill" and k in _CONFIG_KEYS:
            result[k] = v
    return result
