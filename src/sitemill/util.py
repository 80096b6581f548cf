"""Path and mapping helpers shared by the watcher, sitemap and builder."""

from __future__ import annotations

import fnmatch
import unicodedata
from collections.abc import Callable, Mapping
from pathlib import Path
from re import Pattern
from typing import Any

# Output files starting with a dot are left alone, except these.
DOTFILE_ALLOWLIST: frozenset[str] = frozenset({".htaccess", ".htpasswd"})


def normalize_path(path: str) -> str:
    """Normalize a sitemap path: forward slashes, no leading slash, escaped spaces.

    Unicode is normalized to NFC so that paths coming from file systems that
    decompose characters (macOS) compare equal to paths typed by hand.

    """
    path = unicodedata.normalize("NFC", path.replace("\\", "/"))
    return path.lstrip("/").replace(" ", "%20")


def path_match(matcher: str | Pattern[str] | Callable[[str], bool], path: str) -> bool:
    """Whether ``path`` matches a sitemap matcher.

    Strings containing ``*`` are globs, other strings must match exactly,
    compiled patterns are searched, and callables are called with the path.

    """
    if isinstance(matcher, str):
        if "*" in matcher:
            return fnmatch.fnmatchcase(path, matcher)
        return path == matcher
    if isinstance(matcher, Pattern):
        return matcher.search(path) is not None
    return bool(matcher(path))


def all_files_under(path: Path) -> list[Path]:
    """Every regular file below ``path``, sorted, following symlinks.

    A missing path yields an empty list; a file yields itself.

    """
    if path.is_file():
        return [path]
    if not path.is_dir():
        return []
    return sorted(p for p in path.rglob("*") if p.is_file())


def is_hidden_output(relative: Path) -> bool:
    """Whether an output path is a dotfile (or inside a dot directory) to keep."""
    if relative.name in DOTFILE_ALLOWLIST:
        return False
    return any(part.startswith(".") for part in relative.parts)


def deep_merge(base: dict[str, Any], new: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``new`` into ``base`` in place and return ``base``.

    Nested mappings are merged recursively; everything else in ``new``
    overwrites the value in ``base``.

    """
    for key, value in new.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            deep_merge(current, value)
        elif isinstance(value, Mapping):
            base[key] = deep_merge({}, value)
        else:
            base[key] = value
    return base
