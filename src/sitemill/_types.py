"""Shared type definitions for sitemill."""

from collections.abc import Callable
from re import Pattern
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from sitemill.sources.file import SourceFile

# Mode of operation
type SitemillMode = Literal["build", "dev"]

# Logical type of a watched directory (e.g., "source", "data")
type SourceType = str

# Scope of a watcher ignore entry: every type, or one logical type
type IgnoreScope = Literal["all"] | SourceType

# Watcher ignore matcher: regex against the relative path, or a predicate
type FileMatcher = Pattern[str] | Callable[[SourceFile], bool]

# Sitemap ignore matcher: exact path, glob, regex, or predicate
type PathMatcher = str | Pattern[str] | Callable[[str], bool]

# Outcome of writing one output file
type BuildEventKind = Literal["created", "updated", "identical", "deleted", "error"]

# Resource metadata block: {"options": ..., "locals": ..., "page": ...}
type Metadata = dict[str, dict[str, Any]]
