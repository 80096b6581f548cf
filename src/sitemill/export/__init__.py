"""Export layer — build output generation.

Renders or copies every resource into the build directory, rewriting
only files whose content changed and removing files no longer produced.
"""

from sitemill.export.builder import SORT_ORDER, Builder, sort_key

__all__ = ["SORT_ORDER", "Builder", "sort_key"]
