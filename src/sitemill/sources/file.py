"""SourceFile — immutable descriptor of one watched file."""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class SourceFile:
    """One file known to a watched directory.

    Attributes:
        relative_path: Path relative to the watched directory.
        full_path: Absolute path on disk.
        directory: The watched directory the file belongs to.
        type: Logical type of the watched directory (e.g., ``"source"``).

    """

    relative_path: Path
    full_path: Path
    directory: Path
    type: str

    @property
    def posix_path(self) -> str:
        """The relative path with forward slashes, as matchers see it."""
        return self.relative_path.as_posix()
