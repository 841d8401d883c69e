"""Filesystem probe used to detect tooling and trust databases."""

import glob
import shutil
from pathlib import Path


class FilesystemProbe:
    """Existence checks for paths and binaries.

    Probing never creates or modifies anything, so backends can use it to
    decide whether they apply to the current host.
    """

    def path_exists(self, path: str | Path) -> bool:
        return Path(path).exists()

    def is_dir(self, path: str | Path) -> bool:
        return Path(path).is_dir()

    def which(self, name: str) -> str | None:
        """Return the full path of an executable, or None if not found."""
        return shutil.which(name)

    def glob(self, pattern: str) -> list[str]:
        return sorted(glob.glob(pattern))
