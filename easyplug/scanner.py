"""
Archive discovery for easyplug.

Finds plugin archives under a directory tree and lists the qualified
names of the type definitions each archive contains, without importing
anything.

Conventions:
    - An archive is a zip file whose name ends with the archive suffix
      (``.zip`` by default, matched case-insensitively).
    - Every non-directory entry ending with the unit suffix (``.py`` by
      default) stands for one type. ``com/x/Foo.py`` names ``com.x.Foo``.

Failures are never fatal here: an unreadable directory or archive simply
contributes nothing to the result.
"""

from pathlib import Path
import logging
import os
import zipfile

from easyplug.sdk import PluginError

logger = logging.getLogger(__name__)

DEFAULT_ARCHIVE_SUFFIX = ".zip"
DEFAULT_UNIT_SUFFIX = ".py"


class UnreadableDirectoryError(PluginError):
    """Raised when a directory cannot be listed."""

    def __init__(self, directory: str | Path, reason: str):
        self.directory = Path(directory)
        self.reason = reason
        super().__init__(f"Cannot read directory '{directory}': {reason}")


class UnreadableArchiveError(PluginError):
    """Raised when an archive cannot be opened or its entries read."""

    def __init__(self, archive: str | Path, reason: str):
        self.archive = Path(archive)
        self.reason = reason
        super().__init__(f"Cannot read archive '{archive}': {reason}")


class ArchiveScanner:
    """Walks directory trees for archives and lists their type names.

    Attributes:
        archive_suffix: File suffix identifying archives.
        unit_suffix: Entry suffix identifying type definitions.

    Example:
        scanner = ArchiveScanner()
        for archive in scanner.discover_archives("./plugins"):
            print(archive, scanner.list_class_names(archive))
    """

    def __init__(
        self,
        archive_suffix: str = DEFAULT_ARCHIVE_SUFFIX,
        unit_suffix: str = DEFAULT_UNIT_SUFFIX,
    ):
        if not archive_suffix:
            raise ValueError("Archive suffix cannot be empty")
        if not unit_suffix:
            raise ValueError("Unit suffix cannot be empty")
        self.archive_suffix = archive_suffix
        self.unit_suffix = unit_suffix

    def is_archive(self, filename: str) -> bool:
        """Check a file name against the archive suffix (case-insensitive)."""
        return filename.lower().endswith(self.archive_suffix.lower())

    def discover_archives(self, root: str | Path) -> list[Path]:
        """Recursively collect every archive under ``root``.

        Directories are descended at any depth; symlinked directories are
        followed, but each real directory is visited only once. Subtrees
        that cannot be read are skipped.

        Args:
            root: Directory to scan. If it is itself an archive file, it
                is the only result.

        Returns:
            Paths of discovered archives. Callers must not rely on order.
        """
        root = Path(root)
        found: list[Path] = []

        if root.is_file():
            if self.is_archive(root.name):
                found.append(root)
            return found

        self._collect(root, found, set())
        logger.debug(f"Found {len(found)} archives under {root}")
        return found

    def _collect(self, directory: Path, found: list[Path], visited: set[Path]) -> None:
        try:
            real = directory.resolve()
        except (OSError, RuntimeError) as e:
            logger.debug(f"Skipping unresolvable directory {directory}: {e}")
            return
        if real in visited:
            return
        visited.add(real)

        try:
            entries = self.walk_directory(directory)
        except UnreadableDirectoryError as e:
            logger.debug(str(e))
            return

        for entry in entries:
            try:
                if entry.is_dir():
                    self._collect(Path(entry.path), found, visited)
                elif entry.is_file() and self.is_archive(entry.name):
                    found.append(Path(entry.path))
            except OSError as e:
                logger.debug(f"Skipping unreadable entry {entry.path}: {e}")

    def walk_directory(self, directory: str | Path) -> list[os.DirEntry]:
        """List one directory level, sorted by name.

        Raises:
            UnreadableDirectoryError: If the directory cannot be listed.
        """
        try:
            with os.scandir(directory) as it:
                return sorted(it, key=lambda entry: entry.name)
        except OSError as e:
            raise UnreadableDirectoryError(directory, str(e)) from e

    def iter_archive(self, archive: str | Path) -> list[tuple[str, bool]]:
        """Read the entry table of an archive.

        Returns:
            ``(entry_name, is_directory)`` pairs in archive order.

        Raises:
            UnreadableArchiveError: If the archive cannot be opened or read.
        """
        try:
            with zipfile.ZipFile(archive) as zf:
                return [(info.filename, info.is_dir()) for info in zf.infolist()]
        except (OSError, zipfile.BadZipFile, zipfile.LargeZipFile, ValueError) as e:
            raise UnreadableArchiveError(archive, str(e)) from e

    def list_class_names(self, archive: str | Path) -> list[str]:
        """List the qualified names of types contained in an archive.

        Path separators in entry names become dots and the unit suffix is
        stripped. An unreadable archive yields an empty list.

        Args:
            archive: Path to the archive.

        Returns:
            Qualified names in archive order (duplicates preserved).
        """
        try:
            entries = self.iter_archive(archive)
        except UnreadableArchiveError as e:
            logger.warning(str(e))
            return []

        names = []
        for entry_name, is_directory in entries:
            if is_directory or not entry_name.endswith(self.unit_suffix):
                continue
            stem = entry_name[: -len(self.unit_suffix)]
            qualified_name = stem.replace("\\", "/").strip("/").replace("/", ".")
            if qualified_name:
                names.append(qualified_name)
        return names

    def __repr__(self) -> str:
        return (
            f"<ArchiveScanner archives=*{self.archive_suffix} "
            f"units=*{self.unit_suffix}>"
        )
