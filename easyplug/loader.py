"""
Type loading for easyplug.

This module turns the qualified names listed in an archive into
LoadedType handles. Each archive gets its own loading context, so
archives may ship modules with the same dotted name without clobbering
each other.

Loading Contexts:
    - SharedContext: The base context all archives delegate to. Anything
      a plugin module imports that is not in its own archive comes from
      the regular import system, extended with optional search paths.
    - ArchiveContext: Executes modules straight out of one archive via
      zipimport. While a module runs, the archive is importable so the
      module can import its siblings; afterwards every module that came
      from the archive is moved out of ``sys.modules`` into the context.

Failure Isolation:
    Archives routinely contain modules that are not plugins (helpers,
    package ``__init__`` files, scripts with missing dependencies). Each
    candidate name is resolved on its own; a failure skips that name and
    never aborts the batch.

Example:
    from easyplug.loader import TypeLoader

    loader = TypeLoader()
    types = loader.load_types("plugins/a.zip", ["com.x.Foo", "com.x.Bar"])
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Any, Iterable, Iterator
import importlib.util
import inspect
import logging
import os
import sys
import threading
import zipimport

from easyplug.scanner import UnreadableArchiveError
from easyplug.sdk import LoadedType, PluginError

logger = logging.getLogger(__name__)

# Serializes sys.path / sys.modules manipulation across contexts
_IMPORT_LOCK = threading.RLock()


class ResolutionError(PluginError):
    """Raised when a candidate name cannot be resolved to a class.

    Attributes:
        name: Qualified name of the candidate.
        reason: Reason for the failure.
        archive: Archive the candidate came from.
        original: Original exception if any.
    """

    def __init__(
        self,
        name: str,
        reason: str,
        archive: Path | None = None,
        original: BaseException | None = None,
    ):
        self.name = name
        self.reason = reason
        self.archive = archive
        self.original = original
        super().__init__(f"Failed to resolve '{name}': {reason}")


class SharedContext:
    """Base loading context shared by every archive.

    Attributes:
        search_paths: Extra directories or archives made importable for
            plugin dependencies.
    """

    def __init__(self, search_paths: Iterable[str | Path] = ()):
        self.search_paths: tuple[str, ...] = tuple(str(Path(p)) for p in search_paths)

    @contextmanager
    def activated(self) -> Iterator[None]:
        """Make the search paths importable for the duration of the block.

        Paths already on ``sys.path`` are left alone; paths added here are
        removed again on exit.
        """
        added = [path for path in self.search_paths if path not in sys.path]
        sys.path.extend(added)
        try:
            yield
        finally:
            for path in added:
                try:
                    sys.path.remove(path)
                except ValueError:
                    pass

    def __repr__(self) -> str:
        return f"<SharedContext paths={len(self.search_paths)}>"


class ArchiveContext:
    """Loading context scoped to a single archive.

    Attributes:
        archive: The archive modules are loaded from.
        shared: The context plugin imports are delegated to.
        modules: Modules executed from this archive, by dotted name.
    """

    def __init__(self, archive: str | Path, shared: SharedContext):
        self.archive = Path(archive)
        self.shared = shared
        self.modules: dict[str, ModuleType] = {}

        try:
            self._importer = zipimport.zipimporter(str(self.archive))
        except zipimport.ZipImportError as e:
            raise UnreadableArchiveError(self.archive, str(e)) from e
        # The archive may have changed since a previous reload
        self._importer.invalidate_caches()

    def resolve(self, qualified_name: str) -> LoadedType:
        """Resolve a qualified name to a loaded type.

        Executes the module ``qualified_name`` from the archive and takes
        the class named after the last segment.

        Args:
            qualified_name: Dotted name, e.g. ``"com.x.Foo"``.

        Returns:
            LoadedType for the class.

        Raises:
            ResolutionError: If the module is missing or fails to execute,
                or does not define a matching class.
        """
        short_name = qualified_name.rpartition(".")[2]
        if not short_name.isidentifier() or short_name.startswith("__"):
            raise ResolutionError(qualified_name, "not a type name", self.archive)

        module = self.modules.get(qualified_name)
        if module is None:
            module = self._execute(qualified_name)

        cls = getattr(module, short_name, None)
        if not inspect.isclass(cls):
            raise ResolutionError(
                qualified_name,
                f"module defines no class '{short_name}'",
                self.archive,
            )
        return LoadedType(qualified_name=qualified_name, cls=cls, archive=self.archive)

    def _execute(self, qualified_name: str) -> ModuleType:
        try:
            # zipimport compiles the source while locating it
            spec = self._importer_for(qualified_name).find_spec(qualified_name)
        except Exception as e:
            raise ResolutionError(
                qualified_name,
                f"{type(e).__name__}: {e}",
                self.archive,
                e,
            ) from e
        if spec is None or spec.loader is None:
            raise ResolutionError(qualified_name, "no such module in archive", self.archive)

        module = importlib.util.module_from_spec(spec)
        with _IMPORT_LOCK, self.shared.activated():
            with self._activated(qualified_name, module):
                try:
                    spec.loader.exec_module(module)
                except (Exception, SystemExit) as e:
                    raise ResolutionError(
                        qualified_name,
                        f"{type(e).__name__}: {e}",
                        self.archive,
                        e,
                    ) from e

        self.modules[qualified_name] = module
        return module

    def _importer_for(self, qualified_name: str) -> zipimport.zipimporter:
        package = qualified_name.rpartition(".")[0]
        if not package:
            return self._importer
        return zipimport.zipimporter(os.path.join(str(self.archive), *package.split(".")))

    @contextmanager
    def _activated(self, name: str, module: ModuleType) -> Iterator[None]:
        """Make the archive importable while ``module`` executes."""
        archive_path = str(self.archive)

        before = set(sys.modules)
        previous = sys.modules.get(name)
        sys.modules[name] = module
        sys.path.insert(0, archive_path)
        try:
            yield
        finally:
            try:
                sys.path.remove(archive_path)
            except ValueError:
                pass
            sys.path_importer_cache.pop(archive_path, None)

            if previous is None:
                sys.modules.pop(name, None)
            else:
                sys.modules[name] = previous

            for added in set(sys.modules) - before:
                if added != name and self._owns(sys.modules.get(added)):
                    self.modules[added] = sys.modules.pop(added)

    def _owns(self, module: Any) -> bool:
        spec = getattr(module, "__spec__", None)
        if spec is None:
            return False

        prefix = str(self.archive) + os.sep
        if spec.origin and spec.origin not in ("namespace", "built-in", "frozen"):
            return spec.origin.startswith(prefix)
        if spec.submodule_search_locations is None:
            return False
        # Namespace portions; an emptied path means the archive was its only source
        locations = list(spec.submodule_search_locations)
        return all(location.startswith(prefix) for location in locations)

    def __repr__(self) -> str:
        return f"<ArchiveContext {self.archive} modules={len(self.modules)}>"


@dataclass
class LoadBatch:
    """Outcome of loading one archive.

    Attributes:
        archive: The archive that was loaded.
        loaded: Successfully resolved types, in candidate order.
        skipped: ``(qualified_name, reason)`` for each failed candidate.
    """

    archive: Path
    loaded: list[LoadedType] = field(default_factory=list)
    skipped: list[tuple[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "archive": str(self.archive),
            "loaded": [t.qualified_name for t in self.loaded],
            "skipped": [{"name": n, "reason": r} for n, r in self.skipped],
        }


class TypeLoader:
    """Loads candidate types from archives.

    Attributes:
        shared: Default shared context for archives.
    """

    def __init__(self, shared: SharedContext | None = None):
        self.shared = shared or SharedContext()

    def load_batch(
        self,
        archive: str | Path,
        candidate_names: Iterable[str],
        shared: SharedContext | None = None,
    ) -> LoadBatch:
        """Resolve every candidate in one fresh archive context.

        Args:
            archive: Archive to load from.
            candidate_names: Qualified names listed for the archive.
            shared: Shared context override for this archive.

        Returns:
            LoadBatch with loaded and skipped candidates.
        """
        names = list(candidate_names)
        batch = LoadBatch(archive=Path(archive))

        try:
            context = ArchiveContext(archive, shared or self.shared)
        except UnreadableArchiveError as e:
            logger.warning(str(e))
            batch.skipped = [(name, e.reason) for name in names]
            return batch

        for name in names:
            try:
                batch.loaded.append(context.resolve(name))
            except ResolutionError as e:
                batch.skipped.append((name, e.reason))
                logger.debug(f"Skipping {name} in {batch.archive}: {e.reason}")

        logger.info(
            f"Loaded {len(batch.loaded)} types from {batch.archive} "
            f"({len(batch.skipped)} skipped)"
        )
        return batch

    def load_types(
        self,
        archive: str | Path,
        candidate_names: Iterable[str],
        shared: SharedContext | None = None,
    ) -> list[LoadedType]:
        """Resolve candidates, returning only the types that loaded."""
        return self.load_batch(archive, candidate_names, shared).loaded
