"""
Plugin profile for easyplug.

A PluginProfile owns one plugin root directory and one TypeIndex. On
creation (and on every ``reload()``) it runs the full pipeline:

    root directory -> ArchiveScanner -> archives
                   -> TypeLoader (one context per archive) -> types
                   -> fresh TypeIndex -> swapped in as the active index

Queries are served from the active index until the next reload. A reload
builds its index privately, so concurrent queries see either the old or
the new catalog.

Name Resolution:
    - by_full_name: exact qualified name
    - by_simple_name: exact short name; if several types share it, only
      the last loaded one is reachable
    - by_name: qualified name first, then short name. A type whose
      qualified name is ``X`` always wins over another type whose short
      name is ``X``.

Example:
    from easyplug import PluginProfile

    profile = PluginProfile("./plugins")
    exporter = profile.make_object("CsvExporter", ";")
    for loaded in profile.all_classes():
        print(loaded.qualified_name)
"""

from pathlib import Path
from typing import TYPE_CHECKING, Any, Hashable, Mapping
import logging
import threading

from easyplug.loader import SharedContext, TypeLoader
from easyplug.registry import TagProvider, TypeIndex
from easyplug.scanner import DEFAULT_ARCHIVE_SUFFIX, DEFAULT_UNIT_SUFFIX, ArchiveScanner
from easyplug.sdk import LoadedType, PluginError

if TYPE_CHECKING:
    from easyplug.config.settings import Settings

logger = logging.getLogger(__name__)


class TypeNotFoundError(PluginError, LookupError):
    """Raised when no plugged-in type matches a lookup.

    Attributes:
        key: The name or tag that was looked up.
        kind: Which index was searched (e.g. "full name").
    """

    def __init__(self, key: Any, kind: str):
        self.key = key
        self.kind = kind
        super().__init__(f"No type with {kind}: {key!r} found to be plugged in")


class PluginProfile:
    """Catalog of plugin types found under a root directory.

    Attributes:
        root: Directory scanned for archives.
        scanner: Finds archives and lists their type names.
        loader: Resolves type names into loaded types.

    Example:
        profile = PluginProfile(
            "./plugins",
            tag_provider=lambda t: getattr(t.cls, "kind", t.qualified_name),
            external_tags={"com.x.Foo": "default"},
        )
        default = profile.by_external_tag("default")
    """

    def __init__(
        self,
        root: str | Path,
        *,
        archive_suffix: str = DEFAULT_ARCHIVE_SUFFIX,
        unit_suffix: str = DEFAULT_UNIT_SUFFIX,
        tag_provider: TagProvider | None = None,
        external_tags: Mapping[str, Hashable] | None = None,
        shared: SharedContext | None = None,
        autoload: bool = True,
    ):
        """Initialize the profile and, unless disabled, load plugins.

        Args:
            root: Plugin root directory (or a single archive).
            archive_suffix: Suffix of archive files.
            unit_suffix: Suffix of type entries inside archives.
            tag_provider: Custom tag function for the index.
            external_tags: External tags to attach, by qualified name.
            shared: Shared context plugin imports are delegated to.
            autoload: Run ``reload()`` immediately.
        """
        self.root = Path(root)
        self.scanner = ArchiveScanner(archive_suffix, unit_suffix)
        self.loader = TypeLoader(shared)
        self._tag_provider = tag_provider
        self._external_tags: dict[str, Hashable] = dict(external_tags or {})
        self._lock = threading.Lock()
        self._index = TypeIndex(tag_provider)
        self._archives: tuple[Path, ...] = ()

        if autoload:
            self.reload()

    @classmethod
    def from_settings(cls, settings: "Settings | None" = None, **kwargs: Any) -> "PluginProfile":
        """Create a profile from configuration.

        Args:
            settings: Settings to use. Defaults to the module-level settings.
            **kwargs: Extra keyword arguments for the constructor; they
                take precedence over values derived from the settings.

        Returns:
            A new PluginProfile.
        """
        if settings is None:
            from easyplug.config.settings import settings

        options: dict[str, Any] = {
            "archive_suffix": settings.ARCHIVE_SUFFIX,
            "unit_suffix": settings.UNIT_SUFFIX,
            "shared": SharedContext(settings.SEARCH_PATHS),
            "autoload": settings.AUTOLOAD,
        }
        options.update(kwargs)
        return cls(settings.PLUGINS_DIR, **options)

    @property
    def archives(self) -> list[Path]:
        """Archives found during the last reload."""
        return list(self._archives)

    @property
    def index(self) -> TypeIndex:
        """The active type index."""
        return self._index

    @property
    def tag_provider(self) -> TagProvider | None:
        """Custom tag function used for the index."""
        return self._tag_provider

    @tag_provider.setter
    def tag_provider(self, provider: TagProvider | None) -> None:
        # Types already indexed keep their tags until the next reload
        self._tag_provider = provider
        self._index.tag_provider = provider

    @property
    def external_tags(self) -> dict[str, Hashable]:
        """External tags attached at each reload, by qualified name."""
        return dict(self._external_tags)

    def reload(self) -> int:
        """Rescan the root directory and replace the catalog.

        Unreadable directories and archives, and types that fail to
        resolve, are skipped. The new index is swapped in only once it is
        complete.

        Returns:
            Number of distinct types in the new catalog.
        """
        with self._lock:
            try:
                root_exists = self.root.exists()
            except OSError as e:
                logger.warning(f"Cannot access plugin root {self.root}: {e}")
                root_exists = False
            else:
                if not root_exists:
                    logger.warning(f"Plugin root does not exist: {self.root}")

            archives: list[Path] = []
            if root_exists:
                logger.info(f"Scanning for plugins in: {self.root}")
                archives = self.scanner.discover_archives(self.root)

            index = TypeIndex(self._tag_provider)
            for archive in archives:
                names = self.scanner.list_class_names(archive)
                if not names:
                    continue
                for loaded_type in self.loader.load_types(archive, names):
                    self._insert(index, loaded_type)

            self._index = index
            self._archives = tuple(archives)

        logger.info(f"Loaded {len(index)} plugin types from {len(archives)} archives")
        return len(index)

    def _insert(self, index: TypeIndex, loaded_type: LoadedType) -> None:
        try:
            if loaded_type.qualified_name in self._external_tags:
                index.add(loaded_type, self._external_tags[loaded_type.qualified_name])
            else:
                index.add(loaded_type)
        except Exception as e:
            logger.warning(f"Failed to index {loaded_type.qualified_name}: {e}")

    def by_full_name(self, name: str) -> LoadedType:
        """Get a type by exact qualified name.

        Raises:
            TypeNotFoundError: If no type has this qualified name.
        """
        found = self._index.find_by_full_name(name)
        if found is None:
            raise TypeNotFoundError(name, "full name")
        return found

    def by_simple_name(self, name: str) -> LoadedType:
        """Get a type by exact short name.

        When several types share the short name, the one loaded last is
        returned.

        Raises:
            TypeNotFoundError: If no type has this short name.
        """
        found = self._index.find_by_simple_name(name)
        if found is None:
            raise TypeNotFoundError(name, "simple name")
        return found

    def by_name(self, name: str) -> LoadedType:
        """Get a type by qualified name, falling back to short name.

        This can surprise: if one type's qualified name equals another
        type's short name (a type in no namespace), the qualified-name
        match is returned.

        Raises:
            TypeNotFoundError: If neither lookup matches.
        """
        index = self._index
        found = index.find_by_full_name(name)
        if found is None:
            found = index.find_by_simple_name(name)
        if found is None:
            raise TypeNotFoundError(name, "name")
        return found

    def by_custom_tag(self, tag: Hashable) -> LoadedType:
        """Get a type by custom tag.

        Raises:
            TypeNotFoundError: If no type has this tag.
        """
        found = self._index.find_by_custom_tag(tag)
        if found is None:
            raise TypeNotFoundError(tag, "custom tag")
        return found

    def by_external_tag(self, tag: Hashable) -> LoadedType:
        """Get a type by external tag.

        Raises:
            TypeNotFoundError: If no type has this tag.
        """
        found = self._index.find_by_external_tag(tag)
        if found is None:
            raise TypeNotFoundError(tag, "external tag")
        return found

    def make_object(self, name: str, /, *args: Any, **kwargs: Any) -> Any:
        """Instantiate a plugged-in type by name.

        The type is resolved with ``by_name``. Without arguments the
        zero-argument constructor is used; otherwise the first constructor
        whose parameter types accept the arguments is called. A ``None``
        argument only fits a parameter that is unannotated or whose type
        hint admits None.

        Args:
            name: Qualified or short name of the type.
            *args: Positional constructor arguments.
            **kwargs: Keyword constructor arguments.

        Returns:
            The new object.

        Raises:
            TypeNotFoundError: If the name does not resolve.
            ConstructionError: If no constructor fits or it raises.
        """
        return self.by_name(name).instantiate(*args, **kwargs)

    def all_classes(self) -> list[LoadedType]:
        """Get every loaded type (no guaranteed order)."""
        return self._index.get_all_classes()

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, name: object) -> bool:
        """Check whether ``by_name`` would find a type."""
        index = self._index
        return (
            index.find_by_full_name(name) is not None
            or index.find_by_simple_name(name) is not None
        )

    def __repr__(self) -> str:
        return (
            f"<PluginProfile root={self.root} "
            f"archives={len(self._archives)} types={len(self._index)}>"
        )
