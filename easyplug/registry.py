"""
Type registry for easyplug.

The TypeIndex catalogs loaded types under four independent keys:

    - qualified name (unique; the canonical set of all types)
    - short name (not unique; the last type inserted wins)
    - custom tag, computed by a pluggable ``tag_provider`` at insertion
    - external tag, supplied by the caller at insertion

Consistency:
    All four mappings live in one immutable IndexSnapshot. Writers build
    a new snapshot under a lock and publish it with a single assignment;
    readers fetch the current snapshot once per query. A reader therefore
    sees either the state before an update or after it, never a mix.

Tag Provider:
    Changing ``tag_provider`` does not re-key types already in the index.
    Only types added afterwards are tagged with the new provider.

Example:
    index = TypeIndex(tag_provider=lambda t: t.cls.kind)
    index.add(loaded_type)
    index.add(other_type, external_tag="primary")

    index.find_by_full_name("com.x.Foo")
    index.find_by_custom_tag("exporter")
    index.find_by_external_tag("primary")
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Hashable, Iterable, Mapping
import logging
import threading

from easyplug.sdk import LoadedType

logger = logging.getLogger(__name__)

# Type for custom tag providers
TagProvider = Callable[[LoadedType], Hashable]

_UNSET: Any = object()


def default_tag_provider(loaded_type: LoadedType) -> Hashable:
    """Tag a type with its qualified name."""
    return loaded_type.qualified_name


def _empty() -> Mapping[Any, LoadedType]:
    return MappingProxyType({})


@dataclass(frozen=True)
class IndexSnapshot:
    """Immutable view of all four index mappings.

    Attributes:
        by_full_name: Qualified name to type.
        by_simple_name: Short name to the last type inserted with it.
        by_custom_tag: Custom tag to type.
        by_external_tag: External tag to type.
    """

    by_full_name: Mapping[str, LoadedType] = field(default_factory=_empty)
    by_simple_name: Mapping[str, LoadedType] = field(default_factory=_empty)
    by_custom_tag: Mapping[Hashable, LoadedType] = field(default_factory=_empty)
    by_external_tag: Mapping[Hashable, LoadedType] = field(default_factory=_empty)

    def with_entries(
        self,
        entries: Iterable[tuple[LoadedType, Hashable, Any]],
    ) -> "IndexSnapshot":
        """Build a new snapshot with entries inserted in order.

        Args:
            entries: ``(type, custom_tag, external_tag)`` triples; the
                external tag is skipped when it is the unset marker.

        Returns:
            The new snapshot. This snapshot is left unchanged.
        """
        full = dict(self.by_full_name)
        simple = dict(self.by_simple_name)
        custom = dict(self.by_custom_tag)
        external = dict(self.by_external_tag)

        for loaded_type, custom_tag, external_tag in entries:
            full[loaded_type.qualified_name] = loaded_type
            simple[loaded_type.short_name] = loaded_type
            custom[custom_tag] = loaded_type
            if external_tag is not _UNSET:
                external[external_tag] = loaded_type

        return IndexSnapshot(
            by_full_name=MappingProxyType(full),
            by_simple_name=MappingProxyType(simple),
            by_custom_tag=MappingProxyType(custom),
            by_external_tag=MappingProxyType(external),
        )


class TypeIndex:
    """Multi-keyed registry of loaded types.

    Lookups never raise; a miss returns None. Collisions overwrite the
    earlier mapping in that index only; the other indexes keep whatever
    they held.

    Attributes:
        _snapshot: The currently published IndexSnapshot.
        _tag_provider: Function computing the custom tag of a type.
        _lock: Serializes writers.
    """

    def __init__(self, tag_provider: TagProvider | None = None):
        """Initialize an empty index.

        Args:
            tag_provider: Custom tag function. Defaults to the qualified name.
        """
        self._tag_provider: TagProvider = tag_provider or default_tag_provider
        self._lock = threading.Lock()
        self._snapshot = IndexSnapshot()

    @property
    def tag_provider(self) -> TagProvider:
        """Function computing the custom tag of newly added types."""
        return self._tag_provider

    @tag_provider.setter
    def tag_provider(self, provider: TagProvider | None) -> None:
        # Existing entries keep the tags they were inserted with
        self._tag_provider = provider or default_tag_provider

    def add(self, loaded_type: LoadedType, external_tag: Hashable = _UNSET) -> None:
        """Add a type under its qualified name, short name and custom tag.

        Args:
            loaded_type: The type to add.
            external_tag: Optional caller-supplied tag, indexed as well.

        Raises:
            Exception: Whatever the tag provider raises; nothing is added.
        """
        self.extend([(loaded_type, external_tag)])

    def extend(self, items: Iterable[LoadedType | tuple[LoadedType, Hashable]]) -> None:
        """Add many types in one published update.

        Args:
            items: Types, or ``(type, external_tag)`` pairs.
        """
        with self._lock:
            entries = []
            for item in items:
                if isinstance(item, tuple):
                    loaded_type, external_tag = item
                else:
                    loaded_type, external_tag = item, _UNSET
                entries.append(
                    (loaded_type, self._tag_provider(loaded_type), external_tag)
                )
            self._snapshot = self._snapshot.with_entries(entries)

        for loaded_type, custom_tag, _ in entries:
            logger.debug(f"Indexed {loaded_type.qualified_name} (tag: {custom_tag!r})")

    def clear(self) -> None:
        """Remove every entry from all four mappings at once."""
        with self._lock:
            self._snapshot = IndexSnapshot()

    def snapshot(self) -> IndexSnapshot:
        """Get the currently published snapshot."""
        return self._snapshot

    def find_by_full_name(self, name: str) -> LoadedType | None:
        """Get a type by qualified name, or None."""
        return self._snapshot.by_full_name.get(name)

    def find_by_simple_name(self, name: str) -> LoadedType | None:
        """Get the last type added with this short name, or None."""
        return self._snapshot.by_simple_name.get(name)

    def find_by_custom_tag(self, tag: Hashable) -> LoadedType | None:
        """Get a type by custom tag, or None."""
        return self._snapshot.by_custom_tag.get(tag)

    def find_by_external_tag(self, tag: Hashable) -> LoadedType | None:
        """Get a type by external tag, or None."""
        return self._snapshot.by_external_tag.get(tag)

    def get_all_classes(self) -> list[LoadedType]:
        """Get every indexed type.

        Built from the qualified-name mapping, which is the only complete
        one; the short-name and tag mappings may be shadowed.

        Returns:
            List of types in no guaranteed order.
        """
        return list(self._snapshot.by_full_name.values())

    def get_statistics(self) -> dict[str, int]:
        """Get the size of each mapping.

        Returns:
            Dictionary with mapping sizes.
        """
        snapshot = self._snapshot
        return {
            "full_names": len(snapshot.by_full_name),
            "simple_names": len(snapshot.by_simple_name),
            "custom_tags": len(snapshot.by_custom_tag),
            "external_tags": len(snapshot.by_external_tag),
        }

    def __len__(self) -> int:
        """Number of distinct qualified names."""
        return len(self._snapshot.by_full_name)

    def __contains__(self, name: object) -> bool:
        """Check if a qualified name is indexed."""
        return name in self._snapshot.by_full_name

    def __repr__(self) -> str:
        snapshot = self._snapshot
        return (
            f"<TypeIndex types={len(snapshot.by_full_name)} "
            f"simple={len(snapshot.by_simple_name)} "
            f"external={len(snapshot.by_external_tag)}>"
        )
