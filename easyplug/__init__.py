"""
easyplug - archive-based plugin discovery.

This package finds plugin classes packaged in zip archives anywhere
under a directory tree, catalogs them by qualified name, short name and
tags, and builds instances of them on request.

Pipeline:
    - ArchiveScanner: Finds archives and lists the type names inside
    - TypeLoader: Resolves names into classes, one context per archive
    - TypeIndex: Multi-keyed catalog of loaded types
    - PluginProfile: Runs the pipeline and answers lookups

Errors:
    Scanning and loading are best-effort: unreadable directories and
    archives, and entries that fail to import, are skipped. Lookups and
    construction raise precisely:
    - TypeNotFoundError: No type matches a name or tag
    - ConstructionError: No constructor fits the arguments, or it raised

Example:
    from easyplug import PluginProfile

    profile = PluginProfile("./plugins")

    foo_cls = profile.by_full_name("com.x.Foo")
    foo = profile.make_object("Foo")
    bar = profile.make_object("com.x.Bar", "config.json", retries=3)
"""

from easyplug.sdk import (
    ConstructionError,
    Constructor,
    LoadedType,
    ParameterSpec,
    PluginError,
    constructor,
)
from easyplug.scanner import (
    ArchiveScanner,
    UnreadableArchiveError,
    UnreadableDirectoryError,
)
from easyplug.loader import (
    ArchiveContext,
    LoadBatch,
    ResolutionError,
    SharedContext,
    TypeLoader,
)
from easyplug.registry import (
    IndexSnapshot,
    TypeIndex,
    default_tag_provider,
)
from easyplug.profile import (
    PluginProfile,
    TypeNotFoundError,
)

__version__ = "0.1.0"

__all__ = [
    # SDK
    "ConstructionError",
    "Constructor",
    "LoadedType",
    "ParameterSpec",
    "PluginError",
    "constructor",
    # Scanner
    "ArchiveScanner",
    "UnreadableArchiveError",
    "UnreadableDirectoryError",
    # Loader
    "ArchiveContext",
    "LoadBatch",
    "ResolutionError",
    "SharedContext",
    "TypeLoader",
    # Registry
    "IndexSnapshot",
    "TypeIndex",
    "default_tag_provider",
    # Profile
    "PluginProfile",
    "TypeNotFoundError",
    "__version__",
]
