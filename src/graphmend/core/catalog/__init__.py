# src/graphmend/core/catalog/__init__.py
"""Node catalog: the table-driven knowledge about node kinds and channels."""

from graphmend.core.catalog.catalog import (
    DEFAULT_CATALOG_PATH,
    NodeCatalog,
    default_catalog,
    load_catalog,
)
from graphmend.core.catalog.models import (
    BranchingSpec,
    CatalogDocument,
    ChannelSpec,
    FieldSpec,
    Migration,
    NodeKind,
    ParameterShape,
    RepairDefaults,
)

__all__ = [
    "DEFAULT_CATALOG_PATH",
    "BranchingSpec",
    "CatalogDocument",
    "ChannelSpec",
    "FieldSpec",
    "Migration",
    "NodeCatalog",
    "NodeKind",
    "ParameterShape",
    "RepairDefaults",
    "default_catalog",
    "load_catalog",
]
