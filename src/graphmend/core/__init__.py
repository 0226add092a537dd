# src/graphmend/core/__init__.py
"""Core infrastructure: Graph model, Catalog, Canonical, Configuration, Logging."""

from graphmend.core.canonical import (
    CANONICAL_VERSION,
    canonical_json,
    compute_graph_hash,
    derive_node_id,
    stable_hash,
)
from graphmend.core.catalog import (
    NodeCatalog,
    NodeKind,
    default_catalog,
    load_catalog,
)
from graphmend.core.config import (
    DEFAULT_PLACEHOLDER,
    GraphmendSettings,
    InputLimits,
    load_settings,
)
from graphmend.core.graph import (
    Connection,
    Node,
    WorkflowGraph,
    parse_graph,
)
from graphmend.core.logging import (
    configure_logging,
    get_logger,
    graph_context,
)

__all__ = [
    "CANONICAL_VERSION",
    "DEFAULT_PLACEHOLDER",
    "Connection",
    "GraphmendSettings",
    "InputLimits",
    "Node",
    "NodeCatalog",
    "NodeKind",
    "WorkflowGraph",
    "canonical_json",
    "compute_graph_hash",
    "configure_logging",
    "default_catalog",
    "derive_node_id",
    "get_logger",
    "graph_context",
    "load_catalog",
    "load_settings",
    "parse_graph",
    "stable_hash",
]
