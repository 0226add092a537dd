# src/graphmend/core/graph/__init__.py
"""Workflow graph model: immutable nodes, connections and the graph value.

Package re-exports: the graph value, its parts and the wire-format parser.
"""

from graphmend.core.graph.graph import DescriptorChannelKey, WorkflowGraph
from graphmend.core.graph.models import (
    Connection,
    Node,
    format_schema_version,
    parse_schema_version,
)
from graphmend.core.graph.parser import (
    check_limits,
    extract_document,
    load_document,
    parse_graph,
)

__all__ = [
    "Connection",
    "DescriptorChannelKey",
    "Node",
    "WorkflowGraph",
    "check_limits",
    "extract_document",
    "format_schema_version",
    "load_document",
    "parse_graph",
    "parse_schema_version",
]
