# src/graphmend/validation/classifier.py
"""Node classifier: assigns every node exactly one structural role.

Roles come from the catalog lookup table. The analyzers never branch on
type tags themselves; everything they need to know about a kind is read
from the Classification built here.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from graphmend.contracts.enums import IssueKind, NodeRole, Severity
from graphmend.contracts.report import Issue
from graphmend.contracts.types import NodeName
from graphmend.core.catalog import NodeCatalog, NodeKind
from graphmend.core.graph import Node, WorkflowGraph


@dataclass(frozen=True, slots=True)
class Classification:
    """Role and catalog kind of every node, keyed by display name.

    ``kinds`` maps unknown type tags to None; such nodes have role
    PASS_THROUGH.
    """

    roles: Mapping[NodeName, NodeRole]
    kinds: Mapping[NodeName, NodeKind | None]
    issues: tuple[Issue, ...] = field(default=())

    def __post_init__(self) -> None:
        object.__setattr__(self, "roles", MappingProxyType(dict(self.roles)))
        object.__setattr__(self, "kinds", MappingProxyType(dict(self.kinds)))

    def role(self, node: Node | str) -> NodeRole:
        name = node.display_name if isinstance(node, Node) else node
        return self.roles[NodeName(name)]

    def kind(self, node: Node | str) -> NodeKind | None:
        name = node.display_name if isinstance(node, Node) else node
        return self.kinds[NodeName(name)]

    def names_with_role(self, *roles: NodeRole) -> list[NodeName]:
        """Display names having any of ``roles``, in graph order."""
        return [name for name, role in self.roles.items() if role in roles]


def classify(graph: WorkflowGraph, catalog: NodeCatalog, *, strict: bool = False) -> Classification:
    """Classify every node of ``graph``.

    Args:
        graph: Graph to classify
        catalog: Lookup table of known kinds
        strict: Report unknown type tags as errors instead of warnings

    Returns:
        Classification with one UnknownNodeType issue per unfamiliar node
    """
    roles: dict[NodeName, NodeRole] = {}
    kinds: dict[NodeName, NodeKind | None] = {}
    issues: list[Issue] = []

    for node in graph.nodes:
        kind = catalog.lookup(node.type_tag)
        kinds[node.display_name] = kind
        if kind is not None:
            roles[node.display_name] = kind.role
            continue

        roles[node.display_name] = NodeRole.PASS_THROUGH
        issues.append(
            Issue(
                node_ref=node.display_name,
                kind=IssueKind.UNKNOWN_NODE_TYPE,
                severity=Severity.ERROR if strict else Severity.WARNING,
                detail=f"Unknown node type '{node.type_tag}'; treated as pass-through",
                context={"type_tag": node.type_tag},
            )
        )

    return Classification(roles=roles, kinds=kinds, issues=tuple(issues))
