# src/graphmend/validation/connectivity.py
"""Connectivity analyzer: sources, dead ends, branch convergence and
branch completeness over the primary channel.

Capability channels are ignored here; channel conformance is checked in
channels.py.

Algorithm:
    1. One linear pass over the connections builds the primary-channel
       outgoing map (node -> slot -> connections).
    2. Role-based checks (MissingSource, DeadEnd) read the map.
    3. One bounded BFS per branching node finds the terminal sinks it
       reaches. Visited sets keep every walk linear even on cyclic graphs.
    4. Branch completeness compares declared branches with used slots.

Cycles are only reported when asked for (find_cycles); nothing else in
this module assumes the graph is acyclic.
"""

from __future__ import annotations

from collections import defaultdict, deque
from collections.abc import Mapping
from typing import Any, TypeAlias

import networkx as nx

from graphmend.contracts.enums import IssueKind, NodeRole, Severity
from graphmend.contracts.report import Issue
from graphmend.contracts.types import PRIMARY_CHANNEL, NodeName
from graphmend.core.catalog import NodeCatalog, NodeKind
from graphmend.core.graph import Connection, Node, WorkflowGraph
from graphmend.validation.classifier import Classification

# Roles expected to forward data; zero primary outgoing connections is a dead end
_FORWARDING_ROLES = (NodeRole.ORCHESTRATOR, NodeRole.PASS_THROUGH)

_MISSING = object()

PrimaryOutgoing: TypeAlias = dict[NodeName, dict[int, list[Connection]]]


def primary_outgoing(graph: WorkflowGraph, catalog: NodeCatalog) -> PrimaryOutgoing:
    """Primary-channel outgoing connections of every node, grouped by slot.

    Every node is present; nodes without primary outputs map to an empty dict.
    """
    outgoing: PrimaryOutgoing = {node.display_name: defaultdict(list) for node in graph.nodes}
    for connection in graph.connections:
        if catalog.is_primary(connection.channel):
            outgoing[connection.source_node][connection.source_slot].append(connection)
    return {name: dict(by_slot) for name, by_slot in outgoing.items()}


def resolve_path(parameters: Mapping[str, Any], path: str) -> Any:
    """Follow a dotted path (``rules.values``) through nested mappings.

    Returns a sentinel when any step is missing; callers test it with
    ``is_missing``.
    """
    value: Any = parameters
    for key in path.split("."):
        if not isinstance(value, Mapping) or key not in value:
            return _MISSING
        value = value[key]
    return value


def is_missing(value: Any) -> bool:
    return value is _MISSING


def declared_branch_count(kind: NodeKind, parameters: Mapping[str, Any]) -> int | None:
    """Number of logical branches the node declares, or None when unknown.

    Fixed-count kinds always know their count. N-way kinds read it from the
    first count path that resolves to an array (its length) or an integer.
    """
    branching = kind.branching
    if branching is None:
        return None
    if branching.fixed_count is not None:
        return branching.fixed_count
    for path in branching.count_paths:
        value = resolve_path(parameters, path)
        if isinstance(value, list | tuple):
            return len(value)
        if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
            return value
    return None


def fallback_enabled(kind: NodeKind, parameters: Mapping[str, Any]) -> bool:
    """Whether the reserved fallback slot (right after the declared branches) is in use."""
    branching = kind.branching
    if branching is None or branching.fallback_path is None:
        return False
    value = resolve_path(parameters, branching.fallback_path)
    return not is_missing(value) and value == branching.fallback_value


def analyze_connectivity(
    graph: WorkflowGraph,
    classification: Classification,
    catalog: NodeCatalog,
) -> list[Issue]:
    """Run the source, dead-end, convergence and branch completeness checks.

    Returns:
        Issues in check order, nodes within a check in graph order
    """
    outgoing = primary_outgoing(graph, catalog)
    issues: list[Issue] = []

    if not classification.names_with_role(NodeRole.SOURCE):
        issues.append(
            Issue(
                node_ref=None,
                kind=IssueKind.MISSING_SOURCE,
                severity=Severity.BLOCKING,
                detail="Graph has no source node; nothing can start it",
            )
        )

    for name in classification.names_with_role(*_FORWARDING_ROLES):
        if not outgoing[name]:
            role = classification.role(name)
            issues.append(
                Issue(
                    node_ref=name,
                    kind=IssueKind.DEAD_END,
                    severity=Severity.ERROR,
                    detail=f"{role.capitalize()} node '{name}' has no outgoing connection on the '{PRIMARY_CHANNEL}' channel",
                    context={"role": str(role)},
                )
            )

    for node in graph.nodes:
        kind = classification.kind(node)
        if kind is None or kind.branching is None:
            continue
        issues.extend(_check_convergence(graph, classification, outgoing, node))
        issues.extend(_check_branch_slots(node, kind, outgoing[node.display_name]))

    return issues


def _check_convergence(
    graph: WorkflowGraph,
    classification: Classification,
    outgoing: PrimaryOutgoing,
    start: Node,
) -> list[Issue]:
    """Bounded BFS from one branching node collecting terminal sinks."""
    visited: set[NodeName] = {start.display_name}
    queue: deque[NodeName] = deque([start.display_name])
    while queue:
        current = queue.popleft()
        for connections in outgoing[current].values():
            for connection in connections:
                if connection.target_node not in visited:
                    visited.add(connection.target_node)
                    queue.append(connection.target_node)

    terminals = [
        node.display_name
        for node in graph.nodes
        if node.display_name in visited
        and node.display_name != start.display_name
        and classification.role(node) == NodeRole.SINK
        and not outgoing[node.display_name]
    ]
    if len(terminals) <= 1:
        return []

    quoted = ", ".join(f"'{name}'" for name in terminals)
    return [
        Issue(
            node_ref=start.display_name,
            kind=IssueKind.UNMERGED_BRANCHES,
            severity=Severity.WARNING,
            detail=f"Branches of '{start.display_name}' end in {len(terminals)} separate sinks without reconverging: {quoted}",
            context={"terminals": tuple(terminals)},
        )
    ]


def _check_branch_slots(node: Node, kind: NodeKind, by_slot: dict[int, list[Connection]]) -> list[Issue]:
    """Compare declared branches (plus fallback) with the slots actually used."""
    assert kind.branching is not None  # caller filters non-branching kinds
    declared = declared_branch_count(kind, node.parameters)
    if declared is None:
        return []
    fallback = fallback_enabled(kind, node.parameters)
    expected = declared + 1 if fallback else declared
    used = {slot for slot, connections in by_slot.items() if connections}

    issues: list[Issue] = []
    if kind.branching.is_n_way:
        for index in range(expected):
            if index in used:
                continue
            is_fallback = index == declared
            label = "fallback branch" if is_fallback else f"branch {index}"
            issues.append(
                Issue(
                    node_ref=node.display_name,
                    kind=IssueKind.UNCONNECTED_BRANCH,
                    severity=Severity.ERROR,
                    detail=f"'{node.display_name}' declares {declared} branches but {label} (slot {index}) has no connection",
                    context={"branch_index": index, "declared": declared, "fallback": is_fallback},
                )
            )

    for slot in sorted(used):
        if slot >= expected:
            issues.append(
                Issue(
                    node_ref=node.display_name,
                    kind=IssueKind.UNDECLARED_BRANCH_SLOT,
                    severity=Severity.WARNING,
                    detail=(
                        f"'{node.display_name}' uses output slot {slot} but declares only {declared} branches"
                        f"{' plus a fallback' if fallback else ''}"
                    ),
                    context={"slot": slot, "declared": declared, "fallback": fallback},
                )
            )
    return issues


def find_cycles(graph: WorkflowGraph, catalog: NodeCatalog) -> list[Issue]:
    """Report each strongly connected component of the primary channel that forms a cycle.

    One issue per cycle group, attached to its first node in graph order.
    """
    order = {node.display_name: index for index, node in enumerate(graph.nodes)}
    primary: nx.DiGraph[str] = nx.DiGraph()
    primary.add_nodes_from(order)
    primary.add_edges_from(
        (connection.source_node, connection.target_node)
        for connection in graph.connections
        if catalog.is_primary(connection.channel)
    )

    groups: list[list[str]] = []
    for component in nx.strongly_connected_components(primary):
        members = sorted(component, key=order.__getitem__)
        if len(members) > 1 or primary.has_edge(members[0], members[0]):
            groups.append(members)
    groups.sort(key=lambda members: order[members[0]])

    return [
        Issue(
            node_ref=members[0],
            kind=IssueKind.CYCLE_DETECTED,
            severity=Severity.ERROR,
            detail="Cycle on the primary channel through " + " -> ".join(f"'{name}'" for name in members),
            context={"nodes": tuple(members)},
        )
        for members in groups
    ]
