# src/graphmend/validation/channels.py
"""Channel conformance: capability providers attach through their
designated channel, and orchestrators receive the capabilities they require.

Channel names are compared after alias resolution, so ``ai_languageModel``
and ``capability:model`` are the same channel.
"""

from __future__ import annotations

from graphmend.contracts.enums import IssueKind, NodeRole, Severity
from graphmend.contracts.report import Issue
from graphmend.core.catalog import NodeCatalog
from graphmend.core.graph import WorkflowGraph
from graphmend.validation.classifier import Classification


def incoming_on_channel(graph: WorkflowGraph, catalog: NodeCatalog, node_name: str, channel: str) -> int:
    """Incoming connections of a node on a channel under any of its names."""
    return sum(len(graph.incoming(node_name, name)) for name in sorted(catalog.channel_names(channel)))


def check_channels(graph: WorkflowGraph, classification: Classification, catalog: NodeCatalog) -> list[Issue]:
    """WrongChannel for misattached providers, MissingCapability for starved orchestrators."""
    issues: list[Issue] = []

    for name in classification.names_with_role(NodeRole.CAPABILITY_PROVIDER):
        kind = classification.kind(name)
        assert kind is not None and kind.designated_channel is not None  # unknown kinds are never providers
        designated = kind.designated_channel
        for connection in graph.outgoing_all(name):
            if catalog.canonical_channel(connection.channel) == designated:
                continue
            issues.append(
                Issue(
                    node_ref=name,
                    kind=IssueKind.WRONG_CHANNEL,
                    severity=Severity.ERROR,
                    detail=(
                        f"Capability provider '{name}' is attached to '{connection.target_node}' "
                        f"via '{connection.channel}'; it must use '{designated}'"
                    ),
                    context={"connection": connection.to_context(), "expected_channel": designated},
                )
            )

    for name in classification.names_with_role(NodeRole.ORCHESTRATOR):
        kind = classification.kind(name)
        if kind is None:
            continue
        for channel in kind.requires:
            if incoming_on_channel(graph, catalog, name, channel):
                continue
            issues.append(
                Issue(
                    node_ref=name,
                    kind=IssueKind.MISSING_CAPABILITY,
                    severity=Severity.ERROR,
                    detail=f"'{name}' requires a capability on '{channel}' but nothing is attached there",
                    context={"channel": channel},
                )
            )
    return issues
