# src/graphmend/repair/synthesizer.py
"""RepairSynthesizer: turns a validation report into a repaired graph.

Repair is a pure transform: the input graph is copied into a mutable
draft, the policy rules edit the draft, and a new WorkflowGraph is built
from it. Policy, in fixed order (a rule fires only when its issue is in
the report):

    1. UnconnectedBranch  -> connect the branch slot to a new placeholder sink
    2. WrongChannel       -> move the connection onto the designated channel
    3. SchemaVersionMismatch -> migrate parameters to the declared version
    4. DeadEnd / UnmergedBranches -> one convergence sink joining every
       dead end and every unmerged terminal
    5. MissingCapability  -> attach a placeholder provider

Identity preservation: existing nodes are never retyped or deleted. Only
nodes and connections are added, and only parameters and channel labels
are rewritten. Inserted nodes get ids derived from the source graph hash
and their name, so the same (graph, report) always yields the same output.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from typing import Any

from graphmend.contracts.enums import IssueKind
from graphmend.contracts.errors import MalformedGraphError, UnrepairableReportError
from graphmend.contracts.report import Issue, ValidationReport
from graphmend.contracts.results import RepairResult
from graphmend.contracts.types import PRIMARY_CHANNEL, ChannelName, NodeID, NodeName, TypeTag
from graphmend.core.canonical import compute_graph_hash, derive_node_id
from graphmend.core.catalog import NodeCatalog
from graphmend.core.config import GraphmendSettings
from graphmend.core.graph import Connection, Node, WorkflowGraph, format_schema_version
from graphmend.core.logging import get_logger, graph_context
from graphmend.repair.migrations import migrate_parameters
from graphmend.validation.connectivity import primary_outgoing

logger = get_logger(__name__)

# Layout offsets for inserted nodes, relative to the node they serve
_COLUMN_WIDTH = 250
_ROW_HEIGHT = 150
_PROVIDER_DROP = 200

# Issues the policy acts on; every other kind is left in place
_REPAIRABLE_KINDS = frozenset(
    {
        IssueKind.UNCONNECTED_BRANCH,
        IssueKind.WRONG_CHANNEL,
        IssueKind.SCHEMA_VERSION_MISMATCH,
        IssueKind.DEAD_END,
        IssueKind.UNMERGED_BRANCHES,
        IssueKind.MISSING_CAPABILITY,
    }
)


class _Draft:
    """Mutable working copy of a graph during one repair."""

    def __init__(self, graph: WorkflowGraph, graph_hash: str, catalog: NodeCatalog) -> None:
        self.nodes: list[Node] = list(graph.nodes)
        self.connections: list[Connection] = list(graph.connections)
        self.change_log: list[str] = []
        self._graph_hash = graph_hash
        self._catalog = catalog
        self._names: set[str] = {node.display_name for node in self.nodes}
        self._ids: set[str] = {node.id for node in self.nodes}

    def node(self, name: str) -> Node:
        return next(node for node in self.nodes if node.display_name == name)

    def replace_node(self, updated: Node) -> None:
        index = next(i for i, node in enumerate(self.nodes) if node.display_name == updated.display_name)
        self.nodes[index] = updated

    def unique_name(self, base: str) -> NodeName:
        name, counter = base, 2
        while name in self._names:
            name = f"{base} {counter}"
            counter += 1
        return NodeName(name)

    def add_node(self, type_tag: str, base_name: str, position: tuple[float, float], settings: GraphmendSettings) -> Node:
        """Insert a node of a catalog kind at its newest schema version.

        Required parameters are filled with the placeholder value.
        """
        kind = self._catalog.kind(type_tag)
        name = self.unique_name(base_name)
        version = kind.latest_version
        parameters: dict[str, Any] = {}
        if version is not None:
            shape = kind.shape_for(version)
            assert shape is not None  # latest_version comes from the schema keys
            parameters = {field: settings.placeholder_value for field in shape.required_fields}

        node = Node(
            id=self._new_id(name),
            display_name=name,
            type_tag=TypeTag(kind.type_tag),
            schema_version=_version_value(version),
            parameters=parameters,
            position=position,
        )
        self.nodes.append(node)
        self._names.add(node.display_name)
        self._ids.add(node.id)
        return node

    def _new_id(self, name: str) -> NodeID:
        seed = 0
        while True:
            node_id = derive_node_id({"graph": self._graph_hash, "name": name, "seed": seed})
            if node_id not in self._ids:
                return node_id
            seed += 1

    def connect(self, source: Node, source_slot: int, target: Node, channel: str) -> Connection:
        connection = Connection(
            source_node=source.display_name,
            source_channel=ChannelName(channel),
            source_slot=source_slot,
            target_node=target.display_name,
            target_channel=ChannelName(channel),
            target_slot=0,
        )
        self.connections.append(connection)
        return connection

    def has_primary_slot(self, name: str, slot: int) -> bool:
        return any(
            c.source_node == name and c.source_slot == slot and self._catalog.is_primary(c.channel) for c in self.connections
        )

    def has_primary_outgoing(self, name: str) -> bool:
        return any(c.source_node == name and self._catalog.is_primary(c.channel) for c in self.connections)

    def has_incoming(self, name: str, channel: str) -> bool:
        canonical = self._catalog.canonical_channel(channel)
        return any(
            c.target_node == name and self._catalog.canonical_channel(c.channel) == canonical for c in self.connections
        )

    def channel_label(self, channel: str) -> str:
        """Name to write for ``channel``: the spelling the graph already uses, else the canonical name."""
        canonical = self._catalog.canonical_channel(channel)
        for connection in self.connections:
            if self._catalog.canonical_channel(connection.channel) == canonical:
                return connection.channel
        return canonical

    def record(self, entry: str) -> None:
        self.change_log.append(entry)
        logger.debug("repair_edit", edit=entry)


def _version_value(version: tuple[int, ...] | None) -> int | str:
    """Wire form of a schema version: an int for single-component versions."""
    if version is None:
        return 1
    if len(version) == 1:
        return version[0]
    return format_schema_version(version)


def _context(issue: Issue, key: str) -> Any:
    if key not in issue.context:
        raise UnrepairableReportError(f"{issue.kind} issue on {issue.node_ref!r} is missing context '{key}'")
    return issue.context[key]


def _label(channel: str) -> str:
    """'capability:output-parser' -> 'Output Parser'."""
    return channel.rsplit(":", 1)[-1].replace("-", " ").replace("_", " ").title()


class RepairSynthesizer:
    """Applies the repair policy for one catalog and one set of settings."""

    def __init__(self, catalog: NodeCatalog, settings: GraphmendSettings | None = None) -> None:
        self._catalog = catalog
        self._settings = settings or GraphmendSettings()

    def repair(self, graph: WorkflowGraph, report: ValidationReport) -> RepairResult:
        """Produce a repaired copy of ``graph``.

        Args:
            graph: The graph the report was computed from (not modified)
            report: Report from validate() on ``graph``

        Returns:
            RepairResult with the new graph and the change log. When no rule
            fires the input graph is returned unchanged with an empty log.

        Raises:
            UnrepairableReportError: If the report does not describe ``graph``
        """
        graph_hash = compute_graph_hash(graph)
        self._check_report(graph, report, graph_hash)

        with graph_context(graph_hash):
            draft = _Draft(graph, graph_hash, self._catalog)
            self._connect_unconnected_branches(draft, report.by_kind(IssueKind.UNCONNECTED_BRANCH))
            self._fix_wrong_channels(draft, report.by_kind(IssueKind.WRONG_CHANNEL))
            self._upgrade_parameters(draft, report.by_kind(IssueKind.SCHEMA_VERSION_MISMATCH))
            self._converge(draft, report.by_kind(IssueKind.DEAD_END), report.by_kind(IssueKind.UNMERGED_BRANCHES))
            self._attach_capabilities(draft, report.by_kind(IssueKind.MISSING_CAPABILITY))

            if not draft.change_log:
                return RepairResult(graph, ())

            repaired = WorkflowGraph(
                draft.nodes,
                draft.connections,
                metadata=graph.metadata,
                channel_key=graph.channel_key,
            )
            logger.info(
                "graph_repaired",
                edits=len(draft.change_log),
                nodes_added=repaired.node_count - graph.node_count,
                connections_added=repaired.edge_count - graph.edge_count,
            )
        return RepairResult(repaired, tuple(draft.change_log))

    # === Report consistency ===

    def _check_report(self, graph: WorkflowGraph, report: ValidationReport, graph_hash: str) -> None:
        """Reject reports that were not computed from this graph."""
        if report.graph_hash is not None and report.graph_hash != graph_hash:
            raise UnrepairableReportError(
                f"Report was computed for graph {report.graph_hash[:12]}, not this graph ({graph_hash[:12]})"
            )

        outgoing = primary_outgoing(graph, self._catalog)
        for issue in report:
            if issue.node_ref is not None and not graph.has_node(issue.node_ref):
                raise UnrepairableReportError(f"{issue.kind} issue references unknown node {issue.node_ref!r}")
            if issue.kind not in _REPAIRABLE_KINDS:
                continue
            if issue.node_ref is None:
                raise UnrepairableReportError(f"{issue.kind} issue has no node reference")
            name = NodeName(issue.node_ref)

            match issue.kind:
                case IssueKind.UNCONNECTED_BRANCH:
                    index = _context(issue, "branch_index")
                    if not isinstance(index, int) or isinstance(index, bool) or index < 0:
                        raise UnrepairableReportError(f"Invalid branch index {index!r} for {name!r}")
                    if outgoing[name].get(index):
                        raise UnrepairableReportError(f"Branch {index} of {name!r} is already connected")
                case IssueKind.WRONG_CHANNEL:
                    connection = self._reported_connection(issue)
                    if connection not in graph.connections or connection.source_node != name:
                        raise UnrepairableReportError(f"Reported connection {connection.describe()} is not in the graph")
                    expected = _context(issue, "expected_channel")
                    if expected not in self._catalog.document.channels:
                        raise UnrepairableReportError(f"Unknown channel {expected!r} in WrongChannel issue for {name!r}")
                case IssueKind.SCHEMA_VERSION_MISMATCH:
                    node = graph.node(name)
                    kind = self._catalog.lookup(node.type_tag)
                    if kind is None or kind.shape_for(node.version) is None:
                        raise UnrepairableReportError(
                            f"No catalog schema for '{node.type_tag}' version {node.schema_version} ({name!r})"
                        )
                case IssueKind.DEAD_END:
                    if outgoing[name]:
                        raise UnrepairableReportError(f"{name!r} is reported as a dead end but has outgoing connections")
                case IssueKind.UNMERGED_BRANCHES:
                    terminals = _context(issue, "terminals")
                    if isinstance(terminals, str) or not isinstance(terminals, list | tuple):
                        raise UnrepairableReportError(f"Invalid terminals for {name!r}")
                    for terminal in terminals:
                        if not isinstance(terminal, str) or not graph.has_node(terminal):
                            raise UnrepairableReportError(f"Unmerged terminal {terminal!r} of {name!r} is not in the graph")
                case IssueKind.MISSING_CAPABILITY:
                    channel = _context(issue, "channel")
                    if not isinstance(channel, str) or self._placeholder_kind(channel) is None:
                        raise UnrepairableReportError(f"No placeholder provider for channel {channel!r} ({name!r})")

    def _reported_connection(self, issue: Issue) -> Connection:
        data = _context(issue, "connection")
        if not isinstance(data, Mapping):
            raise UnrepairableReportError(f"Invalid connection in WrongChannel issue for {issue.node_ref!r}")
        try:
            return Connection.from_context(data)
        except (KeyError, TypeError, ValueError, MalformedGraphError) as e:
            raise UnrepairableReportError(f"Invalid connection in WrongChannel issue for {issue.node_ref!r}: {e}") from e

    def _placeholder_kind(self, channel: str) -> str | None:
        canonical = self._catalog.canonical_channel(channel)
        return self._catalog.repair_defaults.capability_placeholders.get(canonical)

    # === Rule 1: unconnected branches ===

    def _connect_unconnected_branches(self, draft: _Draft, issues: tuple[Issue, ...]) -> None:
        placeholder_sink = self._catalog.repair_defaults.placeholder_sink
        for issue in issues:
            router = draft.node(str(issue.node_ref))
            index: int = issue.context["branch_index"]
            if draft.has_primary_slot(router.display_name, index):
                continue
            position = (router.position[0] + _COLUMN_WIDTH, router.position[1] + _ROW_HEIGHT * index)
            sink = draft.add_node(
                placeholder_sink, f"Unhandled Branch {index} ({router.display_name})", position, self._settings
            )
            draft.connect(router, index, sink, PRIMARY_CHANNEL)
            draft.record(f"Connected branch {index} of '{router.display_name}' to new placeholder sink '{sink.display_name}'")

    # === Rule 2: wrong channels ===

    def _fix_wrong_channels(self, draft: _Draft, issues: tuple[Issue, ...]) -> None:
        for issue in issues:
            reported = Connection.from_context(issue.context["connection"])
            expected = str(issue.context["expected_channel"])
            try:
                position = draft.connections.index(reported)
            except ValueError:
                # An identical duplicate issue already moved this connection
                continue
            label = draft.channel_label(expected)
            moved = reported.with_channel(ChannelName(label))
            entry = (
                f"Moved connection '{reported.source_node}' -> '{reported.target_node}' "
                f"from channel '{reported.channel}' to '{label}'"
            )
            # Only the primary channel has branch slots
            if moved.source_slot != 0 and not self._catalog.is_primary(label):
                entry += f" (output slot {moved.source_slot} reset to 0)"
                moved = dataclasses.replace(moved, source_slot=0)
            draft.connections[position] = moved
            draft.record(entry)

    # === Rule 3: stale parameters ===

    def _upgrade_parameters(self, draft: _Draft, issues: tuple[Issue, ...]) -> None:
        done: set[str] = set()
        for issue in issues:
            name = str(issue.node_ref)
            if name in done:
                continue
            done.add(name)
            node = draft.node(name)
            kind = self._catalog.kind(node.type_tag)
            parameters, notes = migrate_parameters(node.parameters, kind, node.version, self._settings)
            if not notes:
                continue
            draft.replace_node(dataclasses.replace(node, parameters=parameters))
            draft.record(
                f"Upgraded parameters of '{name}' to schema version {format_schema_version(node.version)}: {'; '.join(notes)}"
            )

    # === Rule 4: convergence ===

    def _converge(self, draft: _Draft, dead_ends: tuple[Issue, ...], unmerged: tuple[Issue, ...]) -> None:
        targets: list[str] = []
        for issue in dead_ends:
            targets.append(str(issue.node_ref))
        for issue in unmerged:
            targets.extend(issue.context["terminals"])

        # Keep first occurrence; drop nodes an earlier rule already gave an output
        pending = [name for name in dict.fromkeys(targets) if not draft.has_primary_outgoing(name)]
        if not pending:
            return

        sources = [draft.node(name) for name in pending]
        x = max(node.position[0] for node in sources) + _COLUMN_WIDTH
        y = round(sum(node.position[1] for node in sources) / len(sources))
        convergence = draft.add_node(
            self._catalog.repair_defaults.convergence, "Workflow Complete", (x, y), self._settings
        )
        for node in sources:
            draft.connect(node, 0, convergence, PRIMARY_CHANNEL)
        joined = ", ".join(f"'{node.display_name}'" for node in sources)
        draft.record(f"Inserted convergence node '{convergence.display_name}' and connected {joined} to it")

    # === Rule 5: missing capabilities ===

    def _attach_capabilities(self, draft: _Draft, issues: tuple[Issue, ...]) -> None:
        for issue in issues:
            orchestrator = draft.node(str(issue.node_ref))
            channel = str(issue.context["channel"])
            if draft.has_incoming(orchestrator.display_name, channel):
                continue
            type_tag = self._placeholder_kind(channel)
            assert type_tag is not None  # checked in _check_report
            label = _label(self._catalog.canonical_channel(channel))
            position = (orchestrator.position[0], orchestrator.position[1] + _PROVIDER_DROP)
            provider = draft.add_node(type_tag, f"{label} Placeholder", position, self._settings)
            wire_channel = draft.channel_label(channel)
            draft.connect(provider, 0, orchestrator, wire_channel)
            draft.record(
                f"Inserted placeholder {label.lower()} provider '{provider.display_name}' for "
                f"'{orchestrator.display_name}' on channel '{wire_channel}'; requires user configuration"
            )
