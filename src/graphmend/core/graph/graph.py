# src/graphmend/core/graph/graph.py
"""WorkflowGraph class: read-only query and traversal operations.

Parsing lives in parser.py; this module holds the immutable graph value
the validators and the repair synthesizer operate on.
"""

from __future__ import annotations

import copy
from collections import defaultdict
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any, Literal, TypeAlias

import networkx as nx
from networkx import MultiDiGraph

from graphmend.contracts.errors import DanglingConnectionReferenceError, DuplicateNodeNameError
from graphmend.contracts.types import ChannelName, NodeID, NodeName
from graphmend.core.graph.models import Connection, Node

DescriptorChannelKey: TypeAlias = Literal["channel", "type"]


class WorkflowGraph:
    """Immutable workflow graph.

    Wraps a NetworkX MultiDiGraph keyed by display name. MultiDiGraph is
    needed because two nodes may be joined by several edges (different
    channels or slots). The ordered node and connection tuples are kept
    alongside so that serialization reproduces the document order.

    Construction enforces the structural invariants (unique names and ids,
    no dangling references); semantic checks are the validators' job.
    """

    def __init__(
        self,
        nodes: Iterable[Node],
        connections: Iterable[Connection] = (),
        *,
        metadata: Mapping[str, Any] | None = None,
        channel_key: DescriptorChannelKey = "channel",
    ) -> None:
        self._nodes: tuple[Node, ...] = tuple(nodes)
        self._connections: tuple[Connection, ...] = tuple(connections)
        self._metadata: Mapping[str, Any] = MappingProxyType(copy.deepcopy(dict(metadata or {})))
        self._channel_key: DescriptorChannelKey = channel_key

        self._by_name: dict[NodeName, Node] = {}
        self._by_id: dict[NodeID, Node] = {}
        for node in self._nodes:
            if node.display_name in self._by_name:
                raise DuplicateNodeNameError(node.display_name, field="name")
            if node.id in self._by_id:
                raise DuplicateNodeNameError(node.id, field="id")
            self._by_name[node.display_name] = node
            self._by_id[node.id] = node

        self._graph: MultiDiGraph[str] = nx.MultiDiGraph()
        for node in self._nodes:
            self._graph.add_node(node.display_name, node=node)

        # (node, channel) -> slot -> connections, built once for O(1) queries
        self._outgoing: dict[tuple[str, str], dict[int, list[Connection]]] = defaultdict(lambda: defaultdict(list))
        self._incoming: dict[tuple[str, str], list[Connection]] = defaultdict(list)
        for connection in self._connections:
            for name, side in ((connection.source_node, "source"), (connection.target_node, "target")):
                if name not in self._by_name:
                    raise DanglingConnectionReferenceError(name, side=side, suggestions=self._suggest(name))
            self._graph.add_edge(connection.source_node, connection.target_node, connection=connection)
            self._outgoing[(connection.source_node, connection.source_channel)][connection.source_slot].append(connection)
            self._incoming[(connection.target_node, connection.target_channel)].append(connection)

    def _suggest(self, name: str) -> list[str]:
        import difflib

        return difflib.get_close_matches(name, list(self._by_name), n=3, cutoff=0.6)

    # === Size and membership ===

    @property
    def node_count(self) -> int:
        """Number of nodes in the graph."""
        return self._graph.number_of_nodes()

    @property
    def edge_count(self) -> int:
        """Number of connections in the graph."""
        return self._graph.number_of_edges()

    def has_node(self, name: str) -> bool:
        """Check if a node with this display name exists."""
        return name in self._by_name

    # === Node access ===

    @property
    def nodes(self) -> tuple[Node, ...]:
        """Nodes in document order."""
        return self._nodes

    @property
    def connections(self) -> tuple[Connection, ...]:
        """Connections in document order."""
        return self._connections

    @property
    def metadata(self) -> Mapping[str, Any]:
        """Top-level document keys other than nodes/connections."""
        return self._metadata

    @property
    def channel_key(self) -> DescriptorChannelKey:
        """Descriptor key naming the channel on the wire ("channel" or "type")."""
        return self._channel_key

    def node(self, name: str) -> Node:
        """Get a node by display name.

        Raises:
            KeyError: If node doesn't exist
        """
        if name not in self._by_name:
            raise KeyError(f"Node not found: {name}")
        return self._by_name[NodeName(name)]

    def node_by_id(self, node_id: str) -> Node:
        """Get a node by id.

        Raises:
            KeyError: If node doesn't exist
        """
        if node_id not in self._by_id:
            raise KeyError(f"Node id not found: {node_id}")
        return self._by_id[NodeID(node_id)]

    def nodes_by_type(self, type_tag: str) -> list[Node]:
        """All nodes declaring the given type tag, in document order."""
        return [node for node in self._nodes if node.type_tag == type_tag]

    # === Edge queries ===

    def outgoing(self, node: Node | str, channel: str) -> dict[int, list[Connection]]:
        """Outgoing connections of a node on one channel, grouped by source slot.

        Returns a fresh dict ordered by slot; mutating it does not affect the graph.
        """
        name = node.display_name if isinstance(node, Node) else node
        by_slot = self._outgoing.get((name, channel), {})
        return {slot: list(by_slot[slot]) for slot in sorted(by_slot)}

    def incoming(self, node: Node | str, channel: str) -> list[Connection]:
        """Incoming connections of a node on one channel."""
        name = node.display_name if isinstance(node, Node) else node
        return list(self._incoming.get((name, channel), []))

    def outgoing_all(self, node: Node | str) -> list[Connection]:
        """Every outgoing connection of a node, whatever the channel."""
        name = node.display_name if isinstance(node, Node) else node
        return [connection for connection in self._connections if connection.source_node == name]

    def channels_used(self) -> set[ChannelName]:
        return {connection.source_channel for connection in self._connections}

    def get_nx_graph(self) -> MultiDiGraph[str]:
        """Return a frozen copy of the underlying NetworkX graph.

        Use this for topology analysis (cycles, reachability) that needs
        direct graph access. Mutation attempts raise nx.NetworkXError.
        """
        return nx.freeze(self._graph.copy())  # type: ignore[no-any-return]

    # === Serialization ===

    def to_document(self) -> dict[str, Any]:
        """Wire-format document; the inverse of parser.parse_graph().

        Connections are grouped by source node (first appearance order),
        then channel, then slot. Unused lower slots are emitted as empty
        lists because the slot index is the list position on the wire.
        """
        grouped: dict[str, dict[str, dict[int, list[dict[str, Any]]]]] = {}
        for connection in self._connections:
            by_channel = grouped.setdefault(connection.source_node, {})
            by_slot = by_channel.setdefault(connection.source_channel, {})
            by_slot.setdefault(connection.source_slot, []).append(
                {
                    "node": connection.target_node,
                    self._channel_key: connection.target_channel,
                    "index": connection.target_slot,
                }
            )

        connections: dict[str, dict[str, list[list[dict[str, Any]]]]] = {}
        for source, by_channel in grouped.items():
            connections[source] = {}
            for channel, by_slot in by_channel.items():
                width = max(by_slot) + 1
                connections[source][channel] = [by_slot.get(slot, []) for slot in range(width)]

        document = copy.deepcopy(dict(self._metadata))
        document["nodes"] = [node.to_document() for node in self._nodes]
        document["connections"] = connections
        return document

    # === Value semantics ===

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WorkflowGraph):
            return NotImplemented
        return (
            self._nodes == other._nodes
            and self._connections == other._connections
            and self._metadata == other._metadata
            and self._channel_key == other._channel_key
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"WorkflowGraph(nodes={self.node_count}, connections={self.edge_count})"
