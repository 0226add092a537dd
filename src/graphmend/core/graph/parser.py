# src/graphmend/core/graph/parser.py
"""Wire-format parsing for workflow graph documents.

The wire contract:

    {
      "nodes": [{"id", "name", "type", "typeVersion", "position", "parameters", ...}],
      "connections": {
        "<source node name>": {
          "<channel>": [
            [{"node": "<target name>", "channel": "<channel>", "index": 0}],   # slot 0
            [...],                                                            # slot 1
          ]
        }
      }
    }

Target descriptors may name the channel with ``channel`` or with the n8n
``type`` key. Everything here raises MalformedGraphError (or a subclass)
before any validation begins.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Mapping
from typing import Any

from graphmend.contracts.errors import MalformedGraphError
from graphmend.contracts.types import ChannelName, NodeID, NodeName, TypeTag
from graphmend.core.canonical import derive_node_id
from graphmend.core.config import InputLimits
from graphmend.core.graph.graph import DescriptorChannelKey, WorkflowGraph
from graphmend.core.graph.models import Connection, Node, parse_schema_version

_NODE_KEYS = frozenset({"id", "name", "type", "typeVersion", "position", "parameters"})

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"```\s*$")


def extract_document(text: str) -> str:
    """Unwrap a JSON object from free text such as a generation-service reply.

    Strips markdown code fences and keeps everything between the first
    ``{`` and the last ``}``.

    Raises:
        MalformedGraphError: If the text contains no JSON object
    """
    clean = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", text.strip()))
    first = clean.find("{")
    last = clean.rfind("}")
    if first == -1 or last == -1 or last < first:
        raise MalformedGraphError("No JSON object found in text")
    return clean[first : last + 1]


def load_document(source: str | bytes, *, limits: InputLimits | None = None) -> dict[str, Any]:
    """Decode a JSON graph document with the size, depth and array guardrails.

    Raises:
        MalformedGraphError: On invalid JSON, a non-object top level, or a
            document exceeding the configured limits
    """
    limits = limits or InputLimits()
    size = len(source.encode("utf-8", "surrogatepass")) if isinstance(source, str) else len(source)
    if size > limits.max_document_bytes:
        raise MalformedGraphError(
            f"Document too large ({size / 1024 / 1024:.2f}MB). Maximum allowed: {limits.max_document_bytes / 1024 / 1024:.2f}MB"
        )
    try:
        decoded = json.loads(source, parse_constant=_reject_constant)
    except json.JSONDecodeError as e:
        raise MalformedGraphError(f"Invalid JSON syntax: {e}") from e
    except UnicodeDecodeError as e:
        raise MalformedGraphError(f"Invalid JSON encoding: {e}") from e
    except RecursionError as e:
        # The decoder recurses per nesting level, before check_limits can run
        raise MalformedGraphError(f"Document too deeply nested to decode (maximum depth {limits.max_depth})") from e
    if not isinstance(decoded, dict):
        raise MalformedGraphError(f"Graph document must be a JSON object, got {type(decoded).__name__}")
    return decoded


def _reject_constant(name: str) -> Any:
    raise MalformedGraphError(f"Invalid JSON constant {name}: non-finite numbers are not allowed")


def check_limits(document: Any, limits: InputLimits) -> None:
    """Reject documents nested too deeply, holding oversized arrays, or
    carrying values with no JSON representation.

    Iterative walk so that a hostile document cannot exhaust the stack.
    """
    pending: list[tuple[Any, int, str]] = [(document, 0, "root")]
    while pending:
        value, depth, path = pending.pop()
        if depth > limits.max_depth:
            raise MalformedGraphError(f"Document too deeply nested at {path} (maximum depth {limits.max_depth})")
        if isinstance(value, Mapping):
            for key in value:
                if isinstance(key, str):
                    _check_text(key, path)
            pending.extend((child, depth + 1, f"{path}.{key}") for key, child in value.items())
        elif isinstance(value, list | tuple):
            if len(value) > limits.max_array_length:
                raise MalformedGraphError(f"Array at {path} has {len(value)} items (max: {limits.max_array_length})")
            pending.extend((child, depth + 1, f"{path}[{i}]") for i, child in enumerate(value))
        elif isinstance(value, str):
            _check_text(value, path)
        elif isinstance(value, float) and not math.isfinite(value):
            raise MalformedGraphError(f"Non-finite number at {path}")
        elif value is not None and not isinstance(value, str | int | float | bool):
            raise MalformedGraphError(f"Value at {path} has no JSON representation ({type(value).__name__})")


def _check_text(text: str, path: str) -> None:
    """Lone surrogates (JSON `\\ud800`) decode fine but cannot be re-encoded or hashed."""
    try:
        text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise MalformedGraphError(f"Invalid Unicode text at {path}: {e.reason}") from e


def parse_graph(document: Mapping[str, Any] | str | bytes, *, limits: InputLimits | None = None) -> WorkflowGraph:
    """Build a WorkflowGraph from a wire-format document.

    Args:
        document: Decoded mapping or raw JSON text
        limits: Input guardrails (defaults apply when None)

    Returns:
        Immutable WorkflowGraph

    Raises:
        MalformedGraphError: If the document is not the wire shape
        DuplicateNodeNameError: If two nodes share a name or id
        DanglingConnectionReferenceError: If a connection names an unknown node
    """
    limits = limits or InputLimits()
    if isinstance(document, str | bytes):
        document = load_document(document, limits=limits)
    if not isinstance(document, Mapping):
        raise MalformedGraphError(f"Graph document must be a JSON object, got {type(document).__name__}")
    check_limits(document, limits)

    raw_nodes = document.get("nodes")
    if not isinstance(raw_nodes, list):
        raise MalformedGraphError('Missing or invalid "nodes" array')
    raw_connections = document.get("connections", {})
    if raw_connections is None:
        raw_connections = {}
    if not isinstance(raw_connections, Mapping):
        raise MalformedGraphError('Invalid "connections" object')

    nodes = [_parse_node(raw, index) for index, raw in enumerate(raw_nodes)]
    connections, channel_key = _parse_connections(raw_connections)
    metadata = {key: value for key, value in document.items() if key not in ("nodes", "connections")}
    return WorkflowGraph(nodes, connections, metadata=metadata, channel_key=channel_key)


def _parse_node(raw: Any, index: int) -> Node:
    if not isinstance(raw, Mapping):
        raise MalformedGraphError(f"Invalid node at index {index}: expected an object")

    name = raw.get("name")
    if not isinstance(name, str) or not name:
        raise MalformedGraphError(f"Invalid node at index {index}: missing display name")
    type_tag = raw.get("type")
    if not isinstance(type_tag, str) or not type_tag:
        raise MalformedGraphError(f"Invalid node '{name}': missing type")

    node_id = raw.get("id")
    if node_id is None:
        # Generated documents sometimes omit ids; derive a stable one from the name
        node_id = derive_node_id({"name": name})
    elif not isinstance(node_id, str | int) or isinstance(node_id, bool) or node_id == "":
        raise MalformedGraphError(f"Invalid node '{name}': id must be a non-empty string")

    schema_version = raw.get("typeVersion", 1)
    try:
        parse_schema_version(schema_version)
    except MalformedGraphError as e:
        raise MalformedGraphError(f"Invalid node '{name}': {e}") from e

    parameters = raw.get("parameters", {})
    if parameters is None:
        parameters = {}
    if not isinstance(parameters, Mapping):
        raise MalformedGraphError(f"Invalid node '{name}': parameters must be an object")

    position = raw.get("position", (0, 0))
    if (
        not isinstance(position, list | tuple)
        or len(position) != 2
        or not all(isinstance(p, int | float) and not isinstance(p, bool) for p in position)
    ):
        raise MalformedGraphError(f"Invalid node '{name}': position must be a pair of numbers")

    return Node(
        id=NodeID(str(node_id)),
        display_name=NodeName(name),
        type_tag=TypeTag(type_tag),
        schema_version=schema_version,
        parameters=parameters,
        position=(position[0], position[1]),
        extras={key: value for key, value in raw.items() if key not in _NODE_KEYS},
    )


def _parse_connections(raw_connections: Mapping[str, Any]) -> tuple[list[Connection], DescriptorChannelKey]:
    connections: list[Connection] = []
    # The first explicit descriptor key decides how channels are written back
    channel_key: DescriptorChannelKey | None = None

    for source, by_channel in raw_connections.items():
        if not isinstance(by_channel, Mapping):
            raise MalformedGraphError(f"Connections of '{source}' must be an object keyed by channel")
        for channel, slots in by_channel.items():
            if not isinstance(slots, list):
                raise MalformedGraphError(f"Connections of '{source}' on channel '{channel}' must be an array of slots")
            for slot, targets in enumerate(slots):
                # Unused slots show up as null or [] on the wire
                if targets is None:
                    continue
                if not isinstance(targets, list):
                    raise MalformedGraphError(f"Slot {slot} of '{source}' on channel '{channel}' must be an array")
                for descriptor in targets:
                    connection, key = _parse_descriptor(source, channel, slot, descriptor)
                    if channel_key is None:
                        channel_key = key
                    connections.append(connection)
    return connections, channel_key or "channel"


def _parse_descriptor(source: str, channel: str, slot: int, descriptor: Any) -> tuple[Connection, DescriptorChannelKey | None]:
    if not isinstance(descriptor, Mapping):
        raise MalformedGraphError(f"Target descriptor in slot {slot} of '{source}' must be an object")
    target = descriptor.get("node")
    if not isinstance(target, str) or not target:
        raise MalformedGraphError(f"Target descriptor in slot {slot} of '{source}' is missing 'node'")

    key: DescriptorChannelKey | None = None
    if "channel" in descriptor:
        key = "channel"
    elif "type" in descriptor:
        key = "type"
    target_channel = descriptor[key] if key is not None else channel
    if not isinstance(target_channel, str):
        raise MalformedGraphError(f"Target descriptor for '{target}' has a non-string channel")

    index = descriptor.get("index", 0)
    if not isinstance(index, int) or isinstance(index, bool):
        raise MalformedGraphError(f"Target descriptor for '{target}' has a non-integer index")

    connection = Connection(
        source_node=NodeName(source),
        source_channel=ChannelName(channel),
        source_slot=slot,
        target_node=NodeName(target),
        target_channel=ChannelName(target_channel),
        target_slot=index,
    )
    return connection, key
