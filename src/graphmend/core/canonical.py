# src/graphmend/core/canonical.py
"""Graph hashing and derived identifiers.

A graph's identity is the SHA-256 of its document serialized as RFC 8785
(JCS) canonical JSON, with a format version mixed in. The validator
stamps it on every report, repair refuses reports that carry another
graph's hash, and ids for nodes that have none (documents without ids,
nodes inserted by repair) are derived from it. Equal documents hash
equally regardless of key order or whether values are frozen views.

Integers beyond 2**53 - 1 (numeric sheet and chat ids) are hashed as
`{"__bigint__": "<digits>"}`; rfc8785 rejects them as bare numbers.
Non-finite floats are rejected outright; JSON has no spelling for them,
so two different graphs could otherwise share a hash.
"""

from __future__ import annotations

import hashlib
import math
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import rfc8785

from graphmend.contracts.types import NodeID

if TYPE_CHECKING:
    from graphmend.core.graph import WorkflowGraph

# Bump when the hashed form changes; reports from an older format stop matching
CANONICAL_VERSION = "sha256-rfc8785-v1"

# rfc8785 only accepts integers a JSON double can hold exactly
_MAX_SAFE_INTEGER = 2**53 - 1

NODE_ID_PREFIX = "node-"
NODE_ID_DIGEST_LENGTH = 16


def _normalize_value(value: Any) -> Any:
    """Plain JSON tree for ``value``: mappings become dicts, sequences lists.

    Raises:
        ValueError: On NaN or +/-Infinity anywhere in the tree
        TypeError: On a value JSON cannot represent (sets, objects, bytes)
    """
    match value:
        case int() if abs(value) > _MAX_SAFE_INTEGER:
            return {"__bigint__": str(value)}
        case None | bool() | int() | str():
            return value
        case float() if math.isfinite(value):
            return value
        case float():
            raise ValueError(f"Cannot canonicalize non-finite float: {value}. Use None for missing values, not NaN.")
        case Mapping():
            return {str(key): _normalize_value(item) for key, item in value.items()}
        case list() | tuple():
            return [_normalize_value(item) for item in value]
        case _:
            raise TypeError(f"Cannot canonicalize value of type {type(value).__name__}")


def canonical_json(obj: Any) -> str:
    """RFC 8785 text for ``obj`` after normalization."""
    encoded: bytes = rfc8785.dumps(_normalize_value(obj))
    return encoded.decode("utf-8")


def stable_hash(obj: Any, version: str = CANONICAL_VERSION) -> str:
    """Hex SHA-256 of ``obj``'s canonical JSON, salted with ``version``."""
    payload = canonical_json({"v": version, "data": obj})
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def compute_graph_hash(graph: WorkflowGraph) -> str:
    """Hash of the full wire document: nodes, parameters, connections, metadata."""
    return stable_hash(graph.to_document())


def derive_node_id(seed: Mapping[str, Any]) -> NodeID:
    """Deterministic node id (``node-`` + 16 hex digits) for ``seed``.

    Callers put whatever makes the node unique into the seed, e.g. its
    display name and the hash of the graph it is inserted into.
    """
    return NodeID(f"{NODE_ID_PREFIX}{stable_hash(seed)[:NODE_ID_DIGEST_LENGTH]}")
