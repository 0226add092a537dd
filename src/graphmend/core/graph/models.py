# src/graphmend/core/graph/models.py
"""Value types for the workflow graph model.

Leaf module: no intra-package imports beyond contracts (prevents import
cycles between graph.py and parser.py).
"""

from __future__ import annotations

import copy
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, TypeAlias

from graphmend.contracts.errors import MalformedGraphError
from graphmend.contracts.types import ChannelName, NodeID, NodeName, TypeTag

# A schema version as written in the document: 1, 3.2, "2.1.0"
RawSchemaVersion: TypeAlias = int | float | str

_VERSION_PATTERN = re.compile(r"^\d+(\.\d+)*$")


def parse_schema_version(value: Any) -> tuple[int, ...]:
    """Normalize a schema version into a comparable tuple.

    Trailing zero components are dropped so ``3``, ``3.0`` and ``"3.0.0"``
    compare equal.

    Raises:
        MalformedGraphError: If the value is not a non-negative version
    """
    # bool is an int subclass; a boolean version is a document defect
    if isinstance(value, bool) or not isinstance(value, int | float | str):
        raise MalformedGraphError(f"Invalid schema version {value!r}: expected an integer or dotted version")
    text = repr(value) if isinstance(value, float) else str(value).strip()
    if not _VERSION_PATTERN.match(text):
        raise MalformedGraphError(f"Invalid schema version {value!r}: expected an integer or dotted version")
    parts = [int(part) for part in text.split(".")]
    while len(parts) > 1 and parts[-1] == 0:
        parts.pop()
    return tuple(parts)


def format_schema_version(version: tuple[int, ...]) -> str:
    return ".".join(str(part) for part in version)


@dataclass(frozen=True, slots=True)
class Node:
    """One processing unit in a workflow graph.

    Frozen after construction. ``parameters`` and ``extras`` are deep-copied
    on the way in and exposed as read-only mappings, so a Node can never be
    used to mutate the document it was parsed from.

    Attributes:
        id: Stable unique identifier within the graph
        display_name: Unique name; connections reference nodes by it
        type_tag: Node kind from the catalog
        schema_version: Parameter-shape revision, as written in the document
        parameters: Opaque payload whose shape depends on (type_tag, schema_version)
        position: Presentational only; preserved across repair
        extras: Every other key of the node object, carried through untouched
    """

    id: NodeID
    display_name: NodeName
    type_tag: TypeTag
    schema_version: RawSchemaVersion = 1
    parameters: Mapping[str, Any] = field(default_factory=dict)
    position: tuple[float, float] = (0, 0)
    extras: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "parameters", MappingProxyType(copy.deepcopy(dict(self.parameters))))
        object.__setattr__(self, "extras", MappingProxyType(copy.deepcopy(dict(self.extras))))
        object.__setattr__(self, "position", tuple(self.position))

    @property
    def version(self) -> tuple[int, ...]:
        """Normalized schema version for comparisons."""
        return parse_schema_version(self.schema_version)

    def parameters_copy(self) -> dict[str, Any]:
        """Mutable deep copy of the parameter payload."""
        return copy.deepcopy(dict(self.parameters))

    def to_document(self) -> dict[str, Any]:
        """Wire-format node object."""
        document: dict[str, Any] = {
            "id": self.id,
            "name": self.display_name,
            "type": self.type_tag,
            "typeVersion": self.schema_version,
            "position": list(self.position),
            "parameters": self.parameters_copy(),
        }
        document.update(copy.deepcopy(dict(self.extras)))
        return document


@dataclass(frozen=True, slots=True)
class Connection:
    """One edge: (source, channel, slot) -> (target, channel, slot).

    An edge cannot change channel mid-flight; the parser rejects documents
    where the two channels differ.
    """

    source_node: NodeName
    source_channel: ChannelName
    source_slot: int
    target_node: NodeName
    target_channel: ChannelName
    target_slot: int = 0

    def __post_init__(self) -> None:
        if self.source_channel != self.target_channel:
            raise MalformedGraphError(
                f"Connection {self.source_node!r} -> {self.target_node!r} changes channel "
                f"from '{self.source_channel}' to '{self.target_channel}'"
            )
        if self.source_slot < 0 or self.target_slot < 0:
            raise MalformedGraphError(f"Connection {self.source_node!r} -> {self.target_node!r} has a negative slot index")

    @property
    def channel(self) -> ChannelName:
        return self.source_channel

    def with_channel(self, channel: ChannelName) -> Connection:
        """Copy of this connection relabelled onto another channel (both ends)."""
        return Connection(
            source_node=self.source_node,
            source_channel=channel,
            source_slot=self.source_slot,
            target_node=self.target_node,
            target_channel=channel,
            target_slot=self.target_slot,
        )

    def describe(self) -> str:
        return (
            f"'{self.source_node}'[{self.source_channel}:{self.source_slot}] -> "
            f"'{self.target_node}'[{self.target_channel}:{self.target_slot}]"
        )

    def to_context(self) -> dict[str, Any]:
        """Structured form used in issue context."""
        return {
            "source_node": self.source_node,
            "source_channel": self.source_channel,
            "source_slot": self.source_slot,
            "target_node": self.target_node,
            "target_channel": self.target_channel,
            "target_slot": self.target_slot,
        }

    @classmethod
    def from_context(cls, data: Mapping[str, Any]) -> Connection:
        return cls(
            source_node=NodeName(data["source_node"]),
            source_channel=ChannelName(data["source_channel"]),
            source_slot=int(data["source_slot"]),
            target_node=NodeName(data["target_node"]),
            target_channel=ChannelName(data["target_channel"]),
            target_slot=int(data["target_slot"]),
        )
