"""Semantic type aliases for compile-time type safety.

NewType creates distinct types that mypy treats as incompatible,
preventing accidental misuse of semantically different string values.
"""

from typing import NewType

NodeID = NewType("NodeID", str)
"""Stable unique node identifier within a graph (the document's ``id``)."""

NodeName = NewType("NodeName", str)
"""Unique display name; connections reference nodes by this name."""

ChannelName = NewType("ChannelName", str)
"""Edge channel name, e.g. 'main' or 'capability:model'."""

TypeTag = NewType("TypeTag", str)
"""Node kind identifier from the catalog, e.g. 'n-way-router'."""

PRIMARY_CHANNEL = ChannelName("main")
"""The data-flow channel. The only channel that supports branching slots."""
