"""Exception hierarchy for graph input errors and repair failures.

Input errors are fatal: no classification or connectivity analysis can
proceed on a graph that fails to parse, so they are raised rather than
collected. Semantic problems are never exceptions; they become Issues in
a ValidationReport.
"""

from __future__ import annotations


class GraphmendError(Exception):
    """Base class for every exception raised by the engine."""


class MalformedGraphError(GraphmendError, ValueError):
    """Raised when a graph document is not the expected wire shape.

    Raised before validation begins. Subclasses name the specific
    structural invariant that was broken.
    """


class DuplicateNodeNameError(MalformedGraphError):
    """Raised when two nodes share a display name (or an id).

    Attributes:
        name: The duplicated display name or id
        field: Which node field collided ("name" or "id")
    """

    def __init__(self, name: str, *, field: str = "name") -> None:
        self.name = name
        self.field = field
        super().__init__(f"Duplicate node {field} '{name}': node {field}s must be unique within a graph")


class DanglingConnectionReferenceError(MalformedGraphError):
    """Raised when a connection references a node that does not exist.

    Attributes:
        node_name: The unknown node name
        side: "source" or "target"
        suggestions: Close matches among existing node names
    """

    def __init__(self, node_name: str, *, side: str, suggestions: list[str] | None = None) -> None:
        self.node_name = node_name
        self.side = side
        self.suggestions = suggestions or []
        hint = f" Did you mean: {', '.join(self.suggestions)}?" if self.suggestions else ""
        super().__init__(f"Connection {side} '{node_name}' does not reference any node in the graph.{hint}")


class UnrepairableReportError(GraphmendError):
    """Raised by repair() when the report does not describe the graph.

    repair() never guesses: an externally built or stale report that
    disagrees with the graph is rejected instead of partially applied.
    """


class CatalogError(GraphmendError, ValueError):
    """Raised when a node catalog file cannot be loaded or is invalid."""
