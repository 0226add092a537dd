"""Operation outcomes returned by the engine.

These types answer: "What did a repair produce?"
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

from graphmend.contracts.report import ValidationReport

if TYPE_CHECKING:
    from graphmend.core.graph import WorkflowGraph


class RepairResult(NamedTuple):
    """A repaired graph and the edits that produced it.

    Attributes:
        graph: New graph value; the input graph is never mutated
        change_log: Human-readable description of each edit, in the order applied
    """

    graph: WorkflowGraph
    change_log: tuple[str, ...]


class ValidateAndRepairResult(NamedTuple):
    """Result of validate_and_repair().

    Attributes:
        graph: Repaired graph
        report: Validation report of the graph BEFORE repair
        change_log: Edits applied by repair
    """

    graph: WorkflowGraph
    report: ValidationReport
    change_log: tuple[str, ...]
