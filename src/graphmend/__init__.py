"""
graphmend: validation and repair for automation-workflow graphs.

Checks a serialized workflow graph for structural, typing and channel
defects, and produces a corrected graph under a fixed, documented repair
policy that never retypes or deletes the author's nodes.
"""

__version__ = "0.1.0"

from graphmend.contracts import (
    GraphmendError,
    Issue,
    IssueKind,
    MalformedGraphError,
    NodeRole,
    RepairResult,
    Severity,
    UnrepairableReportError,
    ValidateAndRepairResult,
    ValidationReport,
)
from graphmend.core.graph import WorkflowGraph
from graphmend.engine import (
    Engine,
    load_graph,
    repair,
    validate,
    validate_and_repair,
    validate_batch,
)

__all__ = [
    "Engine",
    "GraphmendError",
    "Issue",
    "IssueKind",
    "MalformedGraphError",
    "NodeRole",
    "RepairResult",
    "Severity",
    "UnrepairableReportError",
    "ValidateAndRepairResult",
    "ValidationReport",
    "WorkflowGraph",
    "__version__",
    "load_graph",
    "repair",
    "validate",
    "validate_and_repair",
    "validate_batch",
]
