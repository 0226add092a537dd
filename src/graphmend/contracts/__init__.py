"""Shared contracts for cross-boundary data types.

All enums, errors, reports and results that cross subsystem boundaries
are defined here.

This package is a LEAF MODULE with no outbound dependencies to core,
validation or repair.
"""

from graphmend.contracts.enums import IssueKind, NodeRole, Severity, ValueKind
from graphmend.contracts.errors import (
    CatalogError,
    DanglingConnectionReferenceError,
    DuplicateNodeNameError,
    GraphmendError,
    MalformedGraphError,
    UnrepairableReportError,
)
from graphmend.contracts.report import Issue, ValidationReport
from graphmend.contracts.results import RepairResult, ValidateAndRepairResult
from graphmend.contracts.types import (
    PRIMARY_CHANNEL,
    ChannelName,
    NodeID,
    NodeName,
    TypeTag,
)

__all__ = [
    "PRIMARY_CHANNEL",
    "CatalogError",
    "ChannelName",
    "DanglingConnectionReferenceError",
    "DuplicateNodeNameError",
    "GraphmendError",
    "Issue",
    "IssueKind",
    "MalformedGraphError",
    "NodeID",
    "NodeName",
    "NodeRole",
    "RepairResult",
    "Severity",
    "TypeTag",
    "UnrepairableReportError",
    "ValidateAndRepairResult",
    "ValueKind",
]
