"""All roles, severities, and issue kinds used across subsystem boundaries.

Values are the strings that appear in serialized reports and in the
catalog YAML, so they are part of the external contract.
"""

from enum import StrEnum


class NodeRole(StrEnum):
    """Structural role of a node, assigned by the classifier.

    Every node gets exactly one role. The catalog decides which role a
    type tag maps to; unknown tags fall back to PASS_THROUGH.
    """

    SOURCE = "source"
    PASS_THROUGH = "pass-through"
    SINK = "sink"
    ORCHESTRATOR = "orchestrator"
    CAPABILITY_PROVIDER = "capability-provider"


class Severity(StrEnum):
    """Issue severity, ordered WARNING < ERROR < BLOCKING.

    WARNING: graph is usable as-is but suspicious.
    ERROR: graph should not be considered executable.
    BLOCKING: no meaningful execution is possible at all.
    """

    WARNING = "warning"
    ERROR = "error"
    BLOCKING = "blocking"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def at_least(self, other: "Severity") -> bool:
        """True if this severity is as severe as ``other`` or more."""
        return self.rank >= other.rank


_SEVERITY_RANK = {
    Severity.WARNING: 0,
    Severity.ERROR: 1,
    Severity.BLOCKING: 2,
}


class IssueKind(StrEnum):
    """Kind of semantic issue collected into a ValidationReport.

    Semantic issues are never raised; input errors live in
    graphmend.contracts.errors instead.
    """

    MISSING_SOURCE = "MissingSource"
    DEAD_END = "DeadEnd"
    UNMERGED_BRANCHES = "UnmergedBranches"
    UNCONNECTED_BRANCH = "UnconnectedBranch"
    UNDECLARED_BRANCH_SLOT = "UndeclaredBranchSlot"
    SCHEMA_VERSION_MISMATCH = "SchemaVersionMismatch"
    UNKNOWN_SCHEMA_VERSION = "UnknownSchemaVersion"
    WRONG_CHANNEL = "WrongChannel"
    MISSING_CAPABILITY = "MissingCapability"
    UNKNOWN_NODE_TYPE = "UnknownNodeType"
    CYCLE_DETECTED = "CycleDetected"


class ValueKind(StrEnum):
    """Value kind of a parameter field in a catalog schema shape."""

    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"
    ANY = "any"
