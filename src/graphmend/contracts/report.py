"""Validation report contracts.

A ValidationReport is built fresh per validation run, is immutable once
returned, and is consumed by the repair synthesizer.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from graphmend.contracts.enums import IssueKind, Severity


@dataclass(frozen=True, slots=True)
class Issue:
    """One semantic defect found during validation.

    Attributes:
        node_ref: Display name of the node the issue is about, or None for
            graph-wide issues (e.g. MissingSource)
        kind: Issue kind
        severity: Issue severity
        detail: Human-readable explanation
        context: Structured facts behind the issue (branch index, terminal
            node names, offending connection, ...). Read-only.
    """

    node_ref: str | None
    kind: IssueKind
    severity: Severity
    detail: str
    context: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "context", _freeze(self.context))

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "node_ref": self.node_ref,
            "kind": self.kind.value,
            "severity": self.severity.value,
            "detail": self.detail,
            "context": _thaw(self.context),
        }

    def __str__(self) -> str:
        node_info = f" [{self.node_ref}]" if self.node_ref is not None else ""
        return f"{self.severity.upper()} {self.kind}{node_info}: {self.detail}"


@dataclass(frozen=True, slots=True)
class ValidationReport:
    """Every issue found in one validation pass.

    Attributes:
        issues: Issues in discovery order
        graph_hash: Canonical hash of the graph the report was built from.
            None for reports constructed outside the engine.
    """

    issues: tuple[Issue, ...] = ()
    graph_hash: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "issues", tuple(self.issues))

    def __iter__(self) -> Iterator[Issue]:
        return iter(self.issues)

    @property
    def is_clean(self) -> bool:
        """No issues of any severity."""
        return not self.issues

    @property
    def is_executable(self) -> bool:
        """No issue at ERROR severity or above."""
        return not self.at_least(Severity.ERROR)

    @property
    def has_only_warnings(self) -> bool:
        """Repairable but usable as-is."""
        return bool(self.issues) and self.is_executable

    @property
    def max_severity(self) -> Severity | None:
        if not self.issues:
            return None
        return max((issue.severity for issue in self.issues), key=lambda s: s.rank)

    def at_least(self, severity: Severity) -> tuple[Issue, ...]:
        """Issues at or above the given severity."""
        return tuple(issue for issue in self.issues if issue.severity.at_least(severity))

    def by_kind(self, kind: IssueKind) -> tuple[Issue, ...]:
        return tuple(issue for issue in self.issues if issue.kind == kind)

    def kinds(self) -> set[IssueKind]:
        return {issue.kind for issue in self.issues}

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "graph_hash": self.graph_hash,
            "executable": self.is_executable,
            "issues": [issue.to_dict() for issue in self.issues],
        }


def _thaw(value: Any) -> Any:
    """Convert read-only mappings and tuples back into JSON-friendly types."""
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple | list):
        return [_thaw(v) for v in value]
    return value


def _freeze(value: Any) -> Any:
    """Recursively convert mappings to read-only mappings and lists to tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, list | tuple):
        return tuple(_freeze(v) for v in value)
    return value
