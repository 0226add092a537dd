# src/graphmend/validation/schema.py
"""Parameter shape check against the catalog schema for each node's
declared (type_tag, schema_version).

Placeholder values left by the template sanitizer and expression strings
satisfy "required field present" and are never checked for kind: their
real value is only known at run time.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from graphmend.contracts.enums import IssueKind, Severity, ValueKind
from graphmend.contracts.report import Issue
from graphmend.core.catalog import NodeKind, ParameterShape
from graphmend.core.config import GraphmendSettings
from graphmend.core.graph import WorkflowGraph, format_schema_version
from graphmend.validation.classifier import Classification


def value_matches_kind(value: Any, kind: ValueKind) -> bool:
    """Whether a concrete parameter value has the given value kind."""
    match kind:
        case ValueKind.ANY:
            return True
        case ValueKind.STRING:
            return isinstance(value, str)
        case ValueKind.BOOLEAN:
            return isinstance(value, bool)
        case ValueKind.INTEGER:
            return isinstance(value, int) and not isinstance(value, bool)
        case ValueKind.NUMBER:
            return isinstance(value, int | float) and not isinstance(value, bool)
        case ValueKind.OBJECT:
            return isinstance(value, Mapping)
        case ValueKind.ARRAY:
            return isinstance(value, list | tuple)


def is_expression(value: Any) -> bool:
    """Expression strings (``={{ $json.url }}``) are resolved at run time."""
    return isinstance(value, str) and (value.startswith("=") or "{{" in value)


def is_deferred(value: Any, settings: GraphmendSettings) -> bool:
    """Values whose kind cannot be known before run time."""
    return settings.is_placeholder(value) or is_expression(value)


def shape_problems(parameters: Mapping[str, Any], shape: ParameterShape, settings: GraphmendSettings) -> list[str]:
    """Every way ``parameters`` fails to match ``shape``; empty when it matches.

    A required field set to null counts as missing. Unknown extra fields
    are allowed.
    """
    problems: list[str] = []
    for name, spec in shape.fields.items():
        value = parameters.get(name)
        if value is None:
            if spec.required:
                problems.append(f"missing required field '{name}'")
            continue
        if is_deferred(value, settings):
            continue
        if not value_matches_kind(value, spec.kind):
            problems.append(f"field '{name}' should be {spec.kind}, got {_describe_kind(value)}")
    return problems


def _describe_kind(value: Any) -> str:
    for kind in (ValueKind.BOOLEAN, ValueKind.INTEGER, ValueKind.NUMBER, ValueKind.STRING, ValueKind.OBJECT, ValueKind.ARRAY):
        if value_matches_kind(value, kind):
            return str(kind)
    return type(value).__name__


def _matching_older_version(
    parameters: Mapping[str, Any], kind: NodeKind, declared: tuple[int, ...], settings: GraphmendSettings
) -> tuple[int, ...] | None:
    """Newest version older than ``declared`` the parameters were written for.

    Extra fields are allowed, so matching an older shape is not enough: the
    parameters must also use a field that only the older shape defines
    (``requestMethod`` for http-call v3, say).
    """
    current = kind.shape_for(declared)
    current_fields = set(current.fields) if current is not None else set()
    for version in reversed(kind.versions()):
        if version >= declared:
            continue
        shape = kind.shape_for(version)
        if shape is None or shape_problems(parameters, shape, settings):
            continue
        if any(name in parameters for name in set(shape.fields) - current_fields):
            return version
    return None


def check_parameters(
    graph: WorkflowGraph,
    classification: Classification,
    settings: GraphmendSettings,
) -> list[Issue]:
    """Check every known node's parameters against its declared schema version.

    Kinds with no schemas in the catalog are not checked. A declared version
    the catalog does not know yields UnknownSchemaVersion instead.
    """
    issues: list[Issue] = []
    for node in graph.nodes:
        kind = classification.kind(node)
        if kind is None or not kind.schemas:
            continue

        declared = node.version
        declared_text = format_schema_version(declared)
        shape = kind.shape_for(declared)
        if shape is None:
            known = [format_schema_version(version) for version in kind.versions()]
            issues.append(
                Issue(
                    node_ref=node.display_name,
                    kind=IssueKind.UNKNOWN_SCHEMA_VERSION,
                    severity=Severity.WARNING,
                    detail=(
                        f"'{node.display_name}' declares schema version {declared_text} of '{kind.type_tag}'; "
                        f"known versions: {', '.join(known)}. Parameters not checked"
                    ),
                    context={"declared_version": declared_text, "known_versions": tuple(known)},
                )
            )
            continue

        problems = shape_problems(node.parameters, shape, settings)
        if not problems:
            continue

        older = _matching_older_version(node.parameters, kind, declared, settings)
        older_text = format_schema_version(older) if older is not None else None
        detail = (
            f"Parameters of '{node.display_name}' do not match schema version {declared_text} "
            f"of '{kind.type_tag}': {'; '.join(problems)}. Expected {shape.describe()}"
        )
        if older_text is not None:
            detail += f" (they match version {older_text})"
        issues.append(
            Issue(
                node_ref=node.display_name,
                kind=IssueKind.SCHEMA_VERSION_MISMATCH,
                severity=Severity.ERROR,
                detail=detail,
                context={
                    "declared_version": declared_text,
                    "expected_shape": shape.describe(),
                    "problems": tuple(problems),
                    "matching_version": older_text,
                },
            )
        )
    return issues
