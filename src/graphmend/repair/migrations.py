# src/graphmend/repair/migrations.py
"""Parameter upgrades towards a node's declared schema version.

Two stages:
    1. Catalog migration steps (renames, wraps, defaults) for every
       version up to the target, oldest first. Each step only touches
       fields still in the old form, so running it on parameters that
       are already partly upgraded is harmless.
    2. Shape fill: required fields still missing get the placeholder, and
       fields of the wrong kind are replaced by it.

The schema version itself is never changed.
"""

from __future__ import annotations

import copy
import json
from collections.abc import Mapping
from typing import Any

from graphmend.core.catalog import Migration, NodeKind
from graphmend.core.config import GraphmendSettings
from graphmend.validation.schema import is_deferred, value_matches_kind


def _preview(value: Any, limit: int = 60) -> str:
    """Short JSON rendering of a replaced value for the change log."""
    text = json.dumps(value, sort_keys=True, default=str)
    return text if len(text) <= limit else text[: limit - 3] + "..."


def apply_migration(parameters: dict[str, Any], migration: Migration) -> list[str]:
    """Apply one migration step in place; returns a note per edit."""
    notes: list[str] = []
    for old, new in migration.renames.items():
        if old in parameters and new not in parameters:
            parameters[new] = parameters.pop(old)
            notes.append(f"renamed '{old}' to '{new}'")
    for name, inner in migration.wraps.items():
        if name in parameters and not isinstance(parameters[name], Mapping):
            parameters[name] = {inner: parameters[name]}
            notes.append(f"moved '{name}' under '{name}.{inner}'")
    for name, default in migration.defaults.items():
        if parameters.get(name) is None:
            parameters[name] = copy.deepcopy(default)
            notes.append(f"set '{name}' to default {_preview(default)}")
    return notes


def migrate_parameters(
    parameters: Mapping[str, Any],
    kind: NodeKind,
    target: tuple[int, ...],
    settings: GraphmendSettings,
) -> tuple[dict[str, Any], list[str]]:
    """Upgrade ``parameters`` to the shape of ``kind`` at ``target``.

    Args:
        parameters: Current parameters (not modified)
        kind: Catalog kind of the node
        target: Declared schema version of the node
        settings: Supplies the placeholder value and placeholder patterns

    Returns:
        (new parameters, notes describing each edit in order)

    Raises:
        KeyError: If the catalog has no shape for ``target``
    """
    shape = kind.shape_for(target)
    if shape is None:
        raise KeyError(f"No schema for version {target} of '{kind.type_tag}'")

    upgraded = copy.deepcopy(dict(parameters))
    notes: list[str] = []
    for migration in kind.migration_steps(target):
        notes.extend(apply_migration(upgraded, migration))

    for name, spec in shape.fields.items():
        value = upgraded.get(name)
        if value is None:
            if spec.required:
                upgraded[name] = settings.placeholder_value
                notes.append(f"filled required '{name}' with placeholder {settings.placeholder_value!r}")
            continue
        if is_deferred(value, settings) or value_matches_kind(value, spec.kind):
            continue
        upgraded[name] = settings.placeholder_value
        notes.append(f"replaced '{name}' (expected {spec.kind}) with placeholder; previous value: {_preview(value)}")

    return upgraded, notes
