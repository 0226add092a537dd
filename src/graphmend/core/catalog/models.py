# src/graphmend/core/catalog/models.py
"""Pydantic schema for the node catalog file.

The catalog is the single source of truth for per-kind behaviour: which
role a type tag plays, which parameter shape each schema version expects,
how stale parameters migrate, which channel a capability provider must use
and which capabilities an orchestrator requires. New node kinds are added
by editing data, never analyzer code.

These models only validate the file. NodeCatalog (catalog.py) wraps the
validated document with the lookup indexes the engine uses.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from graphmend.contracts.enums import NodeRole, ValueKind
from graphmend.contracts.errors import MalformedGraphError
from graphmend.contracts.types import PRIMARY_CHANNEL
from graphmend.core.graph.models import parse_schema_version


class FieldSpec(BaseModel):
    """One parameter field of a schema shape."""

    model_config = {"frozen": True, "extra": "forbid"}

    kind: ValueKind = ValueKind.ANY
    required: bool = False


class ParameterShape(BaseModel):
    """Required parameter shape for one (type_tag, schema_version) pair."""

    model_config = {"frozen": True, "extra": "forbid"}

    fields: dict[str, FieldSpec] = Field(default_factory=dict)

    @property
    def required_fields(self) -> list[str]:
        return [name for name, spec in self.fields.items() if spec.required]

    def describe(self) -> str:
        """Compact human-readable form, e.g. ``{url: string, method?: string}``."""
        parts = [f"{name}{'' if spec.required else '?'}: {spec.kind}" for name, spec in self.fields.items()]
        return "{" + ", ".join(parts) + "}"


class Migration(BaseModel):
    """Parameter upgrade steps towards one schema version.

    Applied in order: renames, then wraps, then defaults.

    Example YAML:
        migrations:
          "3":
            wraps: {rules: values}        # rules: [...] -> rules: {values: [...]}
          "4":
            renames: {requestMethod: method}
            defaults: {method: GET}
    """

    model_config = {"frozen": True, "extra": "forbid"}

    renames: dict[str, str] = Field(default_factory=dict)
    wraps: dict[str, str] = Field(default_factory=dict)
    defaults: dict[str, Any] = Field(default_factory=dict)


class BranchingSpec(BaseModel):
    """How many primary-channel branches a branching kind declares.

    Either a fixed count (a two-way conditional) or a count read from the
    node's parameters (an n-way router). Only n-way kinds are checked for
    branch completeness.

    Attributes:
        fixed_count: Constant number of branches
        count_paths: Dotted parameter paths tried in order; the first that
            resolves to an array (its length) or integer gives the count
        fallback_path: Dotted parameter path enabling the reserved fallback slot
        fallback_value: Value at fallback_path that enables the fallback slot
    """

    model_config = {"frozen": True, "extra": "forbid"}

    fixed_count: int | None = Field(default=None, gt=0)
    count_paths: tuple[str, ...] = ()
    fallback_path: str | None = None
    fallback_value: Any = "extra"

    @model_validator(mode="after")
    def validate_count_source(self) -> BranchingSpec:
        """Exactly one of fixed_count or count_paths."""
        if (self.fixed_count is None) == (not self.count_paths):
            raise ValueError("branching needs exactly one of fixed_count or count_paths")
        return self

    @property
    def is_n_way(self) -> bool:
        return bool(self.count_paths)


class NodeKind(BaseModel):
    """Catalog entry for one node kind."""

    model_config = {"frozen": True, "extra": "forbid"}

    type_tag: str
    role: NodeRole
    description: str = ""
    aliases: tuple[str, ...] = ()
    designated_channel: str | None = None
    requires: tuple[str, ...] = ()
    branching: BranchingSpec | None = None
    schemas: dict[str, ParameterShape] = Field(default_factory=dict)
    migrations: dict[str, Migration] = Field(default_factory=dict)

    @field_validator("schemas", "migrations")
    @classmethod
    def validate_version_keys(cls, v: dict[str, Any]) -> dict[str, Any]:
        """Version keys must parse as schema versions."""
        for key in v:
            try:
                parse_schema_version(key)
            except MalformedGraphError as e:
                raise ValueError(f"invalid schema version key {key!r}") from e
        return v

    @model_validator(mode="after")
    def validate_role_fields(self) -> NodeKind:
        """Role-specific fields only appear on the roles they apply to."""
        if self.role == NodeRole.CAPABILITY_PROVIDER:
            if self.designated_channel is None:
                raise ValueError(f"capability provider '{self.type_tag}' needs a designated_channel")
            if self.designated_channel == PRIMARY_CHANNEL:
                raise ValueError(f"capability provider '{self.type_tag}' cannot designate the primary channel")
        elif self.designated_channel is not None:
            raise ValueError(f"only capability providers declare designated_channel ('{self.type_tag}' is {self.role})")
        if self.requires and self.role != NodeRole.ORCHESTRATOR:
            raise ValueError(f"only orchestrators declare requires ('{self.type_tag}' is {self.role})")
        if self.branching is not None and self.branching.is_n_way and self.role != NodeRole.ORCHESTRATOR:
            raise ValueError(f"n-way branching kind '{self.type_tag}' must be an orchestrator")
        return self

    def versions(self) -> list[tuple[int, ...]]:
        """Known schema versions, oldest first."""
        return sorted(parse_schema_version(key) for key in self.schemas)

    @property
    def latest_version(self) -> tuple[int, ...] | None:
        versions = self.versions()
        return versions[-1] if versions else None

    def shape_for(self, version: tuple[int, ...]) -> ParameterShape | None:
        for key, shape in self.schemas.items():
            if parse_schema_version(key) == version:
                return shape
        return None

    def migration_steps(self, target: tuple[int, ...]) -> list[Migration]:
        """Migrations up to and including ``target``, oldest first."""
        steps = [(parse_schema_version(key), migration) for key, migration in self.migrations.items()]
        return [migration for version, migration in sorted(steps, key=lambda item: item[0]) if version <= target]


class ChannelSpec(BaseModel):
    """A channel and the alternative names documents use for it."""

    model_config = {"frozen": True, "extra": "forbid"}

    aliases: tuple[str, ...] = ()
    description: str = ""


class RepairDefaults(BaseModel):
    """Kinds the repair synthesizer inserts."""

    model_config = {"frozen": True, "extra": "forbid"}

    placeholder_sink: str
    convergence: str
    capability_placeholders: dict[str, str] = Field(default_factory=dict)


class CatalogDocument(BaseModel):
    """Top-level catalog file."""

    model_config = {"frozen": True, "extra": "forbid"}

    version: int = 1
    channels: dict[str, ChannelSpec]
    kinds: dict[str, NodeKind]
    repair: RepairDefaults

    @model_validator(mode="before")
    @classmethod
    def inject_type_tags(cls, data: Any) -> Any:
        """Kinds are keyed by type tag in YAML; copy the key into each entry."""
        if isinstance(data, dict) and isinstance(data.get("kinds"), dict):
            kinds = {}
            for tag, entry in data["kinds"].items():
                if isinstance(entry, dict):
                    entry = {**entry, "type_tag": tag}
                kinds[tag] = entry
            data = {**data, "kinds": kinds}
        return data

    @model_validator(mode="after")
    def validate_references(self) -> CatalogDocument:
        """Channel, alias and repair references must be consistent."""
        if PRIMARY_CHANNEL not in self.channels:
            raise ValueError(f"catalog must define the primary channel '{PRIMARY_CHANNEL}'")

        seen_channels: dict[str, str] = {}
        for name, spec in self.channels.items():
            for alias in (name, *spec.aliases):
                if alias in seen_channels:
                    raise ValueError(f"channel name '{alias}' used by both '{seen_channels[alias]}' and '{name}'")
                seen_channels[alias] = name

        seen_tags: dict[str, str] = {}
        for tag, kind in self.kinds.items():
            for alias in (tag, *kind.aliases):
                if alias in seen_tags:
                    raise ValueError(f"type tag '{alias}' used by both '{seen_tags[alias]}' and '{tag}'")
                seen_tags[alias] = tag
            for channel in (kind.designated_channel, *kind.requires):
                if channel is not None and channel not in self.channels:
                    raise ValueError(f"kind '{tag}' references unknown channel '{channel}'")

        for label, tag in (("placeholder_sink", self.repair.placeholder_sink), ("convergence", self.repair.convergence)):
            if tag not in self.kinds:
                raise ValueError(f"repair.{label} references unknown kind '{tag}'")
            if self.kinds[tag].role != NodeRole.SINK:
                raise ValueError(f"repair.{label} kind '{tag}' must have role sink")
        for channel, tag in self.repair.capability_placeholders.items():
            kind = self.kinds.get(tag)
            if kind is None:
                raise ValueError(f"repair.capability_placeholders references unknown kind '{tag}'")
            if kind.designated_channel != channel:
                raise ValueError(f"placeholder '{tag}' for channel '{channel}' designates '{kind.designated_channel}'")
        return self

