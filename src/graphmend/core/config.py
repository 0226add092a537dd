# src/graphmend/core/config.py
"""
Configuration schema and loading for graphmend.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction, so one instance can be
shared by concurrent validations without locking.
"""

import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

# Value written into required fields that repair had to invent. Also
# matched as a placeholder by the schema check, so repaired graphs validate.
DEFAULT_PLACEHOLDER = "__CONFIGURE_ME__"

# Placeholder shapes produced by the template sanitizer and common
# hand-written templates: <API_KEY>, __CREDENTIAL__, {{ PLACEHOLDER }}, YOUR_TOKEN_HERE
_DEFAULT_PLACEHOLDER_PATTERNS: tuple[str, ...] = (
    r"^<[A-Z0-9_\- ]+>$",
    r"^__[A-Z0-9_]+__$",
    r"^\{\{\s*[A-Z0-9_]+\s*\}\}$",
    r"^YOUR_[A-Z0-9_]+$",
)


class InputLimits(BaseModel):
    """Guardrails applied to raw graph documents before parsing.

    Exceeding any limit is an input error (MalformedGraphError), not a
    validation issue.
    """

    model_config = {"frozen": True}

    max_document_bytes: int = Field(default=5 * 1024 * 1024, gt=0, description="Maximum raw JSON size")
    max_depth: int = Field(default=32, gt=0, description="Maximum object/array nesting depth")
    max_array_length: int = Field(default=1000, gt=0, description="Maximum length of any array")


class GraphmendSettings(BaseModel):
    """Top-level engine settings.

    Example YAML:
        catalog_path: ./catalog.yaml
        strict_catalog: false
        detect_cycles: false
        placeholder_value: __CONFIGURE_ME__
        limits:
          max_depth: 40
    """

    model_config = {"frozen": True, "extra": "forbid"}

    catalog_path: Path | None = Field(
        default=None,
        description="Node catalog YAML; the packaged default catalog when unset",
    )
    strict_catalog: bool = Field(
        default=False,
        description="Report unknown node types as errors instead of warnings",
    )
    detect_cycles: bool = Field(
        default=False,
        description="Report cycles on the primary channel as CycleDetected",
    )
    placeholder_value: str = Field(
        default=DEFAULT_PLACEHOLDER,
        min_length=1,
        description="Value repair writes into required fields it has to invent",
    )
    placeholder_patterns: tuple[str, ...] = Field(
        default=_DEFAULT_PLACEHOLDER_PATTERNS,
        description="Regexes recognizing sanitizer placeholders in parameter values",
    )
    limits: InputLimits = Field(default_factory=InputLimits)
    batch_workers: int | None = Field(
        default=None,
        gt=0,
        description="Thread pool size for validate_batch (None = executor default)",
    )

    @field_validator("placeholder_patterns")
    @classmethod
    def validate_patterns_compile(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Reject patterns that are not valid regular expressions."""
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid placeholder pattern {pattern!r}: {e}") from e
        return v

    def is_placeholder(self, value: Any) -> bool:
        """Whether a parameter value is a placeholder rather than real data."""
        if not isinstance(value, str):
            return False
        if value == self.placeholder_value:
            return True
        return any(re.match(pattern, value) for pattern in self.placeholder_patterns)


def load_settings(config_path: Path) -> GraphmendSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (GRAPHMEND_*) - highest priority
    2. Config file (settings.yaml)
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: GRAPHMEND_LIMITS__MAX_DEPTH for nested keys.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated GraphmendSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Explicit check for file existence (Dynaconf silently accepts missing files)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="GRAPHMEND",
        settings_files=[str(config_path)],
        environments=False,  # No [default]/[production] sections
        load_dotenv=False,  # Don't auto-load .env
        merge_enabled=True,  # Deep merge nested dicts
    )

    # Dynaconf returns uppercase keys; convert to lowercase for Pydantic
    # Also filter out internal Dynaconf settings
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}
    raw_config = _lower_nested_keys(raw_config)

    settings = GraphmendSettings(**raw_config)
    if settings.catalog_path is not None and not settings.catalog_path.is_absolute():
        # Relative catalog paths resolve against the settings file, not the CWD
        settings = settings.model_copy(update={"catalog_path": (config_path.parent / settings.catalog_path).resolve()})
    return settings


def _lower_nested_keys(config: dict[str, Any]) -> dict[str, Any]:
    """Lowercase keys of nested dicts (Dynaconf uppercases env-provided keys)."""

    def _lower(value: Any) -> Any:
        if isinstance(value, dict):
            return {str(k).lower(): _lower(v) for k, v in value.items()}
        return value

    return {k: _lower(v) for k, v in config.items()}
