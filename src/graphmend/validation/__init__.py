# src/graphmend/validation/__init__.py
"""Validation: classifier, connectivity analyzer, schema and channel checks."""

from graphmend.validation.channels import check_channels
from graphmend.validation.classifier import Classification, classify
from graphmend.validation.connectivity import (
    analyze_connectivity,
    declared_branch_count,
    fallback_enabled,
    find_cycles,
    primary_outgoing,
)
from graphmend.validation.schema import check_parameters, is_expression, shape_problems, value_matches_kind
from graphmend.validation.validator import GraphValidator

__all__ = [
    "Classification",
    "GraphValidator",
    "analyze_connectivity",
    "check_channels",
    "check_parameters",
    "classify",
    "declared_branch_count",
    "fallback_enabled",
    "find_cycles",
    "is_expression",
    "primary_outgoing",
    "shape_problems",
    "value_matches_kind",
]
