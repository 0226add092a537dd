# src/graphmend/repair/__init__.py
"""Repair: the fixed repair policy and the parameter migrations it uses."""

from graphmend.repair.migrations import apply_migration, migrate_parameters
from graphmend.repair.synthesizer import RepairSynthesizer

__all__ = [
    "RepairSynthesizer",
    "apply_migration",
    "migrate_parameters",
]
