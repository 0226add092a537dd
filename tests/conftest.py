# tests/conftest.py
"""Shared test fixtures.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import os

import pytest
from hypothesis import Phase, Verbosity, settings

from graphmend.core.catalog import NodeCatalog, default_catalog
from graphmend.core.config import GraphmendSettings
from graphmend.engine import Engine


@pytest.fixture
def catalog() -> NodeCatalog:
    """The packaged catalog (cached per process, read-only)."""
    return default_catalog()


@pytest.fixture
def graphmend_settings() -> GraphmendSettings:
    return GraphmendSettings()


@pytest.fixture
def engine(catalog: NodeCatalog, graphmend_settings: GraphmendSettings) -> Engine:
    return Engine(settings=graphmend_settings, catalog=catalog)


@pytest.fixture(autouse=True)
def _isolate_graphmend_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep GRAPHMEND_* variables from the developer's shell out of tests."""
    for key in list(os.environ):
        if key.startswith("GRAPHMEND_"):
            monkeypatch.delenv(key)


# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))
