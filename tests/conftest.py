# tests/conftest.py
"""Shared test configuration and fixtures for nodeflow tests."""

from __future__ import annotations

import os

import pytest
from hypothesis import Phase, Verbosity, settings

from nodeflow.contracts import Flow
from nodeflow.core.registry import SchemaRegistry
from tests.fixtures.factories import make_action, make_flow, make_trigger

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


# =============================================================================
# Shared fixtures
# =============================================================================


@pytest.fixture
def registry() -> SchemaRegistry:
    """Registry holding only the packaged built-in catalog."""
    return SchemaRegistry.default()


@pytest.fixture
def linear_flow() -> Flow:
    """A configured trigger feeding two actions in a chain: trigger -> a -> b."""
    return make_flow(
        [make_trigger(triggerType="manual"), make_action("a"), make_action("b")],
        [("trigger", "a"), ("a", "b")],
    )
