"""Shared pytest fixtures."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from mindstate.affect.models import AffectEstimate
from mindstate.catalog import DEFAULT_CATALOG, StateCatalog
from mindstate.config import EngineConfig
from mindstate.models import Sample, ScoredCandidate, StateCategory
from mindstate.stabilizer import TemporalStabilizer

_CATEGORIES = {d.id: d.category for d in DEFAULT_CATALOG}


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture
def catalog() -> StateCatalog:
    return DEFAULT_CATALOG


@pytest.fixture
def calm_affect() -> AffectEstimate:
    return AffectEstimate()


@pytest.fixture
def make_candidate() -> Callable[..., ScoredCandidate]:
    """Factory for scored candidates with catalog-consistent categories."""

    def _make(state_id: str, confidence: float, **kwargs) -> ScoredCandidate:
        return ScoredCandidate(
            state_id=state_id,
            name=kwargs.pop("name", state_id.replace("_", " ").title()),
            color=kwargs.pop("color", "#000000"),
            category=kwargs.pop("category", _CATEGORIES.get(state_id, StateCategory.ORDINARY)),
            raw_confidence=confidence,
            **kwargs,
        )

    return _make


@pytest.fixture
def stabilizer(config: EngineConfig, catalog: StateCatalog) -> TemporalStabilizer:
    return TemporalStabilizer(config, catalog, start_ms=0.0)


@pytest.fixture
def alpha_theta_sample() -> Sample:
    """Deep-relaxation signature: strong alpha and theta, quiet beta and gamma."""
    return Sample(theta=0.6, alpha=0.9, beta_low=0.05, beta_high=0.05, gamma=0.05)


@pytest.fixture
def ambiguous_sample() -> Sample:
    """Theta-gamma pattern with alpha inside the lucid / meta-awareness window."""
    return Sample(theta=0.5, alpha=0.25, beta_low=0.3, beta_high=0.0, gamma=0.7)


@pytest.fixture
def beta_sample() -> Sample:
    """Alert waking signature."""
    return Sample(theta=0.1, alpha=0.15, beta_low=0.7, beta_high=0.6, gamma=0.1)
