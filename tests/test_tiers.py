"""Tests for the tier / stability classifier."""

from __future__ import annotations

import pytest

from mindstate.affect.models import AffectAxes, AffectEstimate
from mindstate.config import DEFAULT_TIER_THRESHOLDS
from mindstate.models import MicrostateLabel, StabilityLabel, StateCategory, ValidationTier
from mindstate.tiers import (
    advance_session_tier,
    affect_gate_passes,
    classify,
    microstate_label,
    tier_progress,
)

ORDINARY = DEFAULT_TIER_THRESHOLDS[StateCategory.ORDINARY]


# ── Session tier ──────────────────────────────────────────────


class TestAdvanceSessionTier:
    def test_reaches_candidate(self):
        assert advance_session_tier(ValidationTier.DETECTED, 8_000, ORDINARY, stable=True) is ValidationTier.CANDIDATE

    def test_one_step_per_tick(self):
        tier = advance_session_tier(ValidationTier.DETECTED, 40_000, ORDINARY, stable=True)
        assert tier is ValidationTier.CANDIDATE

    def test_lock_requires_stability(self):
        assert advance_session_tier(ValidationTier.CONFIRMED, 30_000, ORDINARY, stable=False) is ValidationTier.CONFIRMED
        assert advance_session_tier(ValidationTier.CONFIRMED, 30_000, ORDINARY, stable=True) is ValidationTier.LOCKED

    def test_never_lowers(self):
        assert advance_session_tier(ValidationTier.LOCKED, 0, ORDINARY, stable=False) is ValidationTier.LOCKED

    def test_waits_below_threshold(self):
        assert advance_session_tier(ValidationTier.CANDIDATE, 14_999, ORDINARY, stable=True) is ValidationTier.CANDIDATE


# ── Display classification ────────────────────────────────────


class TestClassify:
    def test_locked_and_stable(self, config):
        result = classify(ValidationTier.LOCKED, 3.0, True, config)
        assert result.tier is ValidationTier.LOCKED
        assert result.stability is StabilityLabel.STABLE
        assert result.transition_label == "Locked"

    def test_locked_high_variance_shows_confirmed(self, config):
        result = classify(ValidationTier.LOCKED, 20.0, True, config)
        assert result.tier is ValidationTier.CONFIRMED
        assert result.stability is StabilityLabel.UNSTABLE
        assert not result.variance_ok
        assert result.transition_label == "Unstable"

    def test_locked_affect_unstable_shows_confirmed(self, config):
        result = classify(ValidationTier.LOCKED, 0.0, False, config)
        assert result.tier is ValidationTier.CONFIRMED
        assert not result.is_stable

    @pytest.mark.parametrize(
        ("tier", "label"),
        [
            (ValidationTier.DETECTED, "Detecting"),
            (ValidationTier.CANDIDATE, "Entering"),
            (ValidationTier.CONFIRMED, "Confirmed"),
        ],
    )
    def test_transition_labels(self, config, tier, label):
        assert classify(tier, 0.0, True, config).transition_label == label

    def test_early_tiers_are_transitioning(self, config):
        assert classify(ValidationTier.CANDIDATE, 0.0, True, config).stability is StabilityLabel.TRANSITIONING


# ── Affect gate ───────────────────────────────────────────────


class TestAffectGate:
    def test_neutral_passes(self, config):
        assert affect_gate_passes(AffectEstimate(), config)

    @pytest.mark.parametrize(
        "axes",
        [
            AffectAxes(valence=-0.3),
            AffectAxes(valence=-0.8),
            AffectAxes(control=0.3),
            AffectAxes(control=0.1),
        ],
    )
    def test_floors(self, config, axes):
        assert not affect_gate_passes(AffectEstimate(axes=axes), config)

    def test_unstable_fails(self, config):
        assert not affect_gate_passes(AffectEstimate(unstable=True), config)


# ── Progress & microstates ────────────────────────────────────


class TestProgress:
    def test_halfway_to_candidate(self):
        nxt, remaining, progress = tier_progress(ValidationTier.DETECTED, 4_000, ORDINARY)
        assert nxt is ValidationTier.CANDIDATE
        assert remaining == 4_000
        assert progress == pytest.approx(50.0)

    def test_locked_is_complete(self):
        assert tier_progress(ValidationTier.LOCKED, 99_000, ORDINARY) == (None, 0.0, 100.0)

    def test_progress_is_capped(self):
        _, remaining, progress = tier_progress(ValidationTier.CONFIRMED, 45_000, ORDINARY)
        assert remaining == 0.0
        assert progress == 100.0

    @pytest.mark.parametrize(
        ("duration", "expected"),
        [
            (0, None),
            (1_000, MicrostateLabel.BRIEF_ACCESS),
            (2_500, MicrostateLabel.MICROSTATE),
            (3_000, None),
        ],
    )
    def test_microstate_labels(self, duration, expected):
        assert microstate_label(duration, ORDINARY) is expected
