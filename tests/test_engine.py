"""Tests for the engine facade and the display-model builder."""

from __future__ import annotations

import random

import pytest
from structlog.testing import capture_logs

from mindstate.config import EngineConfig
from mindstate.display import format_duration
from mindstate.engine import MindStateEngine
from mindstate.models import Sample, TransitionStatus, ValidationTier


def _at(sample: Sample, t: float, **updates) -> Sample:
    return sample.model_copy(update={"timestamp_ms": t, **updates})


def _feed(engine, sample, start, stop, step=250):
    models = {}
    for t in range(start, stop + 1, step):
        models[t] = engine.tick(_at(sample, float(t)))
    return models


@pytest.fixture
def engine() -> MindStateEngine:
    return MindStateEngine()


# ── Lifecycle ─────────────────────────────────────────────────


class TestLifecycle:
    def test_initial_display_model(self, engine):
        model = engine.display_model
        assert model.tick_count == 0
        assert model.current.state_id == "ordinary_waking"
        assert model.current.duration_ms == 0.0
        assert model.status is TransitionStatus.HOLDING
        assert model.challenger is None

    def test_tick_before_any_sample_is_a_no_op(self, engine):
        initial = engine.display_model
        model = engine.tick()
        assert model.tick_count == 1
        assert model.debug.no_op
        assert model.current == initial.current

    def test_ingest_then_tick(self, engine, alpha_theta_sample):
        engine.ingest(alpha_theta_sample)
        model = engine.tick(now_ms=250.0)
        assert model.timestamp_ms == 250.0
        assert not model.debug.no_op
        assert model.debug.raw_top3[0].state_id == "deep_relaxation"
        assert model.debug.raw_top3[0].confidence == 66

    def test_latest_sample_is_reused(self, engine, alpha_theta_sample):
        engine.tick(alpha_theta_sample, now_ms=0.0)
        model = engine.tick(now_ms=250.0)
        assert model.tick_count == 2
        assert model.debug.raw_top3[0].state_id == "deep_relaxation"

    def test_clock_never_runs_backwards(self, engine, alpha_theta_sample):
        engine.tick(alpha_theta_sample, now_ms=1_000.0)
        assert engine.tick(now_ms=500.0).timestamp_ms == 1_000.0

    def test_reset(self, engine, alpha_theta_sample):
        _feed(engine, alpha_theta_sample, 0, 2_000)
        model = engine.reset(now_ms=5_000.0)
        assert model.current.state_id == "ordinary_waking"
        assert model.tick_count == 0
        assert engine.latest_sample is None
        assert engine.stabilizer.current.entered_at_ms == 5_000.0

    def test_debug_can_be_disabled(self, alpha_theta_sample):
        engine = MindStateEngine(EngineConfig(include_debug=False))
        assert engine.tick(alpha_theta_sample).debug is None


# ── End to end ────────────────────────────────────────────────


class TestEndToEnd:
    def test_relaxation_takes_over_after_emergency(self, engine, alpha_theta_sample):
        models = _feed(engine, alpha_theta_sample, 0, 1_500)
        assert models[1_250].current.state_id == "ordinary_waking"
        switched = models[1_500]
        assert switched.current.state_id == "deep_relaxation"
        assert switched.current.duration_ms == 0.0
        assert switched.current.duration_formatted == "0:00"
        assert switched.current.tier is ValidationTier.DETECTED
        assert switched.debug.emergency_active

    def test_state_holds_and_promotes(self, engine, alpha_theta_sample):
        models = _feed(engine, alpha_theta_sample, 0, 17_000)
        last = models[17_000]
        assert all(m.current.state_id == "deep_relaxation" for t, m in models.items() if t >= 1_500)
        assert last.current.duration_ms == 15_500.0
        assert last.current.duration_formatted == "0:15"
        assert last.current.tier is ValidationTier.CANDIDATE
        assert last.current.next_tier is ValidationTier.CONFIRMED
        assert last.current.affect_aligned
        assert last.current.is_stable
        assert last.transition_label == "Entering"
        assert last.affect.dominant_label.value == "calm"

    def test_nan_sample_does_not_poison_state(self, engine):
        bad = Sample(theta=float("nan"), alpha=float("inf"), beta_low=2.0, beta_high=-1.0, gamma=0.2)
        model = engine.tick(bad, now_ms=0.0)
        assert isinstance(model.current.confidence, int)
        for summary in model.debug.raw_top3:
            assert 0 <= summary.confidence <= 100


# ── Input anomalies ───────────────────────────────────────────


class TestMotionArtifact:
    def test_artifact_holds_previous_model(self, engine, alpha_theta_sample):
        _feed(engine, alpha_theta_sample, 0, 500)
        previous = engine.display_model
        entered = engine.stabilizer.current.entered_at_ms

        model = engine.tick(_at(alpha_theta_sample, 750.0, motion=0.9))
        assert model.current == previous.current
        assert model.timestamp_ms == previous.timestamp_ms
        assert model.tick_count == previous.tick_count + 1
        assert model.debug.motion_rejected
        assert engine.stabilizer.current.entered_at_ms == entered

    def test_rejected_stretch_does_not_age_the_session(self, engine, beta_sample):
        engine.tick(_at(beta_sample, 0.0))
        for t in range(250, 20_001, 250):
            assert engine.tick(_at(beta_sample, float(t), motion=0.9)).debug.motion_rejected
        model = engine.tick(_at(beta_sample, 20_250.0))

        assert model.current.state_id == "ordinary_waking"
        assert model.current.duration_ms == 250.0
        assert model.current.tier is ValidationTier.DETECTED
        assert not model.debug.motion_rejected

    def test_motion_at_threshold_is_accepted(self, engine, alpha_theta_sample):
        model = engine.tick(_at(alpha_theta_sample, 0.0, motion=0.6))
        assert not model.debug.motion_rejected
        assert not model.debug.no_op


class TestAmbiguity:
    def test_ambiguous_pair_is_reported_not_picked(self, engine, ambiguous_sample):
        with capture_logs() as logs:
            models = _feed(engine, ambiguous_sample, 0, 10_000)
        for model in models.values():
            assert model.ambiguity is not None
            assert model.ambiguity.state_ids == ("lucid_like_awake", "transcendent_meta")
            assert model.current.state_id not in model.ambiguity.state_ids
        assert models[1_250].current.state_id == "ordinary_waking"
        assert models[1_250].debug.challenger_state_id == "hypnagogic"
        # The collapsed default state gives way to the strongest unambiguous candidate
        assert models[1_500].current.state_id == "hypnagogic"
        assert models[1_500].debug.emergency_active
        last = models[10_000]
        assert last.current.state_id == "hypnagogic"
        assert last.status is TransitionStatus.HOLDING
        assert any(entry["event"] == "engine.ambiguous_pattern" for entry in logs)

    def test_sleep_mode_reports_sleep_state(self, ambiguous_sample):
        engine = MindStateEngine(EngineConfig(sleep_mode=True))
        model = engine.tick(ambiguous_sample)
        assert model.ambiguity.state_ids == ("lucid_dreaming", "transcendent_meta")


# ── Determinism ───────────────────────────────────────────────


def test_identical_inputs_give_identical_output():
    rng = random.Random(11)
    samples = [
        Sample(
            timestamp_ms=float(i * 250),
            theta=rng.random(),
            alpha=rng.random(),
            beta_low=rng.random(),
            beta_high=rng.random(),
            gamma=rng.random(),
            motion=rng.random() * 0.7,
        )
        for i in range(200)
    ]
    first, second = MindStateEngine(), MindStateEngine()
    out_a = [first.tick(s).model_dump_json() for s in samples]
    out_b = [second.tick(s).model_dump_json() for s in samples]
    assert out_a == out_b


def test_switch_is_logged(engine, alpha_theta_sample):
    with capture_logs() as logs:
        _feed(engine, alpha_theta_sample, 0, 1_500)
    switches = [e for e in logs if e["event"] == "stabilizer.switch_approved"]
    assert len(switches) == 1
    assert switches[0]["to_state"] == "deep_relaxation"
    assert switches[0]["emergency"] is True


# ── Formatting ────────────────────────────────────────────────


@pytest.mark.parametrize(
    ("ms", "expected"),
    [(0, "0:00"), (-5, "0:00"), (999, "0:00"), (59_999, "0:59"), (61_000, "1:01"), (600_000, "10:00")],
)
def test_format_duration(ms, expected):
    assert format_duration(ms) == expected
