"""Tier / stability classifier.

Maps time in state, confidence variance and the affect gate to a
validation tier and a stability label.

Two distinct notions of tier exist:

- the **session tier**, owned by the stabilizer, advances monotonically
  with time in state (one step per tick at most) and is never lowered;
- the **display tier**, computed here, equals the session tier except that
  a locked session is shown as confirmed while the variance or affect gate
  fails.  The downgrade is display-only, so a brief wobble never resets
  the duration clock.
"""

from __future__ import annotations

from dataclasses import dataclass

from mindstate.affect.models import AffectEstimate
from mindstate.config import EngineConfig, TierThresholds
from mindstate.models import MicrostateLabel, StabilityLabel, ValidationTier

_BRIEF_ACCESS_MS = 2_000

_TRANSITION_LABELS = {
    ValidationTier.LOCKED: "Locked",
    ValidationTier.CONFIRMED: "Confirmed",
    ValidationTier.CANDIDATE: "Entering",
    ValidationTier.DETECTED: "Detecting",
}


@dataclass(frozen=True, slots=True)
class StabilityAssessment:
    """Display-time tier and stability for the current session."""

    tier: ValidationTier
    stability: StabilityLabel
    variance_ok: bool
    affect_ok: bool

    @property
    def is_stable(self) -> bool:
        return self.variance_ok and self.affect_ok

    @property
    def transition_label(self) -> str:
        if self.stability is StabilityLabel.UNSTABLE:
            return "Unstable"
        return _TRANSITION_LABELS[self.tier]


def affect_gate_passes(affect: AffectEstimate, config: EngineConfig) -> bool:
    """Affect gate: no transcendence instability, valence and control above their floors."""
    return (
        not affect.unstable
        and affect.axes.valence > config.affect_valence_floor
        and affect.axes.control > config.affect_control_floor
    )


def variance_ok(variance: float, config: EngineConfig) -> bool:
    return variance <= config.variance_ceiling


def advance_session_tier(
    current: ValidationTier,
    duration_ms: float,
    thresholds: TierThresholds,
    *,
    stable: bool,
) -> ValidationTier:
    """Return the session tier after one tick.

    Never lowers the tier and never skips a step.  Entering ``locked``
    additionally requires the tick to be stable; otherwise the session
    waits at confirmed and retries on the next tick.
    """
    earned = thresholds.tier_for(duration_ms)
    if earned.rank <= current.rank:
        return current
    step = current.next()
    if step is ValidationTier.LOCKED and not stable:
        return current
    return step if step is not None else current


def classify(
    session_tier: ValidationTier,
    variance: float,
    affect_stable: bool,
    config: EngineConfig,
) -> StabilityAssessment:
    v_ok = variance_ok(variance, config)
    stable = v_ok and affect_stable

    tier = session_tier
    if tier is ValidationTier.LOCKED and not stable:
        tier = ValidationTier.CONFIRMED

    if not stable:
        stability = StabilityLabel.UNSTABLE
    elif tier in (ValidationTier.DETECTED, ValidationTier.CANDIDATE):
        stability = StabilityLabel.TRANSITIONING
    else:
        stability = StabilityLabel.STABLE

    return StabilityAssessment(tier=tier, stability=stability, variance_ok=v_ok, affect_ok=affect_stable)


def tier_progress(
    tier: ValidationTier,
    duration_ms: float,
    thresholds: TierThresholds,
) -> tuple[ValidationTier | None, float, float]:
    """Return ``(next_tier, time_to_next_ms, progress_percent)``."""
    nxt = tier.next()
    if nxt is None:
        return None, 0.0, 100.0
    target = thresholds.threshold_for(nxt)
    progress = min(100.0, duration_ms / target * 100.0)
    return nxt, max(0.0, target - duration_ms), progress


def microstate_label(duration_ms: float, thresholds: TierThresholds) -> MicrostateLabel | None:
    if duration_ms <= 0 or duration_ms >= thresholds.detected:
        return None
    if duration_ms < _BRIEF_ACCESS_MS:
        return MicrostateLabel.BRIEF_ACCESS
    return MicrostateLabel.MICROSTATE
