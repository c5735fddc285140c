"""Affect estimator — rule-based valence / arousal / control scoring.

This module maps a single band-power :class:`~mindstate.models.Sample`
(plus optional performance metrics) to an :class:`AffectEstimate`.

Design principles
-----------------
- **Read-only overlay**: the estimate never chooses a mental state.  It
  feeds the stability gate (tier display downgrade) and the
  affect-conflict confidence discount only.
- **Rule accumulation**: each band or metric condition adds fixed deltas
  to the three axes and to named label scores.  Axes are clamped once,
  after every rule has fired.
- **Explainable**: every estimate lists the rules that fired and carries a
  short human-readable note.

Rule table
----------
=========================================  =========================  =================
Condition                                  Labels                     Axes
=========================================  =========================  =================
betaHigh > 0.5 and alpha < 0.3             anxiety, stress            v−, a+, c−
alpha > 0.5 and betaHigh < 0.3             calm, confidence           v+, c+
theta > 0.5 and betaHigh < 0.25            calm, awe                  v+, a−
gamma > 0.4                                curiosity, awe             a+
betaLow > 0.5 and betaHigh > 0.5           stress, overwhelm          v−, a+, c−
stress metric > 0.6                        stress, anxiety, overwhelm v−, a+, c−
relaxation metric > 0.6                    calm, gratitude            v+, c+
engagement & focus > 0.6, stress < 0.4     curiosity, confidence      v+, c+
engagement & focus > 0.6, stress ≥ 0.4     stress, overwhelm          v−
=========================================  =========================  =================
"""

from __future__ import annotations

import structlog

from mindstate.affect.models import (
    NEGATIVE_INSTABILITY_LABELS,
    AffectAxes,
    AffectEstimate,
    AffectLabel,
    AffectLabelScore,
)
from mindstate.models import Sample

logger = structlog.get_logger(__name__)

# ── Constants ─────────────────────────────────────────────────

_NEUTRAL_FLOOR_SCORE = 20.0
_LABEL_MIN_SCORE = 10.0
_TOP_LABEL_COUNT = 3
_FALLBACK_CONFIDENCE = 50.0

_METRIC_HIGH = 0.6
_METRIC_LOW_STRESS = 0.4
_NEUTRAL_STRESS = 0.5

_INSTABILITY_NEGATIVE_TOTAL = 60.0


class _Accumulator:
    """Mutable scratchpad for one estimate; never escapes this module."""

    def __init__(self) -> None:
        self.valence = 0.0
        self.arousal = 0.5
        self.control = 0.5
        self.scores: dict[AffectLabel, float] = {label: 0.0 for label in AffectLabel}
        self.scores[AffectLabel.NEUTRAL] = _NEUTRAL_FLOOR_SCORE
        self.signals: list[str] = []
        self.notes: list[str] = []

    def add(self, **labels: float) -> None:
        for name, points in labels.items():
            self.scores[AffectLabel(name)] += points

    def shift(self, valence: float = 0.0, arousal: float = 0.0, control: float = 0.0) -> None:
        self.valence += valence
        self.arousal += arousal
        self.control += control


# ── Band-pattern rules ───────────────────────────────────────


def _apply_band_rules(s: Sample, acc: _Accumulator) -> None:
    # 1. High betaHigh + suppressed alpha → tension
    if s.beta_high > 0.5 and s.alpha < 0.3:
        acc.add(anxiety=35, stress=25)
        acc.shift(valence=-0.3, arousal=0.2, control=-0.2)
        acc.signals.append("beta_high_with_low_alpha")
        acc.notes.append("High Beta-H with suppressed Alpha suggests heightened tension")

    # 2. Strong alpha + low betaHigh → calm
    if s.alpha > 0.5 and s.beta_high < 0.3:
        acc.add(calm=40, confidence=20)
        acc.shift(valence=0.35, control=0.25)
        acc.signals.append("alpha_with_low_beta_high")
        acc.notes.append("Strong Alpha with low Beta-H indicates relaxed awareness")

    # 3. Rising theta at low arousal → meditative / dreamlike
    if s.theta > 0.5 and s.beta_high < 0.25:
        acc.add(calm=25, awe=15)
        acc.shift(valence=0.2, arousal=-0.15)
        acc.signals.append("theta_rising")
        acc.notes.append("Rising Theta suggests meditative or dreamlike state")

    # 4. Gamma activity → curiosity
    if s.gamma > 0.4:
        acc.add(curiosity=30, awe=20)
        acc.shift(arousal=0.2)
        acc.signals.append("gamma_activity")
        acc.notes.append("Gamma activity indicates heightened cognitive engagement")

    # 5. Broad beta → pressure
    if s.beta_low > 0.5 and s.beta_high > 0.5:
        acc.add(stress=30, overwhelm=20)
        acc.shift(valence=-0.2, arousal=0.25, control=-0.15)
        acc.signals.append("broad_beta")


# ── Metric rules ──────────────────────────────────────────────


def _apply_metric_rules(s: Sample, acc: _Accumulator) -> None:
    if s.stress is not None and s.stress > _METRIC_HIGH:
        acc.add(stress=35, anxiety=25, overwhelm=20)
        acc.shift(valence=-0.3, arousal=0.2, control=-0.25)
        acc.signals.append("stress_metric_elevated")
        acc.notes.append("Elevated stress detected")

    if s.relaxation is not None and s.relaxation > _METRIC_HIGH:
        acc.add(calm=40, gratitude=15)
        acc.shift(valence=0.35, control=0.3)
        acc.signals.append("relaxation_metric_high")
        acc.notes.append("High relaxation levels")

    if s.engagement is None or s.focus is None:
        return

    high_engagement = s.engagement > _METRIC_HIGH
    high_focus = s.focus > _METRIC_HIGH
    low_stress = (s.stress if s.stress is not None else _NEUTRAL_STRESS) < _METRIC_LOW_STRESS

    if high_engagement and high_focus and low_stress:
        acc.add(curiosity=35, confidence=30)
        acc.shift(valence=0.25, control=0.2)
        acc.signals.append("flow_like")
        acc.notes.append("Engaged and focused without stress, flow-like state")
    elif high_engagement and high_focus:
        acc.add(stress=25, overwhelm=20)
        acc.shift(valence=-0.15)
        acc.signals.append("pressured_engagement")
        acc.notes.append("High engagement with elevated stress, pressured state")

    if high_focus and low_stress:
        acc.add(confidence=25)


def _apply_quadrant_rules(axes: AffectAxes, acc: _Accumulator) -> None:
    v, a = axes.valence, axes.arousal
    if v < -0.3 and a > 0.6:
        acc.add(anxiety=20, fear=15, anger=10)
    if v < -0.3 and a < 0.4:
        acc.add(sadness=30, frustration=15)
    if v > 0.3 and a > 0.6:
        acc.add(joy=25, curiosity=20)
    if v > 0.3 and a < 0.4:
        acc.add(calm=25, gratitude=15)


# ── Public API ────────────────────────────────────────────────


def estimate_affect(sample: Sample) -> AffectEstimate:
    """Estimate valence / arousal / control and the top affect labels.

    Parameters
    ----------
    sample : Sample
        Latest band-power observation.  Out-of-range values are clamped
        before any rule is evaluated.

    Returns
    -------
    AffectEstimate
        Clamped axes, up to three labels (never empty) and the
        transcendence-instability flag.
    """
    s = sample.sanitised()
    acc = _Accumulator()

    _apply_band_rules(s, acc)
    _apply_metric_rules(s, acc)

    axes = AffectAxes(
        valence=max(-1.0, min(1.0, acc.valence)),
        arousal=max(0.0, min(1.0, acc.arousal)),
        control=max(0.0, min(1.0, acc.control)),
    )
    _apply_quadrant_rules(axes, acc)

    ranked = sorted(
        (
            AffectLabelScore(label=label, confidence=min(100.0, score))
            for label, score in acc.scores.items()
            if score > _LABEL_MIN_SCORE
        ),
        key=lambda item: item.confidence,
        reverse=True,
    )[:_TOP_LABEL_COUNT]
    if not ranked:
        ranked = [AffectLabelScore(label=AffectLabel.NEUTRAL, confidence=_FALLBACK_CONFIDENCE)]

    transcendence_pattern = s.gamma > 0.5 or (s.theta > 0.5 and s.gamma > 0.3)
    negative_total = sum(acc.scores[label] for label in NEGATIVE_INSTABILITY_LABELS)
    unstable = transcendence_pattern and negative_total > _INSTABILITY_NEGATIVE_TOTAL

    note = acc.notes[0] if acc.notes else _describe_axes(axes)
    if unstable:
        note += "; transcendence pattern with emotional instability"
        acc.signals.append("transcendence_unstable")

    estimate = AffectEstimate(
        axes=axes,
        top_labels=ranked,
        unstable=unstable,
        contributing_signals=list(dict.fromkeys(acc.signals)),
        note=note,
        timestamp_ms=s.timestamp_ms,
    )

    logger.debug(
        "affect.estimate",
        valence=round(axes.valence, 2),
        arousal=round(axes.arousal, 2),
        control=round(axes.control, 2),
        dominant=estimate.dominant_label.value,
        unstable=unstable,
    )
    return estimate


# ── Helpers ───────────────────────────────────────────────────


def _describe_axes(axes: AffectAxes) -> str:
    if axes.valence > 0:
        tone = "positive"
    elif axes.valence < 0:
        tone = "negative"
    else:
        tone = "neutral"

    if axes.arousal > 0.6:
        level = "high"
    elif axes.arousal < 0.4:
        level = "low"
    else:
        level = "moderate"
    return f"Valence {tone} with {level} arousal"
