"""Pydantic models for the affect estimator.

These models represent:
- Dimensional affect (valence, arousal, control)
- Ranked affect labels with confidence
- The transcendence-instability flag used by the stability gate
- Explainability fields (contributing signals, note)
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# ── Enums ─────────────────────────────────────────────────────


class AffectLabel(str, Enum):
    """Named affect labels produced by the rule-based estimator."""

    # Positive
    JOY = "joy"
    CALM = "calm"
    GRATITUDE = "gratitude"
    LOVE = "love"
    CURIOSITY = "curiosity"
    CONFIDENCE = "confidence"
    AWE = "awe"
    # Negative
    ANXIETY = "anxiety"
    STRESS = "stress"
    FEAR = "fear"
    SADNESS = "sadness"
    ANGER = "anger"
    FRUSTRATION = "frustration"
    SHAME = "shame"
    OVERWHELM = "overwhelm"

    NEUTRAL = "neutral"


# Labels whose combined score drives the transcendence-instability flag.
NEGATIVE_INSTABILITY_LABELS = (
    AffectLabel.ANXIETY,
    AffectLabel.STRESS,
    AffectLabel.FEAR,
    AffectLabel.OVERWHELM,
)


# ── Estimates ─────────────────────────────────────────────────


class AffectAxes(BaseModel):
    """Valence / arousal / control coordinates, clamped after all rules."""

    model_config = ConfigDict(frozen=True)

    valence: float = Field(0.0, ge=-1.0, le=1.0, description="-1 negative … +1 positive.")
    arousal: float = Field(0.5, ge=0.0, le=1.0, description="0 low … 1 high activation.")
    control: float = Field(0.5, ge=0.0, le=1.0, description="0 overwhelmed … 1 composed.")


class AffectLabelScore(BaseModel):
    """A single ranked affect label."""

    model_config = ConfigDict(frozen=True)

    label: AffectLabel
    confidence: float = Field(ge=0.0, le=100.0)


class AffectEstimate(BaseModel):
    """Output of :func:`mindstate.affect.inference.estimate_affect`.

    Read-only overlay: it never selects a mental state, it only feeds the
    stability gate and the affect-conflict discount.
    """

    model_config = ConfigDict(frozen=True)

    axes: AffectAxes = Field(default_factory=AffectAxes)
    top_labels: list[AffectLabelScore] = Field(
        default_factory=lambda: [AffectLabelScore(label=AffectLabel.NEUTRAL, confidence=50.0)],
        description="Up to three labels, highest score first (never empty).",
    )
    unstable: bool = Field(
        False,
        description="Transcendence-like band pattern coinciding with strong negative affect.",
    )
    contributing_signals: list[str] = Field(default_factory=list)
    note: str = "Awaiting data"
    timestamp_ms: float = 0.0

    @property
    def dominant_label(self) -> AffectLabel:
        return self.top_labels[0].label if self.top_labels else AffectLabel.NEUTRAL
