"""Shared Pydantic models used across the engine."""

from __future__ import annotations

import math
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from mindstate.affect.models import AffectEstimate

# ── Enums ─────────────────────────────────────────────────────


class Band(str, Enum):
    """Relative EEG power bands carried by every sample."""

    THETA = "theta"
    ALPHA = "alpha"
    BETA_LOW = "beta_low"
    BETA_HIGH = "beta_high"
    GAMMA = "gamma"

    @property
    def label(self) -> str:
        return _BAND_LABELS[self]


_BAND_LABELS = {
    Band.THETA: "Theta",
    Band.ALPHA: "Alpha",
    Band.BETA_LOW: "Beta-L",
    Band.BETA_HIGH: "Beta-H",
    Band.GAMMA: "Gamma",
}


class StateCategory(str, Enum):
    """Category of a state definition; selects its duration-tier ladder."""

    ORDINARY = "ordinary"
    ALPHA_RELAXED = "alpha_relaxed"
    THETA_MEDITATIVE = "theta_meditative"
    LUCID_LIKE = "lucid_like"
    GAMMA_PEAK = "gamma_peak"
    TRANSCENDENT = "transcendent"


class CoherenceLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


class ValidationTier(str, Enum):
    """Duration-and-stability gated assertion strength, weakest first."""

    DETECTED = "detected"
    CANDIDATE = "candidate"
    CONFIRMED = "confirmed"
    LOCKED = "locked"

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)

    @property
    def label(self) -> str:
        return self.value.capitalize()

    def next(self) -> ValidationTier | None:
        i = self.rank + 1
        return _TIER_ORDER[i] if i < len(_TIER_ORDER) else None


_TIER_ORDER = (
    ValidationTier.DETECTED,
    ValidationTier.CANDIDATE,
    ValidationTier.CONFIRMED,
    ValidationTier.LOCKED,
)


class StabilityLabel(str, Enum):
    STABLE = "stable"
    UNSTABLE = "unstable"
    TRANSITIONING = "transitioning"


class TransitionStatus(str, Enum):
    """Derived stabilizer status; never stored separately from the sessions."""

    HOLDING = "holding"
    TRANSITIONING = "transitioning"
    EMERGENCY = "emergency"
    LOCKED = "locked"


class MicrostateLabel(str, Enum):
    BRIEF_ACCESS = "brief_access"
    MICROSTATE = "microstate"


# ── Input ─────────────────────────────────────────────────────


class Sample(BaseModel):
    """One timestamped band-power observation from the external data source.

    Band powers are relative values in [0, 1] and need not sum to 1.
    Metrics (stress, relaxation, engagement, focus) and the motion level
    are optional.  Instances are immutable; use :meth:`sanitised` to get a
    clamped copy before scoring.
    """

    model_config = ConfigDict(frozen=True)

    timestamp_ms: float = 0.0

    theta: float = 0.0
    alpha: float = 0.0
    beta_low: float = 0.0
    beta_high: float = 0.0
    gamma: float = 0.0

    motion: float | None = Field(None, description="Motion-artifact level in [0, 1].")

    stress: float | None = None
    relaxation: float | None = None
    engagement: float | None = None
    focus: float | None = None

    def band(self, band: Band) -> float:
        return getattr(self, band.value)

    def bands(self) -> dict[Band, float]:
        return {b: self.band(b) for b in Band}

    @property
    def has_coherence_metrics(self) -> bool:
        return self.relaxation is not None and self.focus is not None

    def sanitised(self) -> Sample:
        """Return a copy with NaN/inf zeroed and every value clamped to [0, 1]."""
        updates: dict[str, float | None] = {}
        for name in _CLAMPED_FIELDS:
            value = getattr(self, name)
            if value is None:
                continue
            fixed = _clamp_unit(value)
            if fixed != value:
                updates[name] = fixed
        return self.model_copy(update=updates) if updates else self

    def is_sane(self) -> bool:
        return self.sanitised() is self


_CLAMPED_FIELDS = (
    "theta", "alpha", "beta_low", "beta_high", "gamma",
    "motion", "stress", "relaxation", "engagement", "focus",
)


def _clamp_unit(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return max(0.0, min(1.0, value))


# ── Scoring ───────────────────────────────────────────────────


class ScoredCandidate(BaseModel):
    """A state definition paired with its per-tick raw confidence (0..100).

    Ephemeral: recomputed every tick and only summarised into the rolling
    windows of the smoothing layer.
    """

    model_config = ConfigDict(frozen=True)

    state_id: str
    name: str
    color: str
    category: StateCategory
    raw_confidence: float = Field(ge=0.0, le=100.0)
    dominant_bands: tuple[str, ...] = ()
    timestamp_ms: float = 0.0
    variant_of: str | None = Field(
        None,
        description="Base definition id when reported under an awake variant.",
    )

    @property
    def definition_id(self) -> str:
        return self.variant_of or self.state_id

    def discounted(self, factor: float) -> ScoredCandidate:
        return self.model_copy(update={"raw_confidence": self.raw_confidence * factor})


class CandidateSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    state_id: str
    confidence: int


# ── Output ────────────────────────────────────────────────────


class BlockReasons(BaseModel):
    """Which hysteresis gates are currently preventing a switch."""

    model_config = ConfigDict(frozen=True)

    hold_blocked: bool = False
    cooldown_blocked: bool = False
    threshold_blocked: bool = False
    margin_blocked: bool = False
    ambiguous: bool = False
    emergency_active: bool = False
    message: str = ""


class AmbiguityNotice(BaseModel):
    """Explicit ambiguous/transition result for two indistinguishable states."""

    model_config = ConfigDict(frozen=True)

    state_ids: tuple[str, str]
    label: str
    discriminating_band: Band
    band_value: float
    confidence: int
    explanation: str


class CurrentStateDisplay(BaseModel):
    model_config = ConfigDict(frozen=True)

    state_id: str
    name: str
    color: str
    category: StateCategory
    confidence: int
    dominant_bands: tuple[str, ...] = ()
    duration_ms: float = 0.0
    duration_formatted: str = "0:00"
    locked_duration_ms: float = 0.0
    tier: ValidationTier = ValidationTier.DETECTED
    session_tier: ValidationTier = ValidationTier.DETECTED
    tier_label: str = "Detected"
    next_tier: ValidationTier | None = ValidationTier.CANDIDATE
    time_to_next_tier_ms: float = 0.0
    progress_to_next_tier: float = 0.0
    microstate: MicrostateLabel | None = None
    stability: StabilityLabel = StabilityLabel.TRANSITIONING
    is_stable: bool = True
    variance: float = 0.0
    affect_aligned: bool = False
    coherence_aligned: bool = False


class ChallengerDisplay(BaseModel):
    """Runner-up shown next to the current state.  Carries no tier."""

    model_config = ConfigDict(frozen=True)

    state_id: str
    name: str
    color: str
    confidence: int
    dominant_bands: tuple[str, ...] = ()
    lead_duration_ms: float = 0.0
    reason: str = ""


class DebugTrace(BaseModel):
    """Operator/test visibility only; carries no behavioural contract."""

    model_config = ConfigDict(frozen=True)

    tick_count: int = 0
    current_state_id: str = ""
    challenger_state_id: str | None = None
    current_confidence: int = 0
    challenger_confidence: int | None = None
    time_in_state_ms: float = 0.0
    time_since_last_switch_ms: float = 0.0
    raw_top3: list[CandidateSummary] = Field(default_factory=list)
    smoothed_top3: list[CandidateSummary] = Field(default_factory=list)
    block_reasons: BlockReasons | None = None
    emergency_active: bool = False
    motion_rejected: bool = False
    no_op: bool = False


class DisplayModel(BaseModel):
    """Read-only projection emitted to the caller every tick.

    Callers that need history must keep the models they receive; the
    engine never archives previous sessions.
    """

    model_config = ConfigDict(frozen=True)

    timestamp_ms: float = 0.0
    tick_count: int = 0
    current: CurrentStateDisplay
    challenger: ChallengerDisplay | None = None
    status: TransitionStatus = TransitionStatus.HOLDING
    transition_label: str = "Detecting"
    ambiguity: AmbiguityNotice | None = None
    affect: AffectEstimate = Field(default_factory=AffectEstimate)
    affect_stable: bool = True
    coherence: float = 0.0
    coherence_quality: CoherenceLevel = CoherenceLevel.LOW
    debug: DebugTrace | None = None
