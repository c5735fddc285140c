"""Engine configuration record and environment-backed application settings."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mindstate.models import StateCategory, ValidationTier

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


# ── Duration tiers ────────────────────────────────────────────


class TierThresholds(BaseModel):
    """Duration breakpoints (ms) of one state category.

    ``detected`` only marks the end of the microstate window; the session
    tier ladder starts at detected and advances at ``candidate``,
    ``confirmed`` and ``locked``.
    """

    model_config = ConfigDict(frozen=True)

    detected: float = Field(ge=0)
    candidate: float = Field(gt=0)
    confirmed: float = Field(gt=0)
    locked: float = Field(gt=0)

    @model_validator(mode="after")
    def _check_ladder(self) -> TierThresholds:
        if not self.detected < self.candidate < self.confirmed < self.locked:
            raise ValueError(
                "tier thresholds must increase strictly: "
                f"detected={self.detected} candidate={self.candidate} "
                f"confirmed={self.confirmed} locked={self.locked}"
            )
        return self

    def threshold_for(self, tier: ValidationTier) -> float:
        """Time in state at which ``tier`` is reached (0 for detected)."""
        if tier is ValidationTier.DETECTED:
            return 0.0
        return getattr(self, tier.value)

    def tier_for(self, duration_ms: float) -> ValidationTier:
        if duration_ms >= self.locked:
            return ValidationTier.LOCKED
        if duration_ms >= self.confirmed:
            return ValidationTier.CONFIRMED
        if duration_ms >= self.candidate:
            return ValidationTier.CANDIDATE
        return ValidationTier.DETECTED


DEFAULT_TIER_THRESHOLDS: dict[StateCategory, TierThresholds] = {
    StateCategory.ORDINARY: TierThresholds(detected=3_000, candidate=8_000, confirmed=15_000, locked=30_000),
    StateCategory.ALPHA_RELAXED: TierThresholds(detected=5_000, candidate=15_000, confirmed=30_000, locked=120_000),
    StateCategory.THETA_MEDITATIVE: TierThresholds(detected=5_000, candidate=20_000, confirmed=60_000, locked=150_000),
    StateCategory.LUCID_LIKE: TierThresholds(detected=10_000, candidate=30_000, confirmed=60_000, locked=180_000),
    StateCategory.GAMMA_PEAK: TierThresholds(detected=3_000, candidate=15_000, confirmed=45_000, locked=120_000),
    StateCategory.TRANSCENDENT: TierThresholds(detected=10_000, candidate=30_000, confirmed=120_000, locked=300_000),
}


# ── Engine configuration ──────────────────────────────────────


class EngineConfig(BaseModel):
    """Single configuration record for :class:`mindstate.engine.MindStateEngine`.

    Defaults reproduce the reference behaviour; any subset may be
    overridden at construction.  Invalid combinations fail here, never at
    tick time.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    # ── Cadence & smoothing ───────────────────────────────────
    tick_interval_ms: float = Field(250, gt=0)
    smoothing_window_size: int = Field(8, ge=1)  # ~2 s at 250 ms ticks

    # ── Hysteresis: time ──────────────────────────────────────
    # Cooldown starts once the minimum hold has elapsed.
    min_hold_ms: float = Field(6_000, ge=0)
    cooldown_ms: float = Field(8_000, ge=0)

    # ── Hysteresis: confidence (0-100 points) ─────────────────
    promotion_threshold: float = Field(62, ge=0, le=100)
    takeover_margin: float = Field(12, ge=0, le=100)

    # ── Emergency override ────────────────────────────────────
    emergency_drop_threshold: float = Field(25, ge=0, le=100)
    emergency_drop_duration_ms: float = Field(1_500, ge=0)

    # ── Tiers & stability ─────────────────────────────────────
    tier_thresholds: dict[StateCategory, TierThresholds] = Field(
        default_factory=lambda: dict(DEFAULT_TIER_THRESHOLDS)
    )
    variance_ceiling: float = Field(15, ge=0)
    affect_valence_floor: float = Field(-0.3, ge=-1, le=1)
    affect_control_floor: float = Field(0.3, ge=0, le=1)

    # ── Challenger display ────────────────────────────────────
    challenger_close_race_confidence: float = Field(35, ge=0, le=100)
    challenger_close_race_gap: float = Field(12, ge=0, le=100)
    challenger_close_race_persist_ms: float = Field(600, ge=0)
    challenger_strong_confidence: float = Field(50, ge=0, le=100)
    challenger_strong_persist_ms: float = Field(400, ge=0)
    challenger_min_hold_ms: float = Field(800, ge=0)

    # ── Input anomalies ───────────────────────────────────────
    motion_artifact_threshold: float = Field(0.6, gt=0, le=1)
    ambiguity_margin: float = Field(5.0, ge=0, le=100)
    ambiguity_discount: float = Field(0.7, gt=0, le=1)
    affect_conflict_discount: float = Field(0.7, gt=0, le=1)

    # ── Sleep context ─────────────────────────────────────────
    sleep_mode: bool = False
    awake_relabel_threshold: float = Field(40, ge=0, le=100)

    include_debug: bool = True

    @field_validator("tier_thresholds", mode="before")
    @classmethod
    def _merge_tier_defaults(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        merged: dict[Any, Any] = {k.value: v for k, v in DEFAULT_TIER_THRESHOLDS.items()}
        for key, thresholds in value.items():
            merged[key.value if isinstance(key, StateCategory) else key] = thresholds
        return merged

    @model_validator(mode="after")
    def _check_consistency(self) -> EngineConfig:
        missing = set(StateCategory) - set(self.tier_thresholds)
        if missing:
            names = ", ".join(sorted(c.value for c in missing))
            raise ValueError(f"tier_thresholds missing categories: {names}")
        if self.emergency_drop_threshold >= self.promotion_threshold:
            raise ValueError(
                "emergency_drop_threshold must be below promotion_threshold "
                f"({self.emergency_drop_threshold} >= {self.promotion_threshold})"
            )
        return self

    def thresholds_for(self, category: StateCategory) -> TierThresholds:
        return self.tier_thresholds[category]


# ── Application settings ──────────────────────────────────────


class Settings(BaseSettings):
    """Process-level settings loaded from the environment / *.env* file.

    Every variable lives in the ``MINDSTATE_`` namespace.  Engine fields are
    nested under ``engine``, e.g. ``MINDSTATE_ENGINE__MIN_HOLD_MS=4000``.
    """

    model_config = SettingsConfigDict(
        env_prefix="MINDSTATE_",
        env_nested_delimiter="__",
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    engine: EngineConfig = Field(default_factory=EngineConfig)

    def engine_config(self, **overrides: Any) -> EngineConfig:
        """Return the engine config with per-call overrides applied and re-validated."""
        if not overrides:
            return self.engine
        return EngineConfig.model_validate({**self.engine.model_dump(), **overrides})


@lru_cache
def get_settings() -> Settings:
    """Return a cached :class:`Settings` singleton."""
    return Settings()
