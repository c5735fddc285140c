"""Display-model builder — pure projection of stabilizer state for the UI."""

from __future__ import annotations

from mindstate.affect.models import AffectEstimate
from mindstate.catalog import StateCatalog
from mindstate.config import EngineConfig
from mindstate.models import (
    AmbiguityNotice,
    CurrentStateDisplay,
    DebugTrace,
    DisplayModel,
)
from mindstate.scoring import coherence_aligned, coherence_quality
from mindstate.stabilizer import StabilizerSnapshot
from mindstate.tiers import microstate_label, tier_progress


def format_duration(ms: float) -> str:
    """Format a duration as ``m:ss``; anything non-positive is ``0:00``."""
    if ms <= 0:
        return "0:00"
    total_seconds = int(ms // 1000)
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}:{seconds:02d}"


def build_display_model(
    snapshot: StabilizerSnapshot,
    *,
    affect: AffectEstimate,
    coherence: float,
    catalog: StateCatalog,
    config: EngineConfig,
    ambiguity: AmbiguityNotice | None = None,
) -> DisplayModel:
    """Project a stabilizer snapshot plus per-tick overlays into a :class:`DisplayModel`.

    No state is mutated and no timers are read other than ``snapshot.now_ms``,
    so the same inputs always produce the same model.
    """
    now = snapshot.now_ms
    session = snapshot.current
    assessment = snapshot.assessment
    definition = catalog.get(session.state_id)
    thresholds = config.thresholds_for(session.category)

    duration = session.duration_ms(now)
    next_tier, time_to_next, progress = tier_progress(session.tier, duration, thresholds)
    locked_for = now - session.locked_at_ms if session.locked_at_ms is not None else 0.0

    current = CurrentStateDisplay(
        state_id=session.state_id,
        name=session.name,
        color=session.color,
        category=session.category,
        confidence=round(session.confidence),
        dominant_bands=session.dominant_bands,
        duration_ms=duration,
        duration_formatted=format_duration(duration),
        locked_duration_ms=max(0.0, locked_for),
        tier=assessment.tier,
        session_tier=session.tier,
        tier_label=assessment.tier.label,
        next_tier=next_tier,
        time_to_next_tier_ms=time_to_next,
        progress_to_next_tier=round(progress, 1),
        microstate=microstate_label(duration, thresholds),
        stability=assessment.stability,
        is_stable=assessment.is_stable,
        variance=round(session.variance, 2),
        affect_aligned=affect.dominant_label in definition.expected_affect,
        coherence_aligned=coherence_aligned(definition.pattern.coherence, coherence),
    )

    debug = None
    if config.include_debug:
        challenger = snapshot.challenger
        debug = DebugTrace(
            tick_count=snapshot.tick_count,
            current_state_id=session.state_id,
            challenger_state_id=challenger.state_id if challenger else None,
            current_confidence=round(session.confidence),
            challenger_confidence=round(challenger.confidence) if challenger else None,
            time_in_state_ms=duration,
            time_since_last_switch_ms=snapshot.time_since_last_switch_ms,
            raw_top3=list(snapshot.raw_top3),
            smoothed_top3=list(snapshot.smoothed_top3),
            block_reasons=snapshot.block_reasons,
            emergency_active=snapshot.emergency_active,
            no_op=snapshot.no_op,
        )

    return DisplayModel(
        timestamp_ms=now,
        tick_count=snapshot.tick_count,
        current=current,
        challenger=snapshot.display_challenger,
        status=snapshot.status,
        transition_label=assessment.transition_label,
        ambiguity=ambiguity,
        affect=affect,
        affect_stable=snapshot.affect_stable,
        coherence=round(coherence, 3),
        coherence_quality=coherence_quality(coherence),
        debug=debug,
    )
