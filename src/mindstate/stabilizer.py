"""Temporal stabilizer — the hysteresis state machine behind the displayed state.

The stabilizer is the only component with cross-tick memory.  It owns:

- the **current** :class:`StateSession` (replaced wholesale on every
  approved switch, refreshed as a new object with the same identity
  otherwise, so ``entered_at_ms`` never changes while the state id holds);
- the optional **challenger** :class:`ChallengerSession` (exists only while
  a non-current state leads the smoothed ranking);
- the smoothing windows and the timing counters (last switch, emergency
  streak, tick count);
- the :class:`ChallengerTracker` that decides which runner-up is shown.

Per tick
--------
1. Push every raw confidence into the smoothing layer; rank by median.
2. Track the emergency streak (current below the drop threshold).
3. Refresh the current session and advance its tier (monotonic, one step
   per tick, ``locked_at_ms`` stamped once).
4. If another state leads, track it as challenger and approve a switch
   only when hold, cooldown, promotion threshold and takeover margin all
   pass.  A sustained emergency waives all four gates.  The cooldown
   starts once the minimum hold has elapsed, so two ordinary switches are
   always at least ``min_hold_ms + cooldown_ms`` apart.
5. Derive status, stability assessment and the display challenger.

Ticks whose sample was rejected (see :meth:`TemporalStabilizer.reject`)
do not count toward any timer.

Instances are not thread-safe: ticks must be serialised by the caller
(:class:`mindstate.engine.MindStateEngine` holds a lock for this).
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace

import structlog

from mindstate.affect.models import AffectEstimate
from mindstate.catalog import StateCatalog
from mindstate.config import EngineConfig
from mindstate.models import (
    AmbiguityNotice,
    BlockReasons,
    CandidateSummary,
    ChallengerDisplay,
    ScoredCandidate,
    StateCategory,
    TransitionStatus,
    ValidationTier,
)
from mindstate.smoothing import SmoothingLayer, median, spread
from mindstate.tiers import (
    StabilityAssessment,
    advance_session_tier,
    affect_gate_passes,
    classify,
    variance_ok,
)

logger = structlog.get_logger(__name__)


# ── Sessions ──────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class StateSession:
    """The current state and its timing; identity is ``(state_id, entered_at_ms)``."""

    state_id: str
    name: str
    color: str
    category: StateCategory
    entered_at_ms: float
    locked_at_ms: float | None = None
    tier: ValidationTier = ValidationTier.DETECTED
    confidence_history: tuple[float, ...] = ()
    dominant_bands: tuple[str, ...] = ()
    last_seen_at_ms: float | None = None
    # Time excluded from the session after rejected input
    paused_ms: float = 0.0

    @classmethod
    def start(cls, candidate: ScoredCandidate, now_ms: float) -> StateSession:
        return cls(
            state_id=candidate.state_id,
            name=candidate.name,
            color=candidate.color,
            category=candidate.category,
            entered_at_ms=now_ms,
            confidence_history=(candidate.raw_confidence,),
            dominant_bands=candidate.dominant_bands,
            last_seen_at_ms=now_ms,
        )

    def duration_ms(self, now_ms: float) -> float:
        return max(0.0, now_ms - self.entered_at_ms - self.paused_ms)

    @property
    def confidence(self) -> float:
        return median(self.confidence_history)

    @property
    def variance(self) -> float:
        return spread(self.confidence_history)


@dataclass(frozen=True, slots=True)
class ChallengerSession:
    """Highest-ranked non-current state while it holds the lead."""

    state_id: str
    name: str
    color: str
    first_seen_as_leader_at_ms: float
    confidence_history: tuple[float, ...] = ()
    dominant_bands: tuple[str, ...] = ()

    @property
    def confidence(self) -> float:
        return median(self.confidence_history)

    def lead_duration_ms(self, now_ms: float) -> float:
        return max(0.0, now_ms - self.first_seen_as_leader_at_ms)


@dataclass(frozen=True, slots=True)
class StabilizerSnapshot:
    """Everything the display builder needs from one tick."""

    now_ms: float
    tick_count: int
    current: StateSession
    challenger: ChallengerSession | None
    display_challenger: ChallengerDisplay | None
    status: TransitionStatus
    assessment: StabilityAssessment
    affect_stable: bool
    emergency_active: bool
    switched: bool
    block_reasons: BlockReasons | None
    time_since_last_switch_ms: float
    raw_top3: tuple[CandidateSummary, ...] = ()
    smoothed_top3: tuple[CandidateSummary, ...] = ()
    no_op: bool = False


# ── Challenger display tracker ────────────────────────────────


class ChallengerTracker:
    """Decides which runner-up is shown beside the current state.

    Read-only observation: it never influences promotion.  A runner-up is
    shown when it is a *close race* (confidence ≥ floor, gap to current ≤
    margin, sustained) or a *strong contender* (higher floor, shorter
    persistence).  Once shown it stays visible for a minimum hold even if
    it briefly falls below the bar.
    """

    def __init__(self, config: EngineConfig) -> None:
        self._config = config
        self.reset()

    def reset(self) -> None:
        self._runner_id: str | None = None
        self._runner_since_ms = 0.0
        self._visible: ChallengerDisplay | None = None
        self._visible_since_ms: float | None = None

    def shift(self, span_ms: float) -> None:
        """Move the persistence clocks forward so ``span_ms`` is not counted."""
        self._runner_since_ms += span_ms
        if self._visible_since_ms is not None:
            self._visible_since_ms += span_ms

    def observe(
        self,
        runner: ScoredCandidate | None,
        runner_confidence: float,
        current_id: str,
        current_confidence: float,
        now_ms: float,
    ) -> ChallengerDisplay | None:
        cfg = self._config
        shown: ChallengerDisplay | None = None

        if runner is not None and runner.state_id != current_id:
            if runner.state_id != self._runner_id:
                self._runner_id = runner.state_id
                self._runner_since_ms = now_ms
            persist = now_ms - self._runner_since_ms
            gap = abs(current_confidence - runner_confidence)

            close_race = (
                runner_confidence >= cfg.challenger_close_race_confidence
                and gap <= cfg.challenger_close_race_gap
                and persist >= cfg.challenger_close_race_persist_ms
            )
            strong = (
                runner_confidence >= cfg.challenger_strong_confidence
                and persist >= cfg.challenger_strong_persist_ms
            )
            if close_race or strong:
                shown = ChallengerDisplay(
                    state_id=runner.state_id,
                    name=runner.name,
                    color=runner.color,
                    confidence=round(runner_confidence),
                    dominant_bands=runner.dominant_bands,
                    lead_duration_ms=persist,
                    reason="close_race" if close_race else "strong_contender",
                )
        else:
            self._runner_id = None

        if shown is not None:
            if self._visible is None or self._visible.state_id != shown.state_id:
                self._visible_since_ms = now_ms
            self._visible = shown
            return shown

        # Minimum visible hold for the last shown runner-up
        if self._visible is not None and self._visible_since_ms is not None:
            held_for = now_ms - self._visible_since_ms
            if held_for < cfg.challenger_min_hold_ms and self._visible.state_id != current_id:
                return self._visible.model_copy(update={"reason": "held"})
        self._visible = None
        self._visible_since_ms = None
        return None


# ── Stabilizer ────────────────────────────────────────────────


class TemporalStabilizer:
    """Hysteresis-governed owner of the current / challenger sessions.

    Parameters
    ----------
    config : EngineConfig
        Validated configuration record.
    catalog : StateCatalog
        Supplies the default state the engine starts in.
    start_ms : float
        Clock value at construction; the default session enters here.
    """

    def __init__(self, config: EngineConfig, catalog: StateCatalog, start_ms: float = 0.0) -> None:
        self._config = config
        self._catalog = catalog
        self._switch_spacing_ms = config.min_hold_ms + config.cooldown_ms
        self._smoothing = SmoothingLayer(config.smoothing_window_size)
        self._tracker = ChallengerTracker(config)
        self.reset(start_ms)

    # ── Lifecycle ─────────────────────────────────────────────

    def reset(self, now_ms: float) -> None:
        """Return to the default state as if freshly constructed at ``now_ms``."""
        default = self._catalog.default_state
        self._current = StateSession(
            state_id=default.id,
            name=default.name,
            color=default.color,
            category=default.category,
            entered_at_ms=now_ms,
            last_seen_at_ms=now_ms,
        )
        self._challenger: ChallengerSession | None = None
        # First switch is not held back by the cooldown; min hold still applies.
        self._last_switch_at_ms = now_ms - self._switch_spacing_ms
        self._emergency_since_ms: float | None = None
        self._emergency_logged = False
        self._rejected_since_ms: float | None = None
        self._tick_count = 0
        self._smoothing.clear()
        self._tracker.reset()
        self._last = StabilizerSnapshot(
            now_ms=now_ms,
            tick_count=0,
            current=self._current,
            challenger=None,
            display_challenger=None,
            status=TransitionStatus.HOLDING,
            assessment=classify(ValidationTier.DETECTED, 0.0, True, self._config),
            affect_stable=True,
            emergency_active=False,
            switched=False,
            block_reasons=None,
            time_since_last_switch_ms=now_ms - self._last_switch_at_ms,
        )

    # ── Read-only views ───────────────────────────────────────

    @property
    def current(self) -> StateSession:
        return self._current

    @property
    def challenger(self) -> ChallengerSession | None:
        return self._challenger

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def last_switch_at_ms(self) -> float:
        return self._last_switch_at_ms

    @property
    def last_snapshot(self) -> StabilizerSnapshot:
        return self._last

    @property
    def smoothing(self) -> SmoothingLayer:
        return self._smoothing

    # ── Ticks ─────────────────────────────────────────────────

    def skip(self, *, break_emergency_streak: bool = False) -> StabilizerSnapshot:
        """Count a tick without advancing any session state.

        Used for empty candidate lists.  ``break_emergency_streak`` also
        restarts the "continuously below threshold" streak.
        """
        self._tick_count += 1
        if break_emergency_streak:
            self._emergency_since_ms = None
        self._last = replace(self._last, tick_count=self._tick_count, no_op=True)
        return self._last

    def reject(self, now_ms: float) -> StabilizerSnapshot:
        """Count a tick whose sample was rejected as an artifact.

        Nothing advances and the emergency streak is broken.  The rejected
        stretch, from the first rejected tick to the next accepted one, is
        excluded from the session, challenger and cooldown timers.
        """
        if self._rejected_since_ms is None:
            self._rejected_since_ms = now_ms
        return self.skip(break_emergency_streak=True)

    def tick(
        self,
        candidates: Sequence[ScoredCandidate],
        affect: AffectEstimate,
        now_ms: float,
        *,
        ambiguity: AmbiguityNotice | None = None,
    ) -> StabilizerSnapshot:
        """Advance the state machine by one tick and return its snapshot."""
        if not candidates:
            return self.skip()

        if self._rejected_since_ms is not None:
            self._exclude_rejected_span(now_ms - self._rejected_since_ms)
            self._rejected_since_ms = None

        cfg = self._config
        self._tick_count += 1
        affect_ok = affect_gate_passes(affect, cfg)

        # 1. Smooth & rank
        smoothed: dict[str, float] = {}
        for c in candidates:
            smoothed[c.state_id] = self._smoothing.push(c.state_id, c.raw_confidence)
        ranked = sorted(candidates, key=lambda c: smoothed[c.state_id], reverse=True)
        top = ranked[0]
        top_conf = smoothed[top.state_id]

        current = self._current
        current_id = current.state_id
        current_data = next((c for c in candidates if c.state_id == current_id), None)
        current_conf = smoothed.get(current_id, 0.0)

        time_in_current = current.duration_ms(now_ms)
        time_since_switch = now_ms - self._last_switch_at_ms

        # 2. Emergency streak
        emergency = self._update_emergency(current_conf, now_ms)

        # 3. Refresh current session (same identity)
        history = self._smoothing.history(current_id) if current_data else current.confidence_history
        variance = spread(history)
        stable_now = variance_ok(variance, cfg) and affect_ok
        thresholds = cfg.thresholds_for(current.category)
        tier = advance_session_tier(current.tier, time_in_current, thresholds, stable=stable_now)
        locked_at = current.locked_at_ms
        if tier is ValidationTier.LOCKED and locked_at is None:
            locked_at = now_ms
            logger.info("stabilizer.locked", state=current_id, locked_at_ms=now_ms)
        if tier is not current.tier:
            logger.info(
                "stabilizer.tier_promoted",
                state=current_id,
                tier=tier.value,
                time_in_state_ms=round(time_in_current),
            )
        current = replace(
            current,
            tier=tier,
            locked_at_ms=locked_at,
            confidence_history=history,
            dominant_bands=current_data.dominant_bands if current_data else current.dominant_bands,
            last_seen_at_ms=now_ms if current_data else current.last_seen_at_ms,
        )

        # 4. Challenger & switch decision
        top_is_different = top.state_id != current_id
        hold_blocked = time_in_current < cfg.min_hold_ms and not emergency
        cooldown_blocked = time_since_switch < self._switch_spacing_ms and not emergency
        threshold_blocked = (
            top_is_different
            and top_conf < cfg.promotion_threshold
            and not emergency
        )
        margin_blocked = (
            top_is_different
            and (top_conf - current_conf) < cfg.takeover_margin
            and not emergency
        )
        ambiguous = (
            top_is_different
            and ambiguity is not None
            and top.state_id in ambiguity.state_ids
        )

        challenger: ChallengerSession | None = None
        switched = False
        block_reasons: BlockReasons | None = BlockReasons(
            hold_blocked=hold_blocked,
            cooldown_blocked=cooldown_blocked,
            threshold_blocked=threshold_blocked,
            margin_blocked=margin_blocked,
            ambiguous=ambiguous,
            emergency_active=emergency,
            message=self._block_message(
                hold_blocked, cooldown_blocked, threshold_blocked, margin_blocked,
                ambiguous, emergency, time_in_current, time_since_switch,
            ),
        )

        if top_is_different and not ambiguous:
            challenger = self._track_challenger(top, now_ms)
            if not (hold_blocked or cooldown_blocked or threshold_blocked or margin_blocked):
                logger.info(
                    "stabilizer.switch_approved",
                    from_state=current_id,
                    to_state=top.state_id,
                    confidence=round(top_conf, 1),
                    current_confidence=round(current_conf, 1),
                    time_in_state_ms=round(time_in_current),
                    emergency=emergency,
                )
                current = StateSession.start(top, now_ms)
                self._smoothing.seed(top.state_id, top.raw_confidence)
                challenger = None
                self._last_switch_at_ms = now_ms
                self._emergency_since_ms = None
                self._emergency_logged = False
                switched = True
                block_reasons = None
        elif ambiguous:
            logger.debug("stabilizer.ambiguous_leader", state=top.state_id)

        self._current = current
        self._challenger = challenger
        self._smoothing.retain((current.state_id, challenger.state_id if challenger else None))

        # 5. Derived outputs
        assessment = classify(current.tier, current.variance, affect_ok, cfg)
        if switched:
            status = TransitionStatus.HOLDING
        elif emergency:
            status = TransitionStatus.EMERGENCY
        elif top_is_different:
            status = TransitionStatus.TRANSITIONING
        elif assessment.tier is ValidationTier.LOCKED:
            status = TransitionStatus.LOCKED
        else:
            status = TransitionStatus.HOLDING

        runner = next((c for c in ranked if c.state_id != current.state_id), None)
        display_challenger = self._tracker.observe(
            runner,
            smoothed[runner.state_id] if runner else 0.0,
            current.state_id,
            current.confidence,
            now_ms,
        )

        self._last = StabilizerSnapshot(
            now_ms=now_ms,
            tick_count=self._tick_count,
            current=current,
            challenger=challenger,
            display_challenger=display_challenger,
            status=status,
            assessment=assessment,
            affect_stable=affect_ok,
            emergency_active=emergency,
            switched=switched,
            block_reasons=block_reasons,
            time_since_last_switch_ms=now_ms - self._last_switch_at_ms,
            raw_top3=_top3((c.state_id, c.raw_confidence) for c in candidates),
            smoothed_top3=_top3(smoothed.items()),
        )
        return self._last

    # ── Internals ─────────────────────────────────────────────

    def _exclude_rejected_span(self, span_ms: float) -> None:
        if span_ms <= 0:
            return
        self._current = replace(self._current, paused_ms=self._current.paused_ms + span_ms)
        self._last_switch_at_ms += span_ms
        if self._challenger is not None:
            self._challenger = replace(
                self._challenger,
                first_seen_as_leader_at_ms=self._challenger.first_seen_as_leader_at_ms + span_ms,
            )
        self._tracker.shift(span_ms)
        logger.debug(
            "stabilizer.rejected_span_excluded",
            state=self._current.state_id,
            span_ms=round(span_ms),
        )

    def _update_emergency(self, current_conf: float, now_ms: float) -> bool:
        cfg = self._config
        if current_conf >= cfg.emergency_drop_threshold:
            self._emergency_since_ms = None
            self._emergency_logged = False
            return False
        if self._emergency_since_ms is None:
            self._emergency_since_ms = now_ms
        active = now_ms - self._emergency_since_ms >= cfg.emergency_drop_duration_ms
        if active and not self._emergency_logged:
            logger.warning(
                "stabilizer.emergency_active",
                state=self._current.state_id,
                confidence=round(current_conf, 1),
                below_since_ms=self._emergency_since_ms,
            )
            self._emergency_logged = True
        return active

    def _track_challenger(self, top: ScoredCandidate, now_ms: float) -> ChallengerSession:
        history = self._smoothing.history(top.state_id)
        previous = self._challenger
        if previous is not None and previous.state_id == top.state_id:
            return replace(previous, confidence_history=history, dominant_bands=top.dominant_bands)
        # New identity: the window starts from this tick only
        self._smoothing.seed(top.state_id, top.raw_confidence)
        return ChallengerSession(
            state_id=top.state_id,
            name=top.name,
            color=top.color,
            first_seen_as_leader_at_ms=now_ms,
            confidence_history=(top.raw_confidence,),
            dominant_bands=top.dominant_bands,
        )

    def _block_message(
        self,
        hold: bool,
        cooldown: bool,
        threshold: bool,
        margin: bool,
        ambiguous: bool,
        emergency: bool,
        time_in_state: float,
        time_since_switch: float,
    ) -> str:
        cfg = self._config
        if emergency:
            return "Emergency override active"
        reasons: list[str] = []
        if hold:
            reasons.append(f"Hold: {math.ceil((cfg.min_hold_ms - time_in_state) / 1000)}s left")
        if cooldown:
            reasons.append(f"Cooldown: {math.ceil((self._switch_spacing_ms - time_since_switch) / 1000)}s left")
        if threshold:
            reasons.append(f"Below {cfg.promotion_threshold:g} threshold")
        if margin:
            reasons.append(f"Needs +{cfg.takeover_margin:g} margin")
        if ambiguous:
            reasons.append("Ambiguous pattern")
        return " | ".join(reasons) if reasons else "Can switch"


def _top3(pairs: Iterable[tuple[str, float]]) -> tuple[CandidateSummary, ...]:
    ranked = sorted(pairs, key=lambda p: p[1], reverse=True)[:3]
    return tuple(CandidateSummary(state_id=sid, confidence=round(conf)) for sid, conf in ranked)
