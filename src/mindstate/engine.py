"""Engine facade — one object that turns samples into display models.

Wires the scorer, affect estimator, stabilizer and display builder
together and serialises ticks.  The host drives the clock: call
:meth:`MindStateEngine.tick` at the configured cadence (or use
:class:`mindstate.streaming.runner.EngineRunner`), feeding new samples
as they arrive.  When no new sample arrived since the previous tick the
latest one is re-scored.
"""

from __future__ import annotations

import threading

import structlog

from mindstate.affect.inference import estimate_affect
from mindstate.affect.models import AffectEstimate
from mindstate.catalog import DEFAULT_CATALOG, StateCatalog
from mindstate.config import EngineConfig
from mindstate.display import build_display_model
from mindstate.models import AmbiguityNotice, DisplayModel, Sample
from mindstate.scoring import (
    apply_affect_conflict,
    apply_ambiguity_discount,
    detect_ambiguity,
    estimate_coherence,
    sanitise_sample,
    score_candidates,
)
from mindstate.stabilizer import StabilizerSnapshot, TemporalStabilizer

logger = structlog.get_logger(__name__)


class MindStateEngine:
    """Streaming mental-state classifier with hysteresis stabilization.

    Parameters
    ----------
    config : EngineConfig, optional
        Validated configuration; defaults reproduce the reference tuning.
    catalog : StateCatalog
        State definitions to score against.
    start_ms : float
        Clock value at construction.  The default state is entered here
        and the switch cooldown is considered already elapsed.

    Ticks are serialised with an internal lock, so ``tick`` may be called
    from a timer thread while ``ingest`` is fed from another.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        catalog: StateCatalog = DEFAULT_CATALOG,
        *,
        start_ms: float = 0.0,
    ) -> None:
        self._config = config if config is not None else EngineConfig()
        self._catalog = catalog
        self._lock = threading.Lock()
        self._stabilizer = TemporalStabilizer(self._config, catalog, start_ms)
        self._latest: Sample | None = None
        self._clock_ms = start_ms
        self._display = self._project(self._stabilizer.last_snapshot, AffectEstimate(), 0.0)

        logger.info(
            "engine.created",
            states=len(catalog),
            default_state=catalog.default_state_id,
            tick_interval_ms=self._config.tick_interval_ms,
            sleep_mode=self._config.sleep_mode,
        )

    # ── Properties ────────────────────────────────────────────

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def catalog(self) -> StateCatalog:
        return self._catalog

    @property
    def display_model(self) -> DisplayModel:
        """Most recent display model (the initial one before any tick)."""
        return self._display

    @property
    def latest_sample(self) -> Sample | None:
        return self._latest

    @property
    def stabilizer(self) -> TemporalStabilizer:
        return self._stabilizer

    # ── Input ─────────────────────────────────────────────────

    def ingest(self, sample: Sample) -> None:
        """Store a sample to be scored on the next tick."""
        with self._lock:
            self._latest = sample

    # ── Tick ──────────────────────────────────────────────────

    def tick(self, sample: Sample | None = None, now_ms: float | None = None) -> DisplayModel:
        """Advance the engine by one tick and return the new display model.

        ``now_ms`` defaults to the timestamp of the sample being scored;
        hosts with their own clock should pass it explicitly.  The clock
        never runs backwards.
        """
        with self._lock:
            if sample is not None:
                self._latest = sample
            current = self._latest

            if now_ms is None:
                now_ms = current.timestamp_ms if current is not None else self._clock_ms
            now_ms = max(now_ms, self._clock_ms)
            self._clock_ms = now_ms

            if current is None:
                snapshot = self._stabilizer.skip()
                self._display = self._repeat(snapshot, motion_rejected=False)
                return self._display

            clean = sanitise_sample(current)
            threshold = self._config.motion_artifact_threshold
            if clean.motion is not None and clean.motion > threshold:
                logger.debug("engine.motion_artifact", motion=clean.motion, threshold=threshold)
                snapshot = self._stabilizer.reject(now_ms)
                self._display = self._repeat(snapshot, motion_rejected=True)
                return self._display

            self._display = self._score_and_advance(clean, now_ms)
            return self._display

    def reset(self, now_ms: float | None = None) -> DisplayModel:
        """Drop all session state and return to the default state."""
        with self._lock:
            if now_ms is not None:
                self._clock_ms = now_ms
            self._latest = None
            self._stabilizer.reset(self._clock_ms)
            self._display = self._project(self._stabilizer.last_snapshot, AffectEstimate(), 0.0)
            logger.info("engine.reset", now_ms=self._clock_ms)
            return self._display

    # ── Internals ─────────────────────────────────────────────

    def _score_and_advance(self, sample: Sample, now_ms: float) -> DisplayModel:
        cfg = self._config
        affect = estimate_affect(sample)
        candidates = score_candidates(
            sample,
            self._catalog,
            sleep_mode=cfg.sleep_mode,
            awake_relabel_threshold=cfg.awake_relabel_threshold,
        )

        ambiguity = detect_ambiguity(
            candidates,
            sample,
            self._catalog.ambiguity_rules,
            margin=cfg.ambiguity_margin,
            discount=cfg.ambiguity_discount,
        )
        if ambiguity is not None:
            logger.info(
                "engine.ambiguous_pattern",
                states=list(ambiguity.state_ids),
                band=ambiguity.discriminating_band.value,
                band_value=round(ambiguity.band_value, 3),
            )
            candidates = apply_ambiguity_discount(candidates, ambiguity, cfg.ambiguity_discount)

        candidates, _ = apply_affect_conflict(
            candidates, affect, self._catalog, cfg.affect_conflict_discount
        )

        snapshot = self._stabilizer.tick(candidates, affect, now_ms, ambiguity=ambiguity)
        return self._project(snapshot, affect, estimate_coherence(sample), ambiguity)

    def _project(
        self,
        snapshot: StabilizerSnapshot,
        affect: AffectEstimate,
        coherence: float,
        ambiguity: AmbiguityNotice | None = None,
    ) -> DisplayModel:
        return build_display_model(
            snapshot,
            affect=affect,
            coherence=coherence,
            catalog=self._catalog,
            config=self._config,
            ambiguity=ambiguity,
        )

    def _repeat(self, snapshot: StabilizerSnapshot, *, motion_rejected: bool) -> DisplayModel:
        """Re-emit the previous display model with only the tick bookkeeping updated."""
        previous = self._display
        update: dict[str, object] = {"tick_count": snapshot.tick_count}
        if previous.debug is not None:
            update["debug"] = previous.debug.model_copy(
                update={
                    "tick_count": snapshot.tick_count,
                    "motion_rejected": motion_rejected,
                    "no_op": True,
                }
            )
        return previous.model_copy(update=update)
