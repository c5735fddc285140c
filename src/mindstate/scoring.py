"""Candidate scorer — band-power sample → ranked per-state raw confidences.

The scorer is pure and deterministic for a given sample and catalog.  It
is also the input boundary of the engine: NaN / out-of-range values are
clamped here and never reach session state.

Scoring (0-100 points)
----------------------
=============  =======================================================  ======
Component      Rule                                                     Cap
=============  =======================================================  ======
Dominant       25·v if the band is in the sample's top two, else 10·v   50
Secondary      10·v for each declared band above 0.2                    20
Suppressed     15·(1 − v) for each declared band below 0.3              30
=============  =======================================================  ======

Around the core score this module also provides the sleep-context
relabelling, the coherence estimate, ambiguity detection and the
affect-conflict discount.
"""

from __future__ import annotations

import statistics
from collections.abc import Iterable, Sequence

import structlog

from mindstate.affect.models import AffectEstimate
from mindstate.catalog import AmbiguityRule, StateCatalog, StateDefinition
from mindstate.models import (
    AmbiguityNotice,
    Band,
    CoherenceLevel,
    Sample,
    ScoredCandidate,
)

logger = structlog.get_logger(__name__)

# ── Weights ───────────────────────────────────────────────────

_DOMINANT_TOP_WEIGHT = 25.0
_DOMINANT_OTHER_WEIGHT = 10.0
_DOMINANT_MAX = 50.0

_SECONDARY_FLOOR = 0.2
_SECONDARY_WEIGHT = 10.0
_SECONDARY_MAX = 20.0

_SUPPRESSED_CEILING = 0.3
_SUPPRESSED_WEIGHT = 15.0
_SUPPRESSED_MAX = 30.0

_TOP_BAND_COUNT = 2

# Expected coherence per declared level
_COHERENCE_TARGETS = {
    CoherenceLevel.LOW: 0.25,
    CoherenceLevel.MEDIUM: 0.5,
    CoherenceLevel.HIGH: 0.75,
    CoherenceLevel.VERY_HIGH: 0.9,
}


# ── Input boundary ────────────────────────────────────────────


def sanitise_sample(sample: Sample) -> Sample:
    """Clamp a sample into range, logging when anything had to change."""
    clean = sample.sanitised()
    if clean is not sample:
        logger.warning(
            "scoring.sample_sanitised",
            timestamp_ms=sample.timestamp_ms,
            raw={b.value: sample.band(b) for b in Band},
        )
    return clean


def top_bands(sample: Sample, count: int = _TOP_BAND_COUNT) -> tuple[Band, ...]:
    """Return the ``count`` strongest bands; ties keep band declaration order."""
    ranked = sorted(Band, key=sample.band, reverse=True)
    return tuple(ranked[:count])


# ── Core score ────────────────────────────────────────────────


def score_state(definition: StateDefinition, sample: Sample) -> float:
    """Raw confidence (0-100) of one state for an already-sanitised sample."""
    pattern = definition.pattern
    top = top_bands(sample)

    dominant = 0.0
    for band in pattern.dominant:
        weight = _DOMINANT_TOP_WEIGHT if band in top else _DOMINANT_OTHER_WEIGHT
        dominant += weight * sample.band(band)

    secondary = 0.0
    for band in pattern.secondary:
        value = sample.band(band)
        if value > _SECONDARY_FLOOR:
            secondary += _SECONDARY_WEIGHT * value

    suppressed = 0.0
    for band in pattern.suppressed:
        value = sample.band(band)
        if value < _SUPPRESSED_CEILING:
            suppressed += _SUPPRESSED_WEIGHT * (1.0 - value)

    total = (
        min(dominant, _DOMINANT_MAX)
        + min(secondary, _SECONDARY_MAX)
        + min(suppressed, _SUPPRESSED_MAX)
    )
    return max(0.0, min(100.0, total))


def score_candidates(
    sample: Sample,
    catalog: StateCatalog,
    *,
    sleep_mode: bool = False,
    awake_relabel_threshold: float = 40.0,
) -> list[ScoredCandidate]:
    """Score every catalog state and return them ranked, strongest first.

    States that require sleep context (those with an awake variant) are
    reported under the awake variant while ``sleep_mode`` is off and their
    score exceeds ``awake_relabel_threshold``.
    """
    clean = sanitise_sample(sample)
    bands = tuple(b.label for b in top_bands(clean))

    scored: list[ScoredCandidate] = []
    for definition in catalog:
        score = score_state(definition, clean)
        state_id, name, color, variant_of = definition.id, definition.name, definition.color, None

        variant = definition.awake_variant
        if variant is not None and not sleep_mode and score > awake_relabel_threshold:
            state_id, name, color, variant_of = variant.id, variant.name, variant.color, definition.id

        scored.append(
            ScoredCandidate(
                state_id=state_id,
                name=name,
                color=color,
                category=definition.category,
                raw_confidence=score,
                dominant_bands=bands,
                timestamp_ms=clean.timestamp_ms,
                variant_of=variant_of,
            )
        )

    scored.sort(key=lambda c: c.raw_confidence, reverse=True)
    return scored


# ── Coherence ─────────────────────────────────────────────────


def estimate_coherence(sample: Sample) -> float:
    """Coherence proxy in [0, 1].

    Uses relaxation and focus when both metrics are present, otherwise the
    balance of theta, alpha and gamma.
    """
    s = sample.sanitised()
    if s.relaxation is not None and s.focus is not None:
        coherence = s.relaxation * 0.4 + s.focus * 0.4 + 0.2
    else:
        values = [s.theta, s.alpha, s.gamma]
        coherence = statistics.fmean(values) * (1.0 - statistics.pstdev(values))
    return max(0.0, min(1.0, coherence))


def coherence_quality(coherence: float) -> CoherenceLevel:
    if coherence > 0.7:
        return CoherenceLevel.HIGH
    if coherence > 0.4:
        return CoherenceLevel.MEDIUM
    return CoherenceLevel.LOW


def coherence_aligned(expected: CoherenceLevel, coherence: float) -> bool:
    """Whether the observed coherence lands in the expected level's quality band."""
    target = _COHERENCE_TARGETS[expected]
    return coherence_quality(coherence) is coherence_quality(target)


# ── Ambiguity ─────────────────────────────────────────────────


def detect_ambiguity(
    candidates: Sequence[ScoredCandidate],
    sample: Sample,
    rules: Iterable[AmbiguityRule],
    *,
    margin: float,
    discount: float,
) -> AmbiguityNotice | None:
    """Return an ambiguity notice when the top two candidates match a rule."""
    if len(candidates) < 2:
        return None
    first, second = candidates[0], candidates[1]
    if first.raw_confidence - second.raw_confidence >= margin:
        return None

    s = sample.sanitised()
    pair = {first.definition_id, second.definition_id}
    for rule in rules:
        if pair != set(rule.state_ids):
            continue
        if any(s.band(band) <= floor for band, floor in rule.preconditions.items()):
            continue
        value = s.band(rule.discriminating_band)
        if not rule.low < value < rule.high:
            continue
        return AmbiguityNotice(
            state_ids=(first.state_id, second.state_id),
            label=rule.label,
            discriminating_band=rule.discriminating_band,
            band_value=value,
            confidence=round(first.raw_confidence * discount),
            explanation=rule.explanation,
        )
    return None


def apply_ambiguity_discount(
    candidates: Sequence[ScoredCandidate],
    notice: AmbiguityNotice,
    factor: float,
) -> list[ScoredCandidate]:
    """Discount both ambiguous candidates and re-rank; everyone else is untouched."""
    adjusted = [
        c.discounted(factor) if c.state_id in notice.state_ids else c
        for c in candidates
    ]
    adjusted.sort(key=lambda c: c.raw_confidence, reverse=True)
    return adjusted


# ── Affect conflict ───────────────────────────────────────────


def apply_affect_conflict(
    candidates: Sequence[ScoredCandidate],
    affect: AffectEstimate,
    catalog: StateCatalog,
    factor: float,
) -> tuple[list[ScoredCandidate], bool]:
    """Discount the top candidate when the dominant affect label conflicts with it.

    Returns the (possibly re-ranked) candidates and whether a discount was
    applied.  The candidate is never removed; repeated conflict only makes
    it harder to clear the promotion threshold and takeover margin.
    """
    if not candidates:
        return [], False
    top = candidates[0]
    definition = catalog.get(top.state_id)
    if affect.dominant_label not in definition.conflicting_affect:
        return list(candidates), False

    adjusted = [top.discounted(factor), *candidates[1:]]
    adjusted.sort(key=lambda c: c.raw_confidence, reverse=True)
    logger.debug(
        "scoring.affect_conflict",
        state=top.state_id,
        affect=affect.dominant_label.value,
        factor=factor,
    )
    return adjusted, True
