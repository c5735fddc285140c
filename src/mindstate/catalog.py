"""State catalog — the fixed, hand-authored table of mental-state definitions.

Pure data: definitions are loaded once and never mutated.  The scorer
reads the band patterns, the tier classifier reads the category, and the
affect-conflict discount reads the expected / conflicting affect labels.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from pydantic import BaseModel, ConfigDict, Field

from mindstate.affect.models import AffectLabel
from mindstate.errors import CatalogError
from mindstate.models import Band, CoherenceLevel, StateCategory

# ── Definitions ───────────────────────────────────────────────


class BandPattern(BaseModel):
    """Expected band signature of a state."""

    model_config = ConfigDict(frozen=True)

    dominant: tuple[Band, ...]
    secondary: tuple[Band, ...] = ()
    suppressed: tuple[Band, ...] = ()
    coherence: CoherenceLevel = CoherenceLevel.MEDIUM


class AwakeVariant(BaseModel):
    """Identity a sleep-context state is reported under while the user is awake."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    color: str


class StateDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    color: str
    category: StateCategory
    pattern: BandPattern
    expected_affect: tuple[AffectLabel, ...] = ()
    conflicting_affect: tuple[AffectLabel, ...] = ()
    awake_variant: AwakeVariant | None = None
    description: str = ""


class AmbiguityRule(BaseModel):
    """Two states the scorer cannot tell apart inside a band window.

    The rule matches when both states hold the top two raw ranks, every
    precondition band exceeds its floor, and the discriminating band lies
    strictly inside ``(low, high)``.
    """

    model_config = ConfigDict(frozen=True)

    state_ids: tuple[str, str]
    discriminating_band: Band
    low: float
    high: float
    preconditions: dict[Band, float] = Field(default_factory=dict)
    label: str
    explanation: str = ""


# ── Catalog ───────────────────────────────────────────────────


class StateCatalog:
    """Indexed, validated collection of :class:`StateDefinition`.

    Awake-variant ids resolve to their base definition, so lookups work for
    every id a candidate can be reported under.
    """

    def __init__(
        self,
        definitions: Iterable[StateDefinition],
        *,
        default_state_id: str,
        ambiguity_rules: Iterable[AmbiguityRule] = (),
    ) -> None:
        self._definitions: tuple[StateDefinition, ...] = tuple(definitions)
        self._by_id: dict[str, StateDefinition] = {}
        self._variants: dict[str, StateDefinition] = {}

        for definition in self._definitions:
            self._register(definition.id, definition)
            if definition.awake_variant is not None:
                self._register(definition.awake_variant.id, definition, variant=True)

        if default_state_id not in self._by_id:
            raise CatalogError(f"Default state {default_state_id!r} is not in the catalog")
        self.default_state_id = default_state_id

        self.ambiguity_rules: tuple[AmbiguityRule, ...] = tuple(ambiguity_rules)
        for rule in self.ambiguity_rules:
            for state_id in rule.state_ids:
                if state_id not in self._by_id:
                    raise CatalogError(f"Ambiguity rule references unknown state {state_id!r}")

    def _register(self, state_id: str, definition: StateDefinition, variant: bool = False) -> None:
        if state_id in self._by_id or state_id in self._variants:
            raise CatalogError(f"Duplicate state id {state_id!r}")
        if variant:
            self._variants[state_id] = definition
        else:
            self._by_id[state_id] = definition

    # ── Access ────────────────────────────────────────────────

    def __iter__(self) -> Iterator[StateDefinition]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, state_id: object) -> bool:
        return state_id in self._by_id or state_id in self._variants

    def get(self, state_id: str) -> StateDefinition:
        """Return the definition for a base or awake-variant id."""
        try:
            return self._by_id[state_id]
        except KeyError:
            pass
        try:
            return self._variants[state_id]
        except KeyError:
            raise CatalogError(f"Unknown state id {state_id!r}") from None

    def categories(self) -> set[StateCategory]:
        return {d.category for d in self._definitions}

    @property
    def default_state(self) -> StateDefinition:
        return self._by_id[self.default_state_id]


# ── Default table ─────────────────────────────────────────────

_A = AffectLabel

DEFAULT_DEFINITIONS: tuple[StateDefinition, ...] = (
    StateDefinition(
        id="ordinary_waking",
        name="Ordinary Waking",
        color="#64748b",
        category=StateCategory.ORDINARY,
        pattern=BandPattern(
            dominant=(Band.BETA_HIGH, Band.BETA_LOW),
            suppressed=(Band.THETA,),
            coherence=CoherenceLevel.LOW,
        ),
        expected_affect=(_A.NEUTRAL, _A.CONFIDENCE),
        description="Standard waking state with analytical thinking and external focus.",
    ),
    StateDefinition(
        id="relaxed_awareness",
        name="Relaxed Awareness",
        color="#22c55e",
        category=StateCategory.ALPHA_RELAXED,
        pattern=BandPattern(
            dominant=(Band.ALPHA,),
            suppressed=(Band.BETA_HIGH,),
            coherence=CoherenceLevel.MEDIUM,
        ),
        expected_affect=(_A.CALM,),
        conflicting_affect=(_A.STRESS, _A.ANXIETY),
        description="Calm, present state with reduced mental chatter.",
    ),
    StateDefinition(
        id="deep_relaxation",
        name="Deep Relaxation",
        color="#14b8a6",
        category=StateCategory.ALPHA_RELAXED,
        pattern=BandPattern(
            dominant=(Band.ALPHA, Band.THETA),
            suppressed=(Band.BETA_HIGH, Band.BETA_LOW),
            coherence=CoherenceLevel.HIGH,
        ),
        expected_affect=(_A.CALM, _A.GRATITUDE),
        conflicting_affect=(_A.CURIOSITY, _A.STRESS),
        description="Deep peace with emerging theta waves.",
    ),
    StateDefinition(
        id="inner_sound",
        name="Inner Sound",
        color="#8b5cf6",
        category=StateCategory.THETA_MEDITATIVE,
        pattern=BandPattern(
            dominant=(Band.ALPHA, Band.THETA),
            secondary=(Band.GAMMA,),
            coherence=CoherenceLevel.HIGH,
        ),
        expected_affect=(_A.CALM, _A.AWE),
        conflicting_affect=(_A.STRESS,),
        description="Alpha-theta border with sensory decoupling.",
    ),
    StateDefinition(
        id="hypnagogic",
        name="Hypnagogic",
        color="#6366f1",
        category=StateCategory.THETA_MEDITATIVE,
        pattern=BandPattern(
            dominant=(Band.THETA,),
            suppressed=(Band.BETA_HIGH, Band.ALPHA),
            coherence=CoherenceLevel.MEDIUM,
        ),
        expected_affect=(_A.CALM, _A.AWE),
        conflicting_affect=(_A.CONFIDENCE,),
        description="Theta dominant with dreamlike imagery at sleep onset.",
    ),
    StateDefinition(
        id="obe",
        name="Out-of-Body",
        color="#a855f7",
        category=StateCategory.THETA_MEDITATIVE,
        pattern=BandPattern(
            dominant=(Band.THETA,),
            secondary=(Band.GAMMA,),
            suppressed=(Band.BETA_LOW,),
            coherence=CoherenceLevel.LOW,
        ),
        expected_affect=(_A.AWE,),
        description="Theta dominance with body-map disruption.",
    ),
    StateDefinition(
        id="lucid_dreaming",
        name="Lucid Dreaming",
        color="#ec4899",
        category=StateCategory.LUCID_LIKE,
        pattern=BandPattern(
            dominant=(Band.THETA, Band.GAMMA),
            suppressed=(Band.ALPHA,),
            coherence=CoherenceLevel.MEDIUM,
        ),
        expected_affect=(_A.CURIOSITY, _A.AWE),
        conflicting_affect=(_A.CALM,),
        awake_variant=AwakeVariant(
            id="lucid_like_awake",
            name="Dreamlike Awareness",
            color="#f472b6",
        ),
        description="Theta base with bursty gamma; requires sleep context.",
    ),
    StateDefinition(
        id="bliss_ecstatic",
        name="Bliss / Ecstatic",
        color="#f59e0b",
        category=StateCategory.GAMMA_PEAK,
        pattern=BandPattern(
            dominant=(Band.ALPHA, Band.GAMMA),
            suppressed=(Band.BETA_HIGH,),
            coherence=CoherenceLevel.VERY_HIGH,
        ),
        expected_affect=(_A.JOY, _A.LOVE, _A.GRATITUDE),
        conflicting_affect=(_A.NEUTRAL,),
        description="Alpha-gamma coupling with sustained coherence.",
    ),
    StateDefinition(
        id="samadhi",
        name="Samadhi",
        color="#fbbf24",
        category=StateCategory.TRANSCENDENT,
        pattern=BandPattern(
            dominant=(Band.GAMMA,),
            suppressed=(Band.BETA_HIGH, Band.BETA_LOW),
            coherence=CoherenceLevel.VERY_HIGH,
        ),
        expected_affect=(_A.CALM,),
        conflicting_affect=(_A.CURIOSITY,),
        description="High-amplitude coherent gamma with suppressed beta.",
    ),
    StateDefinition(
        id="transcendent_meta",
        name="Transcendent Meta-Awareness",
        color="#ffffff",
        category=StateCategory.TRANSCENDENT,
        pattern=BandPattern(
            dominant=(Band.GAMMA,),
            secondary=(Band.ALPHA, Band.THETA),
            suppressed=(Band.BETA_HIGH, Band.BETA_LOW),
            coherence=CoherenceLevel.VERY_HIGH,
        ),
        expected_affect=(_A.CALM, _A.AWE),
        conflicting_affect=(_A.CURIOSITY,),
        description="Sustained global gamma with cross-frequency coupling.",
    ),
)

# Alpha presence is the only discriminator between these two; the window
# is a hand-tuned heuristic awaiting domain-expert review.
LUCID_TRANSCENDENT_RULE = AmbiguityRule(
    state_ids=("lucid_dreaming", "transcendent_meta"),
    discriminating_band=Band.ALPHA,
    low=0.2,
    high=0.45,
    preconditions={Band.THETA: 0.4, Band.GAMMA: 0.3},
    label="Transition between Lucid Dreaming and Meta-Awareness",
    explanation=(
        "Theta-Gamma pattern with ambiguous Alpha. Cannot differentiate between "
        "Lucid Dreaming and Meta-Awareness. Observing pattern evolution."
    ),
)

DEFAULT_CATALOG = StateCatalog(
    DEFAULT_DEFINITIONS,
    default_state_id="ordinary_waking",
    ambiguity_rules=(LUCID_TRANSCENDENT_RULE,),
)
