"""Affect estimation — valence / arousal / control from band powers and metrics.

The estimator runs alongside the state classifier as a **read-only
overlay**: its output never selects a mental state.  It is consumed in two
places only:

1. **Stability gate** (`tiers.py`) — a locked tier is shown as confirmed
   while the affect estimate is unstable.
2. **Affect-conflict discount** (`scoring.py`) — when the dominant affect
   label conflicts with the top candidate's expected affect, the
   candidate's confidence is discounted, never rejected outright.

The rules themselves live in `inference.py`
(:func:`mindstate.affect.inference.estimate_affect`).
"""

from mindstate.affect.models import (
    AffectAxes,
    AffectEstimate,
    AffectLabel,
    AffectLabelScore,
)

__all__ = [
    "AffectAxes",
    "AffectEstimate",
    "AffectLabel",
    "AffectLabelScore",
]
