"""Streaming mental-state classification with hysteresis stabilisation."""

from mindstate.catalog import DEFAULT_CATALOG, StateCatalog, StateDefinition
from mindstate.config import EngineConfig, Settings, get_settings
from mindstate.engine import MindStateEngine
from mindstate.errors import CatalogError, MindStateError
from mindstate.models import DisplayModel, Sample, TransitionStatus, ValidationTier

__all__ = [
    "DEFAULT_CATALOG",
    "CatalogError",
    "DisplayModel",
    "EngineConfig",
    "MindStateEngine",
    "MindStateError",
    "Sample",
    "Settings",
    "StateCatalog",
    "StateDefinition",
    "TransitionStatus",
    "ValidationTier",
    "get_settings",
]
