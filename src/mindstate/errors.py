"""Exception types raised by the engine.

Configuration problems surface as :class:`pydantic.ValidationError` from
:class:`mindstate.config.EngineConfig`; everything else derives from
:class:`MindStateError`.
"""

from __future__ import annotations


class MindStateError(Exception):
    """Base class for engine errors."""


class CatalogError(MindStateError, ValueError):
    """Malformed state catalog or lookup of an unknown state id."""
