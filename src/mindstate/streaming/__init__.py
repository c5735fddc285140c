"""Async streaming helpers."""

from mindstate.streaming.runner import EngineRunner

__all__ = ["EngineRunner"]
