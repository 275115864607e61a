"""Telemetry, configuration, and event plumbing shared by the engine."""

from .config import EngineConfig, RebuildPolicy
from .events import EventBus

__all__ = ["EngineConfig", "EventBus", "RebuildPolicy"]
