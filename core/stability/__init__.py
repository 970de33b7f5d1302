"""Stability module — settle countdown and motion detection."""

from core.stability.gate import StabilityConfig, StabilityGate
from core.stability.scheduler import ThreadingScheduler

__all__ = ["StabilityConfig", "StabilityGate", "ThreadingScheduler"]
