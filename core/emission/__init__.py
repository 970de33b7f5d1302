"""Emission module — confidence and rate limiting of recognized labels."""

from core.emission.gate import EmissionConfig, EmissionGate

__all__ = ["EmissionConfig", "EmissionGate"]
