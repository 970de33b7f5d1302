"""LibrasSign — FastAPI backend (optional server mode).

This package provides REST + WebSocket endpoints for remote recognition,
dataset management and training. It is OPTIONAL — the core pipeline runs
entirely locally without this.
"""
