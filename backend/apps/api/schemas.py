# ============================================================
#  LibrasSign — Pydantic API Schemas
# ============================================================
"""LibrasSign — Pydantic API Schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field

# ── Health ───────────────────────────────────────────────────


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    pipeline_running: bool
    model_loaded: bool
    uptime_seconds: float


# ── Model ────────────────────────────────────────────────────


class ModelStatusResponse(BaseModel):
    loaded: bool
    status: str
    label_names: list[str] = Field(default_factory=list)
    training: bool = False


class TrainResponse(BaseModel):
    started: bool = True
    num_samples: int
    status: str


# ── Collection / dataset ─────────────────────────────────────


class CollectRequest(BaseModel):
    label: str = Field(..., max_length=2, description="Letter to record (e.g. A)")


class CollectResponse(BaseModel):
    collecting: bool
    label: str | None = None
    counts: dict[str, int] = Field(default_factory=dict)


class DatasetPayload(BaseModel):
    samples: list[list[float]]
    labels: list[int]
    label_names: list[str] = Field(default_factory=list)


class DatasetImportResponse(BaseModel):
    num_samples: int
    counts: dict[str, int] = Field(default_factory=dict)


# ── Recognized text ──────────────────────────────────────────


class TextResponse(BaseModel):
    text: str
