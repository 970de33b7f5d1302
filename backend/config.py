"""LibrasSign — Centralised Settings (Pydantic v2).

Single source of truth for all configuration.
Loads from .env, environment variables, or defaults.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        protected_namespaces=("settings_",),
    )

    # ── Application ──────────────────────────────────────────
    app_name: str = "LibrasSign"
    app_version: str = "0.1.0"
    app_env: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_dir: str = "logs"

    # ── Server ───────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 1
    cors_origins: list[str] = ["*"]

    # ── Storage ──────────────────────────────────────────────
    models_dir: str = "models"
    model_name: str = "libras-model"
    bundled_model_path: str = "assets/model/libras-model.pt"
    export_dir: str = "downloads"
    dataset_path: str = "data/libras_dataset.json"

    # ── Stability gate ───────────────────────────────────────
    countdown_seconds: int = 2
    motion_threshold: float = 0.7
    settle_grace_ms: int = 200

    # ── Emission gate ────────────────────────────────────────
    confidence_threshold: float = 0.93
    min_emit_interval_ms: int = 1500

    # ── Training ─────────────────────────────────────────────
    train_epochs: int = 50
    train_batch_size: int = 32
    learning_rate: float = 1e-3
    seed: int = 42

    # ── Detector ─────────────────────────────────────────────
    min_detection_confidence: float = 0.6
    min_tracking_confidence: float = 0.6
    model_complexity: int = 1

    # ── Camera ───────────────────────────────────────────────
    camera_index: int = 0
    camera_width: int = 640
    camera_height: int = 480

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _parse_cors(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return json.loads(v)
        return v

    @field_validator("countdown_seconds", "settle_grace_ms", "min_emit_interval_ms")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def project_root(self) -> Path:
        return Path(__file__).resolve().parent.parent


settings = Settings()
