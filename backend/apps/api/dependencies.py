# ============================================================
#  LibrasSign — Dependency Injection
# ============================================================
"""
FastAPI dependency providers for the pipeline, text buffer and settings.
Ensures a single pipeline instance across the application lifetime.
"""
from __future__ import annotations

from functools import lru_cache

from backend.config import Settings, settings
from core.inference.pipeline import PipelineConfig, SignPipeline
from core.text_buffer import TextBuffer


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton Settings instance."""
    return settings


@lru_cache(maxsize=1)
def get_text_buffer() -> TextBuffer:
    """Return the shared recognized-text buffer."""
    return TextBuffer()


@lru_cache(maxsize=1)
def get_pipeline() -> SignPipeline:
    """Create and start the shared sign pipeline on first use."""
    pipeline = SignPipeline(
        PipelineConfig.from_settings(get_settings()),
        on_text=get_text_buffer().append,
    )
    pipeline.start()
    return pipeline
