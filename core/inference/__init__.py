"""Inference module — the real-time sign pipeline."""

from core.inference.pipeline import PipelineConfig, SignPipeline

__all__ = ["PipelineConfig", "SignPipeline"]
