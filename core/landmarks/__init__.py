"""Landmarks module — normalization into model-ready feature vectors."""

from core.landmarks.normalizer import LandmarkNormalizer

__all__ = ["LandmarkNormalizer"]
