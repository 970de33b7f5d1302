"""Landmark normalization for translation and scale invariance.

All normalization is purely geometric, no ML involved. The exact same
transform must be applied at collection time and at inference time,
otherwise a persisted classifier stops matching its inputs.
"""

from __future__ import annotations

import numpy as np

from core.types import FEATURE_DIM, LANDMARK_DIMS, NUM_HAND_LANDMARKS, WRIST, HandLandmarks


class LandmarkNormalizer:
    """Turn a hand's 21 landmarks into a 63-dim feature vector.

    Steps:
        1. Translate so the wrist is at the origin.
        2. Divide by the largest pairwise distance between the original
           landmarks (1.0 when every landmark coincides).

    Usage:
        >>> normalizer = LandmarkNormalizer()
        >>> features = normalizer.normalize(hand_landmarks)  # (63,)
    """

    feature_dim = FEATURE_DIM

    def normalize(self, hand: HandLandmarks | np.ndarray) -> np.ndarray:
        """Normalize one hand.

        Args:
            hand: HandLandmarks or a raw (21, 3) array.

        Returns:
            Read-only float32 array of shape (63,).

        Raises:
            ValueError: If the landmark array has the wrong shape.
        """
        lm = hand.landmarks if isinstance(hand, HandLandmarks) else np.asarray(hand)
        if lm.shape != (NUM_HAND_LANDMARKS, LANDMARK_DIMS):
            raise ValueError(
                f"Expected landmarks of shape ({NUM_HAND_LANDMARKS}, {LANDMARK_DIMS}), "
                f"got {lm.shape}"
            )
        lm = lm.astype(np.float64)

        scale = self.max_pairwise_distance(lm) or 1.0
        features = ((lm - lm[WRIST]) / scale).astype(np.float32).reshape(FEATURE_DIM)
        features.flags.writeable = False
        return features

    def normalize_batch(self, hands: list[HandLandmarks]) -> list[np.ndarray]:
        """Normalize a batch of hands."""
        return [self.normalize(h) for h in hands]

    @staticmethod
    def max_pairwise_distance(lm: np.ndarray) -> float:
        """Largest Euclidean distance between any two landmarks."""
        diffs = lm[:, None, :] - lm[None, :, :]  # (21, 21, 3)
        return float(np.sqrt((diffs**2).sum(axis=-1)).max())
