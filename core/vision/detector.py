"""MediaPipe-based hand landmark detector.

Wraps MediaPipe Hands in single-hand mode: each frame yields either no
hand or exactly one hand's 21 landmarks.
"""

from __future__ import annotations

import time
from typing import Any

import cv2
import mediapipe as mp
import numpy as np

from core.types import LANDMARK_DIMS, NUM_HAND_LANDMARKS, Handedness, HandLandmarks


class MediaPipeHandDetector:
    """Hand landmark detector using MediaPipe Hands.

    Usage:
        >>> detector = MediaPipeHandDetector()
        >>> hands = detector.detect(bgr_frame)   # [] or [HandLandmarks]
        >>> detector.close()
    """

    def __init__(
        self,
        max_hands: int = 1,
        min_detection_confidence: float = 0.6,
        min_tracking_confidence: float = 0.6,
        model_complexity: int = 1,
    ) -> None:
        self._mp_hands = mp.solutions.hands
        self._hands = self._mp_hands.Hands(
            static_image_mode=False,
            max_num_hands=max_hands,
            model_complexity=model_complexity,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )
        self._last_inference_ms: float = 0.0
        self._last_results: Any = None
        self._mp_drawing = mp.solutions.drawing_utils
        self._closed = False

    @property
    def last_inference_ms(self) -> float:
        """Return last inference time in milliseconds."""
        return self._last_inference_ms

    def detect(self, frame: np.ndarray) -> list[HandLandmarks]:
        """Detect hand landmarks in a BGR frame.

        Raises:
            ValueError: If frame is not a valid BGR image.
        """
        if frame is None or frame.ndim != 3 or frame.shape[2] != 3:
            raise ValueError(
                f"Expected BGR frame with shape (H, W, 3), got "
                f"{'None' if frame is None else frame.shape}"
            )

        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        rgb_frame.flags.writeable = False

        t_start = time.perf_counter()
        results = self._hands.process(rgb_frame)
        self._last_inference_ms = (time.perf_counter() - t_start) * 1000.0
        self._last_results = results

        if not results.multi_hand_landmarks:
            return []

        hand_lms = results.multi_hand_landmarks[0]
        landmarks = np.array(
            [[lm.x, lm.y, lm.z] for lm in hand_lms.landmark],
            dtype=np.float32,
        )
        assert landmarks.shape == (NUM_HAND_LANDMARKS, LANDMARK_DIMS)

        handedness = Handedness.UNKNOWN
        confidence = 0.0
        if results.multi_handedness:
            classification = results.multi_handedness[0].classification[0]
            label = classification.label.lower()
            confidence = classification.score
            handedness = Handedness(label) if label in ("left", "right") else Handedness.UNKNOWN

        return [HandLandmarks(landmarks=landmarks, handedness=handedness, confidence=confidence)]

    def draw_landmarks(self, frame: np.ndarray) -> np.ndarray:
        """Draw the last detection's skeleton on a copy of a BGR frame.

        Connectors green, points red.
        """
        annotated = frame.copy()
        results = self._last_results
        if results is not None and results.multi_hand_landmarks:
            for hand_lm in results.multi_hand_landmarks:
                self._mp_drawing.draw_landmarks(
                    annotated,
                    hand_lm,
                    self._mp_hands.HAND_CONNECTIONS,
                    self._mp_drawing.DrawingSpec(color=(0, 0, 255), thickness=1, circle_radius=2),
                    self._mp_drawing.DrawingSpec(color=(0, 255, 0), thickness=3),
                )
        return annotated

    def close(self) -> None:
        """Release MediaPipe resources."""
        if not self._closed:
            self._hands.close()
            self._closed = True

    def __enter__(self) -> MediaPipeHandDetector:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
