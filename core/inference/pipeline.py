"""End-to-end sign recognition pipeline.

Orchestrates the per-frame flow: hand detection → landmark normalization →
stability gate → (sample collection | classification → emission gate) →
recognized letter forwarded to the text sink.

Frames are handled one at a time; each call is a critical section with
respect to the stability state, whatever thread the detector calls from.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy as np
from loguru import logger

from core.classifier.manager import ClassifierConfig, ClassifierManager
from core.collection.collector import SampleCollector
from core.emission.gate import EmissionConfig, EmissionGate
from core.errors import ResourceUnavailableError, TransientDetectorError
from core.landmarks.normalizer import LandmarkNormalizer
from core.stability.gate import StabilityConfig, StabilityGate
from core.types import HandDetector, HandLandmarks, PipelineResult, Scheduler, StabilityPhase
from training.trainers.train_classifier import TrainConfig, TrainResult

if TYPE_CHECKING:
    from backend.config import Settings

STATUS_WAITING = "Waiting for camera..."
STATUS_STARTED = "MediaPipe Hands started successfully!"
STATUS_STOPPED = "Camera off."
STATUS_NO_HAND = "No hand detected."
STATUS_HAND = "Hand detected"
STATUS_HAND_NO_MODEL = "Hand detected (no model loaded)"


@dataclass
class PipelineConfig:
    """Configuration for the sign pipeline.

    Attributes:
        stability: Settle countdown and motion settings.
        emission: Confidence threshold and re-emission interval.
        classifier: Model store and training settings.
        min_detection_confidence: MediaPipe detection threshold.
        min_tracking_confidence: MediaPipe tracking threshold.
        model_complexity: MediaPipe Hands model complexity (0 or 1).
        auto_load_model: Restore a classifier on start.
    """
    stability: StabilityConfig = field(default_factory=StabilityConfig)
    emission: EmissionConfig = field(default_factory=EmissionConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    min_detection_confidence: float = 0.6
    min_tracking_confidence: float = 0.6
    model_complexity: int = 1
    auto_load_model: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> PipelineConfig:
        """Build a pipeline config from application settings."""
        return cls(
            stability=StabilityConfig(
                countdown_seconds=settings.countdown_seconds,
                motion_threshold=settings.motion_threshold,
                grace_ms=settings.settle_grace_ms,
            ),
            emission=EmissionConfig(
                confidence_threshold=settings.confidence_threshold,
                min_interval_ms=settings.min_emit_interval_ms,
            ),
            classifier=ClassifierConfig(
                models_dir=settings.models_dir,
                model_name=settings.model_name,
                bundled_model_path=settings.bundled_model_path,
                export_dir=settings.export_dir,
                train=TrainConfig(
                    epochs=settings.train_epochs,
                    batch_size=settings.train_batch_size,
                    learning_rate=settings.learning_rate,
                    seed=settings.seed,
                ),
            ),
            min_detection_confidence=settings.min_detection_confidence,
            min_tracking_confidence=settings.min_tracking_confidence,
            model_complexity=settings.model_complexity,
        )


class SignPipeline:
    """Real-time static sign recognition pipeline.

    Usage:
        >>> pipeline = SignPipeline(PipelineConfig(), on_text=text_buffer.append)
        >>> pipeline.start()
        >>>
        >>> # In your frame loop:
        >>> result = pipeline.process_frame(bgr_frame)
        >>> if result.emitted:
        ...     print(result.emitted)
        >>>
        >>> pipeline.stop()
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        detector: HandDetector | None = None,
        classifier: ClassifierManager | None = None,
        scheduler: Scheduler | None = None,
        clock: Callable[[], int] | None = None,
        on_text: Callable[[str], None] | None = None,
        on_countdown: Callable[[int], None] | None = None,
        on_message: Callable[[str], None] | None = None,
        on_status: Callable[[str], None] | None = None,
    ) -> None:
        self._config = config or PipelineConfig()
        self._detector = detector
        self._owns_detector = detector is None
        self._clock = clock or (lambda: int(time.time() * 1000))
        self._on_text = on_text
        self._on_status = on_status

        self._normalizer = LandmarkNormalizer()
        self._stability = StabilityGate(
            self._config.stability,
            scheduler=scheduler,
            on_countdown=on_countdown,
            on_message=on_message,
        )
        self._collector = SampleCollector()
        self._classifier = classifier or ClassifierManager(self._config.classifier)
        self._emission = EmissionGate(self._config.emission)

        self._frame_lock = threading.Lock()
        self._is_running = False
        self._status = STATUS_WAITING

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def detector(self) -> HandDetector | None:
        return self._detector

    @property
    def config(self) -> PipelineConfig:
        return self._config

    @property
    def status(self) -> str:
        return self._status

    @property
    def stability(self) -> StabilityGate:
        return self._stability

    @property
    def collector(self) -> SampleCollector:
        return self._collector

    @property
    def classifier(self) -> ClassifierManager:
        return self._classifier

    @property
    def emission(self) -> EmissionGate:
        return self._emission

    # ----- Lifecycle -----

    def start(self) -> None:
        """Initialize the detector and restore a classifier if needed."""
        logger.info("Starting sign pipeline...")

        if self._detector is None:
            from core.vision.detector import MediaPipeHandDetector

            self._detector = MediaPipeHandDetector(
                max_hands=1,
                min_detection_confidence=self._config.min_detection_confidence,
                min_tracking_confidence=self._config.min_tracking_confidence,
                model_complexity=self._config.model_complexity,
            )
            self._owns_detector = True

        self._stability.stop()
        if self._config.auto_load_model and not self._classifier.is_loaded:
            self._classifier.auto_load()

        self._is_running = True
        self._set_status(STATUS_STARTED)
        logger.info(
            f"Pipeline started | Model: {self._classifier.status} | "
            f"Labels: {self._classifier.label_names}"
        )

    def stop(self) -> None:
        """Cancel pending countdowns and release the detector.

        An in-flight training run is not cancelled.
        """
        with self._frame_lock:
            self._stability.stop()
            self._collector.stop()
            if self._owns_detector and self._detector is not None:
                self._detector.close()
                self._detector = None
            self._is_running = False
        self._set_status(STATUS_STOPPED)
        logger.info("Pipeline stopped.")

    # ----- Frame handling -----

    def process_frame(self, frame: np.ndarray) -> PipelineResult:
        """Detect the hand in a BGR frame and run it through the pipeline.

        A detector failure drops the frame and is logged; the next frame is
        processed normally.

        Raises:
            RuntimeError: If pipeline is not started.
        """
        if not self._is_running or self._detector is None:
            raise RuntimeError("Pipeline not started. Call start() first.")

        try:
            hands = self._detector.detect(frame)
        except Exception as e:
            error = TransientDetectorError(f"Frame processing failed: {e}")
            logger.warning(str(error))
            return PipelineResult(
                phase=self._stability.phase,
                countdown=self._stability.countdown,
                status=self._status,
            )
        return self.handle_hands(hands)

    def handle_hands(self, hands: list[HandLandmarks]) -> PipelineResult:
        """Detector callback: advance the pipeline with one frame's hands.

        Raises:
            RuntimeError: If pipeline is not started.
        """
        if not self._is_running:
            raise RuntimeError("Pipeline not started. Call start() first.")

        with self._frame_lock:
            t_start = time.perf_counter()

            if not hands:
                phase = self._stability.hand_absent()
                self._set_status(STATUS_NO_HAND)
                return PipelineResult(
                    phase=phase,
                    status=self._status,
                    processing_time_ms=(time.perf_counter() - t_start) * 1000.0,
                )

            hand = hands[0]
            features = self._normalizer.normalize(hand)
            phase = self._stability.update(hand)

            collected = False
            if self._collector.is_collecting:
                self._collector.add(features)
                collected = True

            probs: np.ndarray | None = None
            labels: list[str] = []
            emitted: str | None = None
            if phase is StabilityPhase.READY and self._classifier.is_loaded:
                try:
                    probs, labels = self._classifier.predict(features)
                except ResourceUnavailableError:
                    probs = None
                if probs is not None:
                    emitted = self._emission.offer(probs, labels, now_ms=self._clock())
                    if emitted and self._on_text:
                        self._on_text(emitted)

            self._set_status(STATUS_HAND if self._classifier.is_loaded else STATUS_HAND_NO_MODEL)
            return PipelineResult(
                hand_present=True,
                phase=phase,
                countdown=self._stability.countdown,
                status=self._status,
                probabilities=probs,
                emitted=emitted,
                collected=collected,
                hand=hand,
                processing_time_ms=(time.perf_counter() - t_start) * 1000.0,
                label_names=labels,
            )

    # ----- Collection / training -----

    def toggle_collecting(self, label: str) -> bool:
        """Start or pause sample collection for ``label``."""
        return self._collector.toggle(label, tracking_active=self._is_running)

    def train_async(
        self,
        on_epoch_end: Callable[[int, int, dict[str, float]], None] | None = None,
    ) -> Future[TrainResult]:
        """Train a new classifier on everything collected so far."""
        return self._classifier.train_async(
            self._collector.samples,
            self._collector.labels,
            on_epoch_end=on_epoch_end,
        )

    def _set_status(self, text: str) -> None:
        if text == self._status:
            return
        self._status = text
        if self._on_status:
            self._on_status(text)

    def __enter__(self) -> SignPipeline:
        self.start()
        return self

    def __exit__(self, *args: Any) -> None:
        self.stop()
