"""Hand stability gate.

Decides *when* a prediction can be trusted. A freshly detected hand, or a
hand that just moved a lot, is presumed to be mid-transition into a sign:
the gate runs a short countdown and only then reports READY.

State machine:
    IDLE ──hand appears──▶ SETTLING ──countdown / safety timeout──▶ READY
      ▲                        ▲                                      │
      │                        └──────────── large motion ────────────┘
      └──────────────── hand disappears (from any phase)

Countdown ticks and the safety timeout run on a scheduler thread, so every
state mutation happens under a lock and each settling cycle carries a
generation number. A tick belonging to an abandoned cycle is ignored.
The ``on_countdown``/``on_message`` callbacks are queued under the lock and
invoked after it is released, so they may take other locks freely.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import numpy as np
from loguru import logger

from core.stability.scheduler import ThreadingScheduler
from core.types import HandLandmarks, Scheduler, StabilityPhase, TimerHandle

SETTLING_MESSAGE = "Get your hand ready..."
IDLE_MESSAGE = "Place your hand to start"


@dataclass(frozen=True, slots=True)
class StabilityConfig:
    """Configuration for the stability gate.

    Attributes:
        countdown_seconds: Whole-second ticks before predictions are allowed.
        motion_threshold: Summed absolute coordinate delta between consecutive
            frames above which the hand counts as moved.
        grace_ms: Extra slack for the safety timeout.
        tick_interval_s: Duration of one countdown tick.
    """
    countdown_seconds: int = 2
    motion_threshold: float = 0.7
    grace_ms: int = 200
    tick_interval_s: float = 1.0

    @property
    def timeout_s(self) -> float:
        return self.countdown_seconds * self.tick_interval_s + self.grace_ms / 1000.0


class StabilityGate:
    """Debounce state machine gating classifier predictions.

    Usage:
        >>> gate = StabilityGate(StabilityConfig(), on_countdown=print)
        >>> gate.update(hand.landmarks)   # per frame with a hand
        >>> gate.hand_absent()            # per frame without one
        >>> if gate.can_predict:
        ...     ...
    """

    def __init__(
        self,
        config: StabilityConfig | None = None,
        scheduler: Scheduler | None = None,
        on_countdown: Callable[[int], None] | None = None,
        on_message: Callable[[str], None] | None = None,
    ) -> None:
        self._config = config or StabilityConfig()
        self._scheduler = scheduler or ThreadingScheduler()
        self._on_countdown = on_countdown
        self._on_message = on_message

        self._lock = threading.RLock()
        self._phase = StabilityPhase.IDLE
        self._countdown = 0
        self._message: str | None = None
        self._last_landmarks: np.ndarray | None = None
        self._generation = 0
        self._tick_handle: TimerHandle | None = None
        self._timeout_handle: TimerHandle | None = None
        # Callback notifications queued under the lock, fired after release
        self._pending: list[tuple[Callable[[Any], None], Any]] = []

    @property
    def config(self) -> StabilityConfig:
        return self._config

    @property
    def phase(self) -> StabilityPhase:
        with self._lock:
            return self._phase

    @property
    def countdown(self) -> int:
        with self._lock:
            return self._countdown

    @property
    def message(self) -> str:
        with self._lock:
            return self._message or ""

    @property
    def can_predict(self) -> bool:
        return self.phase is StabilityPhase.READY

    @property
    def has_pending_timers(self) -> bool:
        with self._lock:
            return self._tick_handle is not None or self._timeout_handle is not None

    # ----- Frame-driven transitions -----

    def update(self, landmarks: HandLandmarks | np.ndarray) -> StabilityPhase:
        """Advance the gate for a frame in which a hand is present.

        Args:
            landmarks: The hand's raw landmarks.

        Returns:
            Phase after the update.
        """
        lm = landmarks.landmarks if isinstance(landmarks, HandLandmarks) else landmarks
        with self._lock:
            if self._phase is StabilityPhase.IDLE:
                logger.debug("Hand appeared, starting settle countdown")
                self.has_moved(lm)
                self._start_settling()
            elif self.has_moved(lm):
                logger.debug("Large hand motion, restarting settle countdown")
                self._start_settling()
            phase = self._phase
        self._flush_notifications()
        return phase

    def hand_absent(self) -> StabilityPhase:
        """Reset to IDLE for a frame with no hand."""
        with self._lock:
            if self._phase is not StabilityPhase.IDLE:
                logger.debug("Hand lost, resetting stability state")
            self._reset()
            self._set_message(IDLE_MESSAGE)
            phase = self._phase
        self._flush_notifications()
        return phase

    def stop(self) -> None:
        """Cancel outstanding timers and return to IDLE without prompting."""
        with self._lock:
            self._reset()
            self._set_message("")
        self._flush_notifications()

    def has_moved(self, landmarks: np.ndarray) -> bool:
        """Compare against the previous snapshot and store the new one.

        The first frame after a reset only stores the snapshot and never
        counts as motion.
        """
        current = np.array(landmarks, dtype=np.float64, copy=True)
        with self._lock:
            previous = self._last_landmarks
            self._last_landmarks = current
        if previous is None:
            return False
        total = float(np.abs(current - previous).sum())
        return total > self._config.motion_threshold

    # ----- Timer-driven transitions -----

    def _start_settling(self) -> None:
        self._cancel_timers()
        self._generation += 1
        generation = self._generation

        self._phase = StabilityPhase.SETTLING
        self._set_message(SETTLING_MESSAGE)
        self._set_countdown(self._config.countdown_seconds)

        if self._config.countdown_seconds <= 0:
            self._enter_ready()
            return

        self._schedule_tick(generation)
        self._timeout_handle = self._scheduler.call_later(
            self._config.timeout_s,
            lambda: self._on_timeout(generation),
        )

    def _schedule_tick(self, generation: int) -> None:
        self._tick_handle = self._scheduler.call_later(
            self._config.tick_interval_s,
            lambda: self._on_tick(generation),
        )

    def _on_tick(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._phase is not StabilityPhase.SETTLING:
                return
            self._tick_handle = None
            if self._countdown <= 1:
                self._enter_ready()
            else:
                self._set_countdown(self._countdown - 1)
                self._schedule_tick(generation)
        self._flush_notifications()

    def _on_timeout(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._phase is not StabilityPhase.SETTLING:
                return
            self._timeout_handle = None
            logger.debug("Settle safety timeout reached, forcing READY")
            self._enter_ready()
        self._flush_notifications()

    def _enter_ready(self) -> None:
        self._cancel_timers()
        self._phase = StabilityPhase.READY
        self._set_countdown(0)
        self._set_message("")

    # ----- Helpers -----

    def _reset(self) -> None:
        self._cancel_timers()
        self._generation += 1
        self._phase = StabilityPhase.IDLE
        self._last_landmarks = None
        self._set_countdown(0)

    def _cancel_timers(self) -> None:
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None

    def _set_countdown(self, value: int) -> None:
        changed = value != self._countdown or self._phase is StabilityPhase.SETTLING
        self._countdown = value
        if changed and self._on_countdown:
            self._pending.append((self._on_countdown, value))

    def _set_message(self, text: str) -> None:
        if text == self._message:
            return
        self._message = text
        if self._on_message:
            self._pending.append((self._on_message, text))

    def _flush_notifications(self) -> None:
        with self._lock:
            pending, self._pending = self._pending, []
        for callback, value in pending:
            callback(value)
