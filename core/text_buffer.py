"""Accumulated recognized text.

Emitted letters are appended here; the user can delete the last character
or clear everything. Subscribers (viewer windows, WebSocket clients) get
the full text after each change.
"""

from __future__ import annotations

import threading
from collections.abc import Callable

from loguru import logger


class TextBuffer:
    """Append-only text with backspace/clear and change notification."""

    def __init__(self) -> None:
        self._text = ""
        self._lock = threading.Lock()
        self._subscribers: list[Callable[[str], None]] = []

    @property
    def text(self) -> str:
        with self._lock:
            return self._text

    def append(self, label: str) -> str:
        with self._lock:
            self._text += label
            text = self._text
        self._notify(text)
        return text

    __call__ = append

    def backspace(self) -> str:
        with self._lock:
            self._text = self._text[:-1]
            text = self._text
        self._notify(text)
        return text

    def clear(self) -> None:
        with self._lock:
            self._text = ""
        self._notify("")

    def subscribe(self, callback: Callable[[str], None]) -> Callable[[], None]:
        """Register a change listener; returns an unsubscribe function."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, text: str) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(text)
            except Exception as e:
                logger.warning(f"Text subscriber failed: {e}")
