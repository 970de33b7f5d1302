"""Tests for core.text_buffer."""

from __future__ import annotations

from core.text_buffer import TextBuffer


class TestTextBuffer:
    def test_append(self) -> None:
        buffer = TextBuffer()
        buffer.append("O")
        buffer("I")
        assert buffer.text == "OI"

    def test_backspace(self) -> None:
        buffer = TextBuffer()
        buffer.append("A")
        buffer.append("B")
        assert buffer.backspace() == "A"
        assert buffer.backspace() == ""
        assert buffer.backspace() == ""

    def test_clear(self) -> None:
        buffer = TextBuffer()
        buffer.append("A")
        buffer.clear()
        assert buffer.text == ""

    def test_subscribers(self) -> None:
        buffer = TextBuffer()
        seen: list[str] = []
        unsubscribe = buffer.subscribe(seen.append)
        buffer.append("A")
        buffer.backspace()
        unsubscribe()
        buffer.append("B")
        assert seen == ["A", ""]

    def test_failing_subscriber_does_not_break_others(self) -> None:
        buffer = TextBuffer()
        seen: list[str] = []

        def broken(text: str) -> None:
            raise RuntimeError("gone")

        buffer.subscribe(broken)
        buffer.subscribe(seen.append)
        buffer.append("A")
        assert seen == ["A"]
        assert buffer.text == "A"
