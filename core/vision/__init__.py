"""Vision module — MediaPipe hand detection."""

from core.vision.detector import MediaPipeHandDetector

__all__ = ["MediaPipeHandDetector"]
