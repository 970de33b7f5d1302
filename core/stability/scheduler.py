"""Timer backend for the stability countdown.

The gate only needs "run this once after N seconds, unless cancelled".
Production uses ``threading.Timer``; tests inject a virtual-time scheduler.
"""

from __future__ import annotations

import threading
from collections.abc import Callable


class ThreadingScheduler:
    """Runs callbacks on daemon ``threading.Timer`` threads."""

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay_s, callback)
        timer.daemon = True
        timer.start()
        return timer
