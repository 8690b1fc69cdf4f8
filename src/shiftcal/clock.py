"""Wall-clock helpers.

Expiry columns and in-memory windows use epoch milliseconds. Code reads
the time through ``now_ms`` so tests can move the clock with monkeypatch.
"""

from __future__ import annotations

import time


def now_ms() -> int:
    """Current time as integer epoch milliseconds."""
    return int(time.time() * 1000)
