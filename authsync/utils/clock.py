from __future__ import annotations

import time
from typing import Callable

Clock = Callable[[], int]


def now() -> int:
    """Seconds elapsed since the Unix epoch, truncated."""
    return int(time.time())
