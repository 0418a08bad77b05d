"""Wall-clock access for time-gated reveal logic.

Services take a ``clock`` callable instead of calling ``datetime.now``
directly so tests can pin the current instant.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)
