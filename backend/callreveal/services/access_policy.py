"""Who may see the reveal, and when.

Pure functions over (is_revealed, opening_date, is_admin, now). The
opening date is stored as a venue-local string without a zone; it is
always read at a fixed UTC offset (UTC-6 by default, no DST) regardless
of the host's timezone.
"""

from __future__ import annotations

import enum
from datetime import datetime, timedelta, timezone

DEFAULT_OFFSET_MINUTES = -360


class AccessState(str, enum.Enum):
    HIDDEN = "hidden"  # nothing gated is decrypted
    MASKED = "masked"  # admin pre-reveal view: data exists, still not shown
    OPEN = "open"  # everything decrypted


def resolve_opening_instant(
    opening_date: str | None, offset_minutes: int = DEFAULT_OFFSET_MINUTES
) -> datetime | None:
    """Turn a venue-local opening date string into an aware UTC instant.

    Accepts ISO dates with or without a time ("2026-03-15T10:00",
    "2026-03-15 10:00:00", "2026-03-15"). Any zone carried by the string is
    discarded: the stored value is venue-local by contract. Blank or None
    returns None. Raises ValueError if the string cannot be parsed.
    """
    if opening_date is None or not opening_date.strip():
        return None
    local = datetime.fromisoformat(opening_date.strip())
    venue = timezone(timedelta(minutes=offset_minutes))
    return local.replace(tzinfo=venue).astimezone(timezone.utc)


def is_opening_expired(
    opening_date: str | None,
    now: datetime,
    offset_minutes: int = DEFAULT_OFFSET_MINUTES,
) -> bool:
    """True when no opening date is set or ``now`` has reached it."""
    instant = resolve_opening_instant(opening_date, offset_minutes)
    if instant is None:
        return True
    return now >= instant


def evaluate_access(
    is_revealed: bool,
    opening_date: str | None,
    is_admin: bool,
    now: datetime,
    offset_minutes: int = DEFAULT_OFFSET_MINUTES,
) -> AccessState:
    """Read policy: HIDDEN or OPEN.

    Not revealed is HIDDEN for everyone. Revealed is OPEN for everyone once
    the opening date has passed (or none is set), and OPEN only for admins
    before that.
    """
    if not is_revealed:
        return AccessState.HIDDEN
    if is_opening_expired(opening_date, now, offset_minutes) or is_admin:
        return AccessState.OPEN
    return AccessState.HIDDEN


def projection_state(
    is_revealed: bool,
    opening_date: str | None,
    is_admin: bool,
    now: datetime,
    offset_minutes: int = DEFAULT_OFFSET_MINUTES,
) -> AccessState:
    """Like evaluate_access, but an admin who would see HIDDEN gets MASKED."""
    state = evaluate_access(is_revealed, opening_date, is_admin, now, offset_minutes)
    if state is AccessState.HIDDEN and is_admin:
        return AccessState.MASKED
    return state


def can_toggle_reveal(
    is_revealed: bool,
    opening_date: str | None,
    now: datetime,
    offset_minutes: int = DEFAULT_OFFSET_MINUTES,
) -> bool:
    """Mutation guard for the reveal flag.

    Re-hiding is always allowed; revealing waits for the opening date.
    """
    if is_revealed:
        return True
    return is_opening_expired(opening_date, now, offset_minutes)
