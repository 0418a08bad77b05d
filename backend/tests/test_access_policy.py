"""Tests for the reveal access policy."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from callreveal.services.access_policy import (
    AccessState,
    can_toggle_reveal,
    evaluate_access,
    is_opening_expired,
    projection_state,
    resolve_opening_instant,
)

OPENING = "2025-06-01T18:00"
BEFORE = datetime(2025, 6, 1, 23, 59, tzinfo=timezone.utc)
AT = datetime(2025, 6, 2, 0, 0, tzinfo=timezone.utc)
AFTER = datetime(2025, 6, 2, 0, 1, tzinfo=timezone.utc)


class TestResolveOpeningInstant:
    def test_read_at_fixed_utc_minus_six(self) -> None:
        assert resolve_opening_instant(OPENING) == AT

    def test_custom_offset(self) -> None:
        assert resolve_opening_instant(OPENING, offset_minutes=0) == datetime(
            2025, 6, 1, 18, 0, tzinfo=timezone.utc
        )

    def test_date_only(self) -> None:
        assert resolve_opening_instant("2025-06-01") == datetime(
            2025, 6, 1, 6, 0, tzinfo=timezone.utc
        )

    def test_embedded_zone_is_ignored(self) -> None:
        assert resolve_opening_instant("2025-06-01T18:00+02:00") == AT

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_blank_is_none(self, value: str | None) -> None:
        assert resolve_opening_instant(value) is None

    def test_garbage_raises(self) -> None:
        with pytest.raises(ValueError):
            resolve_opening_instant("next tuesday")


class TestIsOpeningExpired:
    def test_no_date_counts_as_expired(self) -> None:
        assert is_opening_expired("", BEFORE) is True

    def test_boundary_is_inclusive(self) -> None:
        assert is_opening_expired(OPENING, BEFORE) is False
        assert is_opening_expired(OPENING, AT) is True


class TestEvaluateAccess:
    @pytest.mark.parametrize("is_admin", [False, True])
    @pytest.mark.parametrize("now", [BEFORE, AFTER])
    def test_not_revealed_is_hidden_for_everyone(self, is_admin: bool, now: datetime) -> None:
        assert evaluate_access(False, OPENING, is_admin, now) is AccessState.HIDDEN

    @pytest.mark.parametrize("is_admin", [False, True])
    def test_revealed_and_expired_is_open(self, is_admin: bool) -> None:
        assert evaluate_access(True, OPENING, is_admin, AFTER) is AccessState.OPEN

    def test_revealed_without_date_is_open(self) -> None:
        assert evaluate_access(True, None, False, BEFORE) is AccessState.OPEN

    def test_revealed_early_is_open_only_for_admin(self) -> None:
        assert evaluate_access(True, OPENING, True, BEFORE) is AccessState.OPEN
        assert evaluate_access(True, OPENING, False, BEFORE) is AccessState.HIDDEN

    def test_policy_never_returns_masked(self) -> None:
        states = {
            evaluate_access(r, d, a, n)
            for r in (False, True)
            for d in (None, OPENING)
            for a in (False, True)
            for n in (BEFORE, AFTER)
        }
        assert AccessState.MASKED not in states


class TestProjectionState:
    def test_admin_sees_masked_before_reveal(self) -> None:
        assert projection_state(False, OPENING, True, AFTER) is AccessState.MASKED

    def test_guest_sees_hidden_before_reveal(self) -> None:
        assert projection_state(False, OPENING, False, AFTER) is AccessState.HIDDEN

    def test_open_unchanged(self) -> None:
        assert projection_state(True, OPENING, False, AFTER) is AccessState.OPEN


class TestCanToggleReveal:
    def test_reveal_blocked_before_opening(self) -> None:
        assert can_toggle_reveal(False, OPENING, BEFORE) is False

    def test_reveal_allowed_at_opening(self) -> None:
        assert can_toggle_reveal(False, OPENING, AT) is True

    def test_rehide_always_allowed(self) -> None:
        assert can_toggle_reveal(True, OPENING, BEFORE) is True

    def test_reveal_allowed_without_date(self) -> None:
        assert can_toggle_reveal(False, "", BEFORE) is True
