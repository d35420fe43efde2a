"""
Unit tests for the lending rule predicates.
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from library_lending.core.exceptions import Conflict, Forbidden, InvalidArgument
from library_lending.services import guards
from tests.factories import EVIDENCE


@pytest.mark.parametrize("value", [1, 42])
def test_identifier_accepts_positive_ints(value):
    assert guards.ensure_identifier(value, "book_id") == value


@pytest.mark.parametrize("value", [0, -3, "7", 1.0, None, True])
def test_identifier_rejects_everything_else(value):
    with pytest.raises(InvalidArgument) as exc_info:
        guards.ensure_identifier(value, "book_id")
    assert exc_info.value.reason == "invalidArgument"


def test_evidence_accepts_four_images():
    assert guards.ensure_evidence(tuple(EVIDENCE)) == EVIDENCE


@pytest.mark.parametrize(
    "photos",
    [
        None,
        [],
        EVIDENCE[:3],
        EVIDENCE + EVIDENCE[:1],
        "data:image/png;base64,abcd",
        EVIDENCE[:3] + ["https://example.com/cover.png"],
        EVIDENCE[:3] + ["data:text/plain;base64,aGVsbG8="],
        EVIDENCE[:3] + ["data:image/png;base64,"],
        EVIDENCE[:3] + ["data:image/png;base64"],
        EVIDENCE[:3] + [None],
    ],
)
def test_evidence_rejections(photos):
    with pytest.raises(InvalidArgument) as exc_info:
        guards.ensure_evidence(photos)
    assert exc_info.value.reason == "invalidEvidence"


def test_blocked_user_guard():
    guards.ensure_not_blocked(SimpleNamespace(is_blocked=False))
    with pytest.raises(Forbidden) as exc_info:
        guards.ensure_not_blocked(SimpleNamespace(is_blocked=True))
    assert exc_info.value.reason == "userBlocked"


def test_owner_and_status_guards():
    record = SimpleNamespace(user_id=5, status="borrowed")
    guards.ensure_owner(record, 5)
    guards.ensure_borrowed(record)

    with pytest.raises(Forbidden):
        guards.ensure_owner(record, 6)

    record.status = "returned"
    with pytest.raises(Conflict) as exc_info:
        guards.ensure_borrowed(record)
    assert exc_info.value.reason == "alreadyReturned"


@pytest.mark.parametrize(
    "active, expected",
    [(0, True), (2, True), (3, False), (4, False)],
)
def test_borrow_capacity(active, expected):
    assert guards.has_borrow_capacity(active, 3) is expected


def _status(**overrides):
    state = dict(is_blocked=False, has_active_record=False, available_copies=1, active_count=0, limit=3)
    state.update(overrides)
    return guards.derive_borrow_status(**state)


def test_status_precedence():
    assert _status() == "canBorrow"
    assert _status(active_count=3) == "limitReached"
    assert _status(active_count=3, available_copies=0) == "unavailable"
    assert _status(active_count=3, available_copies=0, has_active_record=True) == "borrowedByUser"
    assert _status(active_count=3, available_copies=0, has_active_record=True, is_blocked=True) == "userBlocked"


@pytest.mark.parametrize(
    "current, new_total, new_available, expected",
    [
        # total raised: availability follows the delta
        ((5, 3), 7, None, (7, 5)),
        # total lowered below what is free: floor at zero
        ((5, 1), 3, None, (3, 0)),
        # explicit available wins over the delta
        ((5, 3), 6, 1, (6, 1)),
        # explicit available clamped to total minus copies on loan
        ((5, 3), None, 5, (5, 3)),
        ((5, 3), None, -2, (5, 0)),
        # nothing requested: values kept
        ((5, 3), None, None, (5, 3)),
    ],
)
def test_reconcile_copies(current, new_total, new_available, expected):
    total, available = current
    assert guards.reconcile_copies(total, available, 2, new_total, new_available) == expected


def test_reconcile_refuses_total_below_loans():
    with pytest.raises(Conflict) as exc_info:
        guards.reconcile_copies(5, 2, 3, new_total=2)
    assert exc_info.value.reason == "copiesInUse"


def test_days_overdue_handles_naive_and_aware():
    now = datetime(2024, 3, 20, 12, 0, tzinfo=timezone.utc)
    assert guards.days_overdue(datetime(2024, 3, 10, 12, 0), now) == 10
    assert guards.days_overdue(now - timedelta(days=3, hours=5), now) == 3
    assert guards.days_overdue(now + timedelta(days=1), now) == 0
