"""
Guard predicates for the lending rules.

These take plain values or loaded rows and never touch the database, so
each rule can be tested on its own. The reservation engine evaluates them
at the start of every operation and the status service reuses them to
build its advisory snapshot.
"""

from datetime import datetime, timezone
from typing import Optional, Sequence

from library_lending.core.exceptions import Conflict, Forbidden, InvalidArgument
from library_lending.models.borrowing_record import STATUS_BORROWED

EVIDENCE_PHOTO_COUNT = 4
IMAGE_URI_PREFIX = "data:image/"

STATUS_USER_BLOCKED = "userBlocked"
STATUS_BORROWED_BY_USER = "borrowedByUser"
STATUS_UNAVAILABLE = "unavailable"
STATUS_LIMIT_REACHED = "limitReached"
STATUS_CAN_BORROW = "canBorrow"


def ensure_identifier(value, name: str) -> int:
    # bool is an int subclass; True must not pass as id 1
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidArgument(f"Invalid {name} format", reason="invalidArgument")
    return value


def is_image_payload(photo) -> bool:
    """A data URI whose media type is an image and whose body is non-empty."""
    if not isinstance(photo, str) or not photo.startswith(IMAGE_URI_PREFIX):
        return False
    _, sep, body = photo.partition(",")
    return bool(sep) and bool(body.strip())


def ensure_evidence(photos: Optional[Sequence[str]]) -> list[str]:
    if photos is None or isinstance(photos, (str, bytes)) or len(photos) != EVIDENCE_PHOTO_COUNT:
        raise InvalidArgument(
            f"Exactly {EVIDENCE_PHOTO_COUNT} evidence photos are required",
            reason="invalidEvidence",
        )
    if not all(is_image_payload(photo) for photo in photos):
        raise InvalidArgument("Invalid image data format", reason="invalidEvidence")
    return list(photos)


def ensure_not_blocked(user) -> None:
    if user.is_blocked:
        raise Forbidden(
            "You are blocked from borrowing books due to overdue returns. "
            "Please return overdue books to resume access.",
            reason="userBlocked",
        )


def ensure_owner(record, user_id: int) -> None:
    if record.user_id != user_id:
        raise Forbidden("You are not authorized to return this book", reason="notOwner")


def ensure_borrowed(record) -> None:
    if record.status != STATUS_BORROWED:
        raise Conflict("This book has already been returned", reason="alreadyReturned")


def has_borrow_capacity(active_count: int, limit: int) -> bool:
    return active_count < limit


def derive_borrow_status(
    *,
    is_blocked: bool,
    has_active_record: bool,
    available_copies: int,
    active_count: int,
    limit: int,
) -> str:
    if is_blocked:
        return STATUS_USER_BLOCKED
    if has_active_record:
        return STATUS_BORROWED_BY_USER
    if available_copies <= 0:
        return STATUS_UNAVAILABLE
    if not has_borrow_capacity(active_count, limit):
        return STATUS_LIMIT_REACHED
    return STATUS_CAN_BORROW


def reconcile_copies(
    current_total: int,
    current_available: int,
    active_count: int,
    new_total: Optional[int] = None,
    new_available: Optional[int] = None,
) -> tuple[int, int]:
    """
    Compute (total, available) for an admin edit.

    An explicit available count wins. Otherwise a change of total shifts
    availability by the same delta, floored at zero. The result is clamped
    so the copies on loan always fit: 0 <= available <= total - active.
    """
    total = current_total if new_total is None else new_total
    if total < active_count:
        raise Conflict(
            f"Cannot set total copies to {total}: {active_count} copies are on loan",
            reason="copiesInUse",
        )

    if new_available is not None:
        available = new_available
    elif new_total is not None:
        available = max(0, current_available + (total - current_total))
    else:
        available = current_available

    return total, max(0, min(available, total - active_count))


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def days_overdue(due_date: datetime, now: datetime) -> int:
    return max(0, (now - as_utc(due_date)).days)
