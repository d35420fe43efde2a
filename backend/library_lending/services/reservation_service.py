"""
Reservation engine: borrow and return with invariant-preserving writes.

CONCURRENCY STRATEGY: Conditional Decrement, then Confirm or Compensate
=======================================================================

Problem:
  Two patrons ask for the last copy at once. Both read available_copies=1,
  both decrement, both leave with a book. Result: over-allocation.
  Same shape per user: a patron holding 2 loans fires two borrows for
  different books, both count 2, both insert, the patron ends up with 4.

Solution:
  A borrow is two short transactions around an explicit Reservation.

  1. Reserve
     UPDATE books SET available_copies = available_copies - 1
     WHERE id = :book_id AND available_copies > 0
     The row lock of this UPDATE is the serialization point for capacity.
     Once copies run out the next caller matches zero rows, whichever
     request happened to commit first. Commit -> RESERVED.

  2. Confirm
     UPDATE users SET version = version + 1
     WHERE id = :user_id AND is_blocked = false
     The user's row stays locked until commit, so confirmations for one
     user run one after another and each one counts the others' records.
     At the limit -> reject. Otherwise INSERT the record; the partial
     unique index (user_id, book_id) WHERE status = 'borrowed' rejects a
     second active loan of the same book. Commit -> CONFIRMED.

  3. Compensate
     Any failure in step 2 (rule violation, store error, cancellation)
     rolls it back and gives the copy back in a transaction of its own,
     retried with exponential backoff. -> COMPENSATED.
     When every attempt fails the copy stays taken: logged as critical
     and surfaced as Internal(compensationFailed). -> COMPENSATION_FAILED.

  The limit is checked after the copy is reserved, never before: a check
  ahead of the reservation lets two requests pass it together.

  Returns flip the record with a conditional UPDATE (status = 'borrowed')
  and increment the book in the same transaction, so a repeated return is
  rejected instead of releasing a second copy.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from library_lending.core.config import get_settings
from library_lending.core.exceptions import Conflict, Forbidden, Internal, LibraryError, NotFound
from library_lending.core.logging import get_logger
from library_lending.core.metrics import (
    operation_latency,
    record_borrow_attempt,
    record_compensation,
    record_integrity_warning,
    record_return_attempt,
)
from library_lending.models.book import Book
from library_lending.models.borrowing_record import BorrowingRecord, STATUS_BORROWED, STATUS_RETURNED
from library_lending.models.user import User
from library_lending.services import guards
from library_lending.services.status_service import count_active_borrows

logger = get_logger(__name__)
settings = get_settings()


class ReservationState(str, Enum):
    RESERVED = "reserved"
    CONFIRMED = "confirmed"
    COMPENSATED = "compensated"
    COMPENSATION_FAILED = "compensation_failed"


@dataclass
class Reservation:
    """One copy taken out of a book's availability on behalf of a user."""

    book_id: int
    user_id: int
    book_code: str
    state: ReservationState = ReservationState.RESERVED
    record_id: Optional[int] = None

    def confirm(self, record_id: int) -> None:
        self._leave_reserved(ReservationState.CONFIRMED)
        self.record_id = record_id

    def compensate(self) -> None:
        self._leave_reserved(ReservationState.COMPENSATED)

    def fail_compensation(self) -> None:
        self._leave_reserved(ReservationState.COMPENSATION_FAILED)

    def _leave_reserved(self, new_state: ReservationState) -> None:
        if self.state is not ReservationState.RESERVED:
            raise RuntimeError(f"Reservation is already {self.state.value}")
        self.state = new_state


async def borrow_book(
    db: AsyncSession,
    book_id: int,
    user_id: int,
    evidence_photos: Sequence[str],
) -> BorrowingRecord:
    """
    Borrow one copy of a book.
    Returns the new `borrowed` record, due LOAN_PERIOD_DAYS from now.
    """
    started = time.perf_counter()
    try:
        record = await _borrow(db, book_id, user_id, evidence_photos)
    except LibraryError as exc:
        record_borrow_attempt(exc.reason)
        raise
    except SQLAlchemyError:
        record_borrow_attempt("internal")
        raise
    finally:
        operation_latency.labels(operation="borrow").observe(time.perf_counter() - started)

    record_borrow_attempt("success")
    return record


async def _borrow(
    db: AsyncSession,
    book_id: int,
    user_id: int,
    evidence_photos: Sequence[str],
) -> BorrowingRecord:
    guards.ensure_identifier(book_id, "book_id")
    guards.ensure_identifier(user_id, "user_id")
    photos = guards.ensure_evidence(evidence_photos)

    user = await db.get(User, user_id, populate_existing=True)
    if not user:
        raise NotFound("User not found", reason="userNotFound")
    guards.ensure_not_blocked(user)

    reservation = await reserve_copy(db, book_id, user_id)

    try:
        record = await confirm_reservation(db, reservation, photos)
    except BaseException as exc:
        logger.info(
            "borrow_rejected",
            reason=getattr(exc, "reason", type(exc).__name__),
            book_id=book_id,
            user_id=user_id,
        )
        released, interrupted = await _release_to_completion(db, reservation)
        if interrupted:
            raise asyncio.CancelledError() from exc
        if not released and not isinstance(exc, asyncio.CancelledError):
            raise Internal(
                "Borrow failed and the reserved copy could not be released",
                reason="compensationFailed",
            ) from exc
        raise

    return record


async def reserve_copy(db: AsyncSession, book_id: int, user_id: int) -> Reservation:
    """Take one copy out of availability and commit. Step 1 of a borrow."""
    result = await db.execute(
        update(Book)
        .where(Book.id == book_id, Book.available_copies > 0)
        .values(available_copies=Book.available_copies - 1)
        .returning(Book.book_code)
    )
    book_code = result.scalar_one_or_none()

    if book_code is None:
        await db.rollback()
        exists = await db.scalar(select(Book.id).where(Book.id == book_id))
        if exists is None:
            raise NotFound(f"Book {book_id} not found", reason="bookNotFound")
        logger.info("borrow_rejected", reason="unavailable", book_id=book_id, user_id=user_id)
        raise Conflict("Book is currently unavailable for borrowing", reason="unavailable")

    await db.commit()
    logger.info("copy_reserved", book_id=book_id, user_id=user_id, book_code=book_code)
    return Reservation(book_id=book_id, user_id=user_id, book_code=book_code)


async def confirm_reservation(
    db: AsyncSession,
    reservation: Reservation,
    photos: list[str],
) -> BorrowingRecord:
    """Turn a reserved copy into a ledger record and commit. Step 2 of a borrow."""
    locked = await db.execute(
        update(User)
        .where(User.id == reservation.user_id, User.is_blocked.is_(False))
        .values(version=User.version + 1)
        .execution_options(synchronize_session=False)
    )
    if locked.rowcount == 0:
        raise Forbidden("You are blocked from borrowing books", reason="userBlocked")

    active = await count_active_borrows(db, reservation.user_id)
    if not guards.has_borrow_capacity(active, settings.MAX_BORROW_LIMIT):
        raise Conflict(
            f"Borrow limit of {settings.MAX_BORROW_LIMIT} books reached",
            reason="limitReached",
        )

    borrow_date = datetime.now(timezone.utc)
    record = BorrowingRecord(
        user_id=reservation.user_id,
        book_id=reservation.book_id,
        book_code=reservation.book_code,
        borrow_date=borrow_date,
        due_date=borrow_date + timedelta(days=settings.LOAN_PERIOD_DAYS),
        status=STATUS_BORROWED,
        borrow_evidence=photos,
        return_evidence=[],
    )
    db.add(record)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        if await _has_active_record(db, reservation.user_id, reservation.book_id):
            raise Conflict("You have already borrowed this book", reason="alreadyBorrowed") from exc
        if await db.scalar(select(Book.id).where(Book.id == reservation.book_id)) is None:
            # Deleted by an admin while the copy was reserved
            raise NotFound(f"Book {reservation.book_id} not found", reason="bookNotFound") from exc
        raise

    await db.refresh(record)
    await db.commit()
    reservation.confirm(record.id)

    logger.info(
        "borrow_created",
        record_id=record.id,
        user_id=record.user_id,
        book_id=record.book_id,
        due_date=record.due_date.isoformat(),
        active_borrows=active + 1,
    )
    return record


async def _has_active_record(db: AsyncSession, user_id: int, book_id: int) -> bool:
    record_id = await db.scalar(
        select(BorrowingRecord.id).where(
            BorrowingRecord.user_id == user_id,
            BorrowingRecord.book_id == book_id,
            BorrowingRecord.status == STATUS_BORROWED,
        )
    )
    return record_id is not None


async def _release_to_completion(db: AsyncSession, reservation: Reservation) -> tuple[bool, bool]:
    """
    Run compensation to the end even if the caller is cancelled meanwhile.
    Returns (released, interrupted); the caller keeps its session open until
    compensation has finished with it.
    """
    task = asyncio.ensure_future(release_reservation(db, reservation))
    interrupted = False
    while True:
        try:
            return await asyncio.shield(task), interrupted
        except asyncio.CancelledError:
            if task.done():
                raise
            interrupted = True


async def release_reservation(db: AsyncSession, reservation: Reservation) -> bool:
    """
    Give a reserved copy back after confirmation failed.
    Retries store errors with exponential backoff; returns False when every
    attempt failed and the copy is still out of availability.
    """
    max_attempts = settings.COMPENSATION_MAX_ATTEMPTS

    for attempt in range(1, max_attempts + 1):
        try:
            await db.rollback()
            restored = await _restore_copy(db, reservation.book_id)
            await db.commit()
        except SQLAlchemyError as exc:
            record_compensation("retry")
            logger.warning(
                "compensation_retry",
                book_id=reservation.book_id,
                user_id=reservation.user_id,
                attempt=attempt,
                error=str(exc),
            )
            if attempt < max_attempts:
                await asyncio.sleep(settings.COMPENSATION_BACKOFF_SECONDS * 2 ** (attempt - 1))
            continue

        if not restored:
            # Book deleted or re-counted by an admin in between; nothing to give back
            record_integrity_warning("compensation_skipped")
            logger.warning("compensation_skipped", book_id=reservation.book_id)

        reservation.compensate()
        record_compensation("applied")
        logger.info(
            "compensation_applied",
            book_id=reservation.book_id,
            user_id=reservation.user_id,
            attempt=attempt,
        )
        return True

    reservation.fail_compensation()
    record_compensation("failed")
    logger.critical(
        "compensation_failed",
        book_id=reservation.book_id,
        user_id=reservation.user_id,
        attempts=max_attempts,
    )
    return False


async def _restore_copy(db: AsyncSession, book_id: int) -> bool:
    result = await db.execute(
        update(Book)
        .where(Book.id == book_id, Book.available_copies < Book.total_copies)
        .values(available_copies=Book.available_copies + 1)
    )
    return result.rowcount > 0


async def return_book(
    db: AsyncSession,
    record_id: int,
    user_id: int,
    evidence_photos: Sequence[str],
) -> BorrowingRecord:
    """Return a borrowed copy and put it back into availability."""
    started = time.perf_counter()
    try:
        record = await _return(db, record_id, user_id, evidence_photos)
    except LibraryError as exc:
        record_return_attempt(exc.reason)
        raise
    except SQLAlchemyError:
        record_return_attempt("internal")
        raise
    finally:
        operation_latency.labels(operation="return").observe(time.perf_counter() - started)

    record_return_attempt("success")
    return record


async def _return(
    db: AsyncSession,
    record_id: int,
    user_id: int,
    evidence_photos: Sequence[str],
) -> BorrowingRecord:
    guards.ensure_identifier(record_id, "record_id")
    guards.ensure_identifier(user_id, "user_id")
    photos = guards.ensure_evidence(evidence_photos)

    record = await db.get(BorrowingRecord, record_id, populate_existing=True)
    if not record:
        raise NotFound("Borrowing record not found", reason="recordNotFound")
    guards.ensure_owner(record, user_id)
    guards.ensure_borrowed(record)

    flipped = await db.execute(
        update(BorrowingRecord)
        .where(BorrowingRecord.id == record_id, BorrowingRecord.status == STATUS_BORROWED)
        .values(
            status=STATUS_RETURNED,
            actual_return_date=datetime.now(timezone.utc),
            return_evidence=photos,
        )
    )
    if flipped.rowcount == 0:
        # Another return of the same record committed first
        await db.rollback()
        raise Conflict("This book has already been returned", reason="alreadyReturned")

    restored = record.book_id is not None and await _restore_copy(db, record.book_id)
    if not restored:
        missing = record.book_id is None or (
            await db.scalar(select(Book.id).where(Book.id == record.book_id)) is None
        )
        kind = "book_missing" if missing else "book_at_capacity"
        record_integrity_warning(kind)
        logger.warning(
            "return_integrity_warning",
            kind=kind,
            record_id=record_id,
            book_id=record.book_id,
            book_code=record.book_code,
        )

    await db.commit()
    await db.refresh(record)

    logger.info(
        "book_returned",
        record_id=record.id,
        user_id=user_id,
        book_id=record.book_id,
        copy_restored=restored,
    )
    return record
