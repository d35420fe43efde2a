"""
Read-only projections over the borrowing ledger.

Everything here is advisory. The reservation engine re-checks every rule
at mutation time because state can change between a status query and the
borrow that follows it.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from library_lending.core.config import get_settings
from library_lending.core.exceptions import NotFound
from library_lending.models.book import Book
from library_lending.models.borrowing_record import BorrowingRecord, STATUS_BORROWED, STATUS_RETURNED
from library_lending.models.user import User
from library_lending.services import guards

settings = get_settings()


@dataclass
class BorrowStatusView:
    status: str
    active_record_id: Optional[int]
    borrow_count: int


async def count_active_borrows(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(BorrowingRecord)
        .where(BorrowingRecord.user_id == user_id, BorrowingRecord.status == STATUS_BORROWED)
    )
    return result.scalar_one()


async def get_borrow_status(db: AsyncSession, book_id: int, user_id: int) -> BorrowStatusView:
    """What would happen if this user tried to borrow this book right now."""
    guards.ensure_identifier(book_id, "book_id")
    guards.ensure_identifier(user_id, "user_id")

    user = await db.get(User, user_id, populate_existing=True)
    if not user:
        raise NotFound("User not found", reason="userNotFound")
    book = await db.get(Book, book_id, populate_existing=True)
    if not book:
        raise NotFound("Book not found", reason="bookNotFound")

    active_record_id = await db.scalar(
        select(BorrowingRecord.id).where(
            BorrowingRecord.user_id == user_id,
            BorrowingRecord.book_id == book_id,
            BorrowingRecord.status == STATUS_BORROWED,
        )
    )
    borrow_count = await count_active_borrows(db, user_id)

    status = guards.derive_borrow_status(
        is_blocked=user.is_blocked,
        has_active_record=active_record_id is not None,
        available_copies=book.available_copies,
        active_count=borrow_count,
        limit=settings.MAX_BORROW_LIMIT,
    )
    return BorrowStatusView(
        status=status,
        active_record_id=active_record_id if status == guards.STATUS_BORROWED_BY_USER else None,
        borrow_count=borrow_count,
    )


async def list_active_borrows(db: AsyncSession, user_id: int) -> list[BorrowingRecord]:
    """Books the user holds now, soonest due first."""
    guards.ensure_identifier(user_id, "user_id")
    result = await db.execute(
        select(BorrowingRecord)
        .options(selectinload(BorrowingRecord.book))
        .where(BorrowingRecord.user_id == user_id, BorrowingRecord.status == STATUS_BORROWED)
        .order_by(BorrowingRecord.due_date.asc(), BorrowingRecord.id.asc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def list_borrow_history(db: AsyncSession, user_id: int) -> list[BorrowingRecord]:
    """Returned loans, most recently returned first."""
    guards.ensure_identifier(user_id, "user_id")
    result = await db.execute(
        select(BorrowingRecord)
        .options(selectinload(BorrowingRecord.book))
        .where(BorrowingRecord.user_id == user_id, BorrowingRecord.status == STATUS_RETURNED)
        .order_by(BorrowingRecord.actual_return_date.desc(), BorrowingRecord.id.desc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def list_user_records(db: AsyncSession, user_id: int) -> list[BorrowingRecord]:
    """Every record of a user, newest borrow first. Admin view."""
    guards.ensure_identifier(user_id, "user_id")
    result = await db.execute(
        select(BorrowingRecord)
        .options(selectinload(BorrowingRecord.book))
        .where(BorrowingRecord.user_id == user_id)
        .order_by(BorrowingRecord.borrow_date.desc(), BorrowingRecord.id.desc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def list_overdue_records(
    db: AsyncSession,
    now: Optional[datetime] = None,
) -> list[tuple[BorrowingRecord, int]]:
    """
    Active loans past their due date with user and book loaded, most
    overdue first. Uses the ix_borrowing_records_status_due index.
    """
    now = now or datetime.now(timezone.utc)
    result = await db.execute(
        select(BorrowingRecord)
        .options(selectinload(BorrowingRecord.book), selectinload(BorrowingRecord.user))
        .where(BorrowingRecord.status == STATUS_BORROWED, BorrowingRecord.due_date < now)
        .order_by(BorrowingRecord.due_date.asc(), BorrowingRecord.id.asc())
        .execution_options(populate_existing=True)
    )
    return [(record, guards.days_overdue(record.due_date, now)) for record in result.scalars().all()]
