"""
Catalog service: book CRUD for admins and listing for patrons.
"""

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from library_lending.core.exceptions import Conflict, NotFound
from library_lending.core.logging import get_logger
from library_lending.models.book import Book
from library_lending.models.borrowing_record import BorrowingRecord, STATUS_BORROWED
from library_lending.schemas.book import BookCreate, BookUpdate
from library_lending.services import guards

logger = get_logger(__name__)


async def _count_copies_on_loan(db: AsyncSession, book_id: int) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(BorrowingRecord)
        .where(BorrowingRecord.book_id == book_id, BorrowingRecord.status == STATUS_BORROWED)
    )
    return result.scalar_one()


async def _ensure_code_free(db: AsyncSession, book_code: str, exclude_id: int | None = None) -> None:
    query = select(Book.id).where(Book.book_code == book_code)
    if exclude_id is not None:
        query = query.where(Book.id != exclude_id)
    if await db.scalar(query) is not None:
        raise Conflict("A book with this book code already exists", reason="duplicateBookCode")


async def create_book(db: AsyncSession, book_data: BookCreate) -> Book:
    """Create a book with every copy available."""
    await _ensure_code_free(db, book_data.book_code)

    book = Book(
        title=book_data.title,
        book_code=book_data.book_code,
        author=book_data.author,
        genre=book_data.genre,
        about=book_data.about,
        image=book_data.image,
        total_copies=book_data.total_copies,
        available_copies=book_data.total_copies,
    )
    db.add(book)
    await db.flush()
    await db.refresh(book)

    logger.info("book_created", book_id=book.id, book_code=book.book_code, copies=book.total_copies)
    return book


async def get_book(db: AsyncSession, book_id: int) -> Book:
    """Get a single book by ID with its live availability."""
    guards.ensure_identifier(book_id, "book_id")
    book = await db.get(Book, book_id, populate_existing=True)

    if not book:
        raise NotFound(f"Book {book_id} not found", reason="bookNotFound")
    return book


async def list_books(
    db: AsyncSession,
    availability: str = "available",
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Book], int]:
    """
    List books sorted by title.
    `availability` is "available" (at least one free copy), "unavailable" or "all".
    """
    query = select(Book)

    if availability == "available":
        query = query.where(Book.available_copies > 0)
    elif availability == "unavailable":
        query = query.where(Book.available_copies == 0)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    books_query = (
        query
        .order_by(Book.title.asc(), Book.id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(books_query)
    books = list(result.scalars().all())

    return books, total


async def update_book(db: AsyncSession, book_id: int, book_data: BookUpdate) -> Book:
    """
    Apply an admin edit. The row is locked for the duration so a concurrent
    borrow or return cannot interleave with the copy reconciliation.
    """
    guards.ensure_identifier(book_id, "book_id")
    result = await db.execute(
        select(Book)
        .where(Book.id == book_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    book = result.scalar_one_or_none()
    if not book:
        raise NotFound(f"Book {book_id} not found", reason="bookNotFound")

    changes = book_data.model_dump(exclude_unset=True, exclude_none=True)

    new_code = changes.pop("book_code", None)
    if new_code is not None and new_code != book.book_code:
        await _ensure_code_free(db, new_code, exclude_id=book.id)
        book.book_code = new_code

    new_total = changes.pop("total_copies", None)
    new_available = changes.pop("available_copies", None)
    if new_total is not None or new_available is not None:
        on_loan = await _count_copies_on_loan(db, book.id)
        total, available = guards.reconcile_copies(
            book.total_copies,
            book.available_copies,
            on_loan,
            new_total=new_total,
            new_available=new_available,
        )
        if new_available is not None and available != new_available:
            logger.warning(
                "book_available_copies_clamped",
                book_id=book.id,
                requested=new_available,
                applied=available,
                on_loan=on_loan,
            )
        book.total_copies = total
        book.available_copies = available

    for field, value in changes.items():
        setattr(book, field, value)

    await db.flush()
    await db.refresh(book)

    logger.info(
        "book_updated",
        book_id=book.id,
        total_copies=book.total_copies,
        available_copies=book.available_copies,
    )
    return book


async def delete_book(db: AsyncSession, book_id: int) -> None:
    """Delete a book. Refused while any copy is on loan."""
    book = await get_book(db, book_id)

    if await _count_copies_on_loan(db, book.id) > 0:
        raise Conflict(
            "Cannot delete book. It is currently borrowed by one or more users.",
            reason="bookInUse",
        )

    await db.delete(book)
    await db.flush()
    logger.info("book_deleted", book_id=book_id, book_code=book.book_code)


async def list_all_books(db: AsyncSession) -> list[Book]:
    """Whole catalog sorted by title. Admin view, unpaginated."""
    result = await db.execute(
        select(Book).order_by(Book.title.asc(), Book.id.asc()).execution_options(populate_existing=True)
    )
    return list(result.scalars().all())
