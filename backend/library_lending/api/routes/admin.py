"""
Admin endpoints: catalog management, user blocking, overdue review.
Every route requires an admin account (see `require_admin`).
"""

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from library_lending.api.deps import require_admin
from library_lending.db.session import get_db
from library_lending.schemas.book import BookCreate, BookUpdate, BookResponse
from library_lending.schemas.borrowing import (
    BorrowingRecordDetail,
    OverdueRecordResponse,
)
from library_lending.schemas.user import UserResponse, UserBlockResponse, UserSummary
from library_lending.services.catalog_service import create_book, update_book, delete_book, list_all_books
from library_lending.services.user_service import list_users, set_user_blocked
from library_lending.services.status_service import list_user_records, list_overdue_records
from library_lending.services.cache_service import invalidate_book_cache

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


@router.get("/books", response_model=list[BookResponse])
async def list_catalog(db: AsyncSession = Depends(get_db)):
    """Every book in the catalog, available or not, sorted by title."""
    return await list_all_books(db)


@router.post("/books", response_model=BookResponse, status_code=status.HTTP_201_CREATED)
async def create_book_endpoint(book_data: BookCreate, db: AsyncSession = Depends(get_db)):
    book = await create_book(db, book_data)
    await invalidate_book_cache()
    return book


@router.put("/books/{book_id}", response_model=BookResponse)
async def update_book_endpoint(
    book_data: BookUpdate,
    book_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
):
    """Edit a book. Copy counts are reconciled with the copies on loan."""
    book = await update_book(db, book_id, book_data)
    await invalidate_book_cache()
    return book


@router.delete("/books/{book_id}")
async def delete_book_endpoint(
    book_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
):
    await delete_book(db, book_id)
    await invalidate_book_cache()
    return {"message": "Book deleted successfully", "book_id": book_id}


@router.get("/users", response_model=list[UserResponse])
async def list_users_endpoint(db: AsyncSession = Depends(get_db)):
    return await list_users(db)


@router.post("/users/{user_id}/block", response_model=UserBlockResponse)
async def block_user(
    user_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
):
    user = await set_user_blocked(db, user_id, True)
    return UserBlockResponse(message="User blocked successfully", user=UserResponse.model_validate(user))


@router.post("/users/{user_id}/unblock", response_model=UserBlockResponse)
async def unblock_user(
    user_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
):
    user = await set_user_blocked(db, user_id, False)
    return UserBlockResponse(message="User unblocked successfully", user=UserResponse.model_validate(user))


@router.get("/users/{user_id}/borrows", response_model=list[BorrowingRecordDetail])
async def user_borrow_records(
    user_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
):
    """All borrowing records of one user, newest first."""
    return await list_user_records(db, user_id)


@router.get("/overdue", response_model=list[OverdueRecordResponse])
async def overdue_records(db: AsyncSession = Depends(get_db)):
    """Active loans past their due date, joined with user and book, most overdue first."""
    overdue = await list_overdue_records(db)
    return [
        OverdueRecordResponse(
            **BorrowingRecordDetail.model_validate(record).model_dump(),
            user=UserSummary.model_validate(record.user) if record.user else None,
            days_overdue=days,
        )
        for record, days in overdue
    ]
