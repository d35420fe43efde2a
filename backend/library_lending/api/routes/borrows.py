"""
Borrow and return endpoints, plus the read-only ledger projections
patrons use before and after a checkout.
"""

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from library_lending.db.session import get_db
from library_lending.schemas.borrowing import (
    BorrowRequest,
    ReturnRequest,
    BorrowingRecordResponse,
    BorrowingRecordDetail,
    BorrowStatusResponse,
    BorrowCountResponse,
)
from library_lending.services.reservation_service import borrow_book, return_book
from library_lending.services.status_service import (
    count_active_borrows,
    get_borrow_status,
    list_active_borrows,
    list_borrow_history,
)
from library_lending.services import guards
from library_lending.services.cache_service import invalidate_book_cache

router = APIRouter(prefix="/borrows", tags=["Borrows"])


@router.get("/status/{book_id}/{user_id}", response_model=BorrowStatusResponse)
async def borrow_status(
    book_id: int = Path(..., gt=0),
    user_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
):
    """
    Advisory snapshot of whether the user could borrow the book right now.
    The borrow endpoint re-checks everything.
    """
    view = await get_borrow_status(db, book_id, user_id)
    return BorrowStatusResponse(
        status=view.status,
        active_record_id=view.active_record_id,
        borrow_count=view.borrow_count,
    )


@router.post("/{book_id}", response_model=BorrowingRecordResponse, status_code=status.HTTP_201_CREATED)
async def borrow_endpoint(
    borrow_data: BorrowRequest,
    book_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
):
    """
    Borrow one copy of a book with 4 condition photos.

    The copy is reserved with a conditional decrement, then confirmed
    against the user's borrow limit; a failed confirmation gives the copy
    back before the error is returned.
    """
    record = await borrow_book(db, book_id, borrow_data.user_id, borrow_data.evidence_photos)
    await invalidate_book_cache()
    return record


@router.post("/return/{record_id}", response_model=BorrowingRecordResponse)
async def return_endpoint(
    return_data: ReturnRequest,
    record_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
):
    """Return a borrowed copy with 4 condition photos."""
    record = await return_book(db, record_id, return_data.user_id, return_data.evidence_photos)
    await invalidate_book_cache()
    return record


@router.get("/user/{user_id}/active", response_model=list[BorrowingRecordDetail])
async def active_borrows(
    user_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
):
    """Books the user currently holds, soonest due first."""
    return await list_active_borrows(db, user_id)


@router.get("/user/{user_id}/history", response_model=list[BorrowingRecordDetail])
async def borrow_history(
    user_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
):
    """Returned loans, most recent return first."""
    return await list_borrow_history(db, user_id)


@router.get("/user/{user_id}/count", response_model=BorrowCountResponse)
async def borrow_count(
    user_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
):
    guards.ensure_identifier(user_id, "user_id")
    return BorrowCountResponse(borrow_count=await count_active_borrows(db, user_id))
