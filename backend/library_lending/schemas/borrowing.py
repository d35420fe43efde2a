"""
Pydantic schemas for borrow/return requests and ledger projections.
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel

from library_lending.schemas.book import BookSummary
from library_lending.schemas.user import UserSummary

BorrowStatus = Literal["borrowedByUser", "canBorrow", "unavailable", "limitReached", "userBlocked"]


class BorrowRequest(BaseModel):
    user_id: int
    evidence_photos: list[str]


class ReturnRequest(BaseModel):
    user_id: int
    evidence_photos: list[str]


class BorrowingRecordResponse(BaseModel):
    id: int
    user_id: int
    book_id: Optional[int]
    book_code: str
    borrow_date: datetime
    due_date: datetime
    actual_return_date: Optional[datetime]
    status: str
    borrow_evidence: list[str]
    return_evidence: list[str]

    model_config = {"from_attributes": True}


class BorrowingRecordDetail(BaseModel):
    """Ledger row for listings: evidence omitted, book summary joined."""

    id: int
    user_id: int
    book_id: Optional[int]
    book_code: str
    borrow_date: datetime
    due_date: datetime
    actual_return_date: Optional[datetime]
    status: str
    book: Optional[BookSummary] = None

    model_config = {"from_attributes": True}


class OverdueRecordResponse(BorrowingRecordDetail):
    user: Optional[UserSummary] = None
    days_overdue: int


class BorrowStatusResponse(BaseModel):
    status: BorrowStatus
    active_record_id: Optional[int]
    borrow_count: int


class BorrowCountResponse(BaseModel):
    borrow_count: int
