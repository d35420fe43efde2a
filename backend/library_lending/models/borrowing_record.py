"""
BorrowingRecord model: one row per copy checked out by a user.

Key design decisions:
- Partial unique index on (user_id, book_id) WHERE status = 'borrowed'
  lets the store reject a second active loan of the same book, while
  returned history for the pair is unlimited
- `book_code` is copied from the book at borrow time so records stay
  readable after catalog edits or deletion
- Evidence photos are stored inline as JSON arrays of data URIs
"""

from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, JSON, Index, CheckConstraint, text,
)
from sqlalchemy.orm import relationship

from library_lending.db.base import Base, TimestampMixin

STATUS_BORROWED = "borrowed"
STATUS_RETURNED = "returned"

ACTIVE_ONLY = text("status = 'borrowed'")


class BorrowingRecord(Base, TimestampMixin):
    __tablename__ = "borrowing_records"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    book_id = Column(Integer, ForeignKey("books.id", ondelete="SET NULL"), nullable=True, index=True)
    book_code = Column(String(64), nullable=False)
    borrow_date = Column(DateTime(timezone=True), nullable=False)
    due_date = Column(DateTime(timezone=True), nullable=False)
    actual_return_date = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(20), nullable=False, default=STATUS_BORROWED)
    borrow_evidence = Column(JSON, nullable=False)
    return_evidence = Column(JSON, nullable=False, default=list)

    user = relationship("User")
    book = relationship("Book")

    __table_args__ = (
        Index(
            "uq_active_borrow_per_user_book",
            "user_id",
            "book_id",
            unique=True,
            postgresql_where=ACTIVE_ONLY,
            sqlite_where=ACTIVE_ONLY,
        ),
        # Per-user active count and listings
        Index("ix_borrowing_records_user_status", "user_id", "status"),
        # Overdue scan: status = 'borrowed' AND due_date < now()
        Index("ix_borrowing_records_status_due", "status", "due_date"),
        CheckConstraint("status IN ('borrowed', 'returned')", name="check_record_status"),
        CheckConstraint("due_date > borrow_date", name="check_due_after_borrow"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_BORROWED

    def __repr__(self) -> str:
        return f"<BorrowingRecord(id={self.id}, user={self.user_id}, book={self.book_id}, status={self.status})>"
