"""
Book model with copy inventory tracking.

Key design decisions:
- `available_copies` is denormalized (avoids COUNT on the ledger for every
  availability check) and is the serialization point for capacity: the
  reservation engine only ever changes it with a conditional UPDATE
- CHECK constraints keep 0 <= available_copies <= total_copies at the DB level
- `book_code` is the unique human-facing identifier printed on the copy
"""

from sqlalchemy import Column, Integer, String, Text, Index, CheckConstraint

from library_lending.db.base import Base, TimestampMixin


class Book(Base, TimestampMixin):
    __tablename__ = "books"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    book_code = Column(String(64), unique=True, index=True, nullable=False)
    author = Column(String(255), nullable=False)
    genre = Column(String(100), nullable=False)
    about = Column(Text, nullable=False, default="")
    image = Column(Text, nullable=False)
    total_copies = Column(Integer, nullable=False, default=1)
    available_copies = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint("total_copies >= 0", name="check_total_copies_non_negative"),
        CheckConstraint("available_copies >= 0", name="check_available_copies_non_negative"),
        CheckConstraint("available_copies <= total_copies", name="check_available_lte_total"),
        # Catalog listing filters on availability and sorts by title
        Index("ix_books_available_title", "available_copies", "title"),
    )

    def __repr__(self) -> str:
        return f"<Book(id={self.id}, code={self.book_code}, available={self.available_copies}/{self.total_copies})>"
