from library_lending.models.user import User
from library_lending.models.book import Book
from library_lending.models.borrowing_record import BorrowingRecord

__all__ = ["User", "Book", "BorrowingRecord"]
