from library_lending.schemas.user import (
    ProfileLookup, ProfileComplete, ProfileLookupResponse, UserResponse, UserSummary,
)
from library_lending.schemas.book import BookCreate, BookUpdate, BookResponse, BookListResponse, BookSummary
from library_lending.schemas.borrowing import (
    BorrowRequest, ReturnRequest, BorrowingRecordResponse, BorrowingRecordDetail,
    OverdueRecordResponse, BorrowStatusResponse, BorrowCountResponse,
)

__all__ = [
    "ProfileLookup", "ProfileComplete", "ProfileLookupResponse", "UserResponse", "UserSummary",
    "BookCreate", "BookUpdate", "BookResponse", "BookListResponse", "BookSummary",
    "BorrowRequest", "ReturnRequest", "BorrowingRecordResponse", "BorrowingRecordDetail",
    "OverdueRecordResponse", "BorrowStatusResponse", "BorrowCountResponse",
]
