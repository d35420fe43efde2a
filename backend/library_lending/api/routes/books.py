"""
Public catalog endpoints with Redis caching on list operations.
"""

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from library_lending.db.session import get_db
from library_lending.schemas.book import Availability, BookResponse, BookListResponse
from library_lending.services.catalog_service import get_book, list_books
from library_lending.services.cache_service import get_cached_books, set_cached_books
from library_lending.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/books", tags=["Books"])


@router.get("/", response_model=BookListResponse)
async def list_books_endpoint(
    availability: Availability = Query("available"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """
    List books, by default only those with a free copy.
    Results are cached in Redis and invalidated whenever availability changes.
    """
    cached = await get_cached_books(availability, page, page_size)
    if cached:
        logger.info("books_list_cache_hit", page=page, availability=availability)
        cached["cached"] = True
        return BookListResponse(**cached)

    books, total = await list_books(db, availability, page, page_size)

    response_data = {
        "books": [BookResponse.model_validate(b).model_dump() for b in books],
        "total": total,
        "page": page,
        "page_size": page_size,
        "cached": False,
    }

    await set_cached_books(availability, page, page_size, response_data)

    return BookListResponse(**response_data)


@router.get("/{book_id}", response_model=BookResponse)
async def get_book_endpoint(
    book_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
):
    """Get a single book. Not cached (patrons need real-time copy counts)."""
    return await get_book(db, book_id)
