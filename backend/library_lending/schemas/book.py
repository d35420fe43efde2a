"""
Pydantic schemas for catalog request/response validation.
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field

Availability = Literal["available", "unavailable", "all"]


class BookCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    book_code: str = Field(..., min_length=1, max_length=64)
    author: str = Field(..., min_length=1, max_length=255)
    genre: str = Field(..., min_length=1, max_length=100)
    about: str = Field("", max_length=5000)
    image: str = Field(..., min_length=1)
    total_copies: int = Field(..., ge=0, le=100000)


class BookUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    book_code: Optional[str] = Field(None, min_length=1, max_length=64)
    author: Optional[str] = Field(None, min_length=1, max_length=255)
    genre: Optional[str] = Field(None, min_length=1, max_length=100)
    about: Optional[str] = Field(None, max_length=5000)
    image: Optional[str] = Field(None, min_length=1)
    total_copies: Optional[int] = Field(None, ge=0, le=100000)
    available_copies: Optional[int] = Field(None, ge=0, le=100000)


class BookResponse(BaseModel):
    id: int
    title: str
    book_code: str
    author: str
    genre: str
    about: str
    image: str
    total_copies: int
    available_copies: int
    created_at: datetime

    model_config = {"from_attributes": True}


class BookSummary(BaseModel):
    id: int
    title: str
    author: str
    image: str
    book_code: str

    model_config = {"from_attributes": True}


class BookListResponse(BaseModel):
    books: list[BookResponse]
    total: int
    page: int
    page_size: int
    cached: bool = False
