"""
Tests for the public catalog endpoints.
"""

import pytest
from httpx import AsyncClient

from tests.factories import make_book


@pytest.mark.asyncio
async def test_list_books_defaults_to_available(client: AsyncClient, test_book, unavailable_book):
    response = await client.get("/api/v1/books/")
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert [book["book_code"] for book in data["books"]] == ["LIB-0001"]
    assert data["cached"] is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "availability, expected",
    [("unavailable", ["LIB-0002"]), ("all", ["LIB-0001", "LIB-0002"])],
)
async def test_list_books_availability_filter(client: AsyncClient, test_book, unavailable_book, availability, expected):
    response = await client.get("/api/v1/books/", params={"availability": availability})
    assert response.status_code == 200
    assert [book["book_code"] for book in response.json()["books"]] == expected


@pytest.mark.asyncio
async def test_list_books_rejects_unknown_filter(client: AsyncClient):
    response = await client.get("/api/v1/books/", params={"availability": "sometimes"})
    assert response.status_code == 400
    assert response.json()["reason"] == "invalidArgument"


@pytest.mark.asyncio
async def test_list_books_pagination(client: AsyncClient, db_session):
    for n in range(5):
        await make_book(db_session, f"PAGE-{n}", copies=1)

    first = await client.get("/api/v1/books/", params={"page": 1, "page_size": 2})
    third = await client.get("/api/v1/books/", params={"page": 3, "page_size": 2})

    assert first.json()["total"] == 5
    assert [book["book_code"] for book in first.json()["books"]] == ["PAGE-0", "PAGE-1"]
    assert [book["book_code"] for book in third.json()["books"]] == ["PAGE-4"]


@pytest.mark.asyncio
async def test_get_book(client: AsyncClient, test_book):
    response = await client.get(f"/api/v1/books/{test_book.id}")
    assert response.status_code == 200
    data = response.json()
    assert data["title"] == "Book LIB-0001"
    assert data["total_copies"] == 2
    assert data["available_copies"] == 2


@pytest.mark.asyncio
async def test_get_missing_book(client: AsyncClient):
    response = await client.get("/api/v1/books/99999")
    assert response.status_code == 404
    assert response.json()["reason"] == "bookNotFound"
