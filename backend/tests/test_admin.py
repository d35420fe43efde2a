"""
Tests for admin endpoints: access checks, catalog edits, blocking, overdue review.
"""

import pytest
from httpx import AsyncClient

from tests.factories import make_book, make_loan, make_user

NEW_BOOK = {
    "title": "The Pragmatic Programmer",
    "book_code": "LIB-0100",
    "author": "Hunt and Thomas",
    "genre": "Software",
    "about": "Journeyman to master.",
    "image": "https://covers.example.com/LIB-0100",
    "total_copies": 4,
}


@pytest.mark.asyncio
async def test_admin_header_missing(client: AsyncClient):
    response = await client.get("/api/v1/admin/users")
    assert response.status_code == 401
    assert response.json()["reason"] == "adminIdMissing"


@pytest.mark.asyncio
async def test_admin_header_malformed(client: AsyncClient):
    response = await client.get("/api/v1/admin/users", headers={"X-Admin-User-Id": "root"})
    assert response.status_code == 400
    assert response.json()["reason"] == "invalidArgument"


@pytest.mark.asyncio
async def test_admin_unknown_user(client: AsyncClient):
    response = await client.get("/api/v1/admin/users", headers={"X-Admin-User-Id": "99999"})
    assert response.status_code == 404
    assert response.json()["reason"] == "adminNotFound"


@pytest.mark.asyncio
async def test_admin_requires_admin_role(client: AsyncClient, test_user):
    response = await client.get("/api/v1/admin/users", headers={"X-Admin-User-Id": str(test_user.id)})
    assert response.status_code == 403
    assert response.json()["reason"] == "notAdmin"


@pytest.mark.asyncio
async def test_create_book(client: AsyncClient, admin_headers):
    response = await client.post("/api/v1/admin/books", json=NEW_BOOK, headers=admin_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["book_code"] == "LIB-0100"
    assert data["total_copies"] == 4
    assert data["available_copies"] == 4

    duplicate = await client.post("/api/v1/admin/books", json=NEW_BOOK, headers=admin_headers)
    assert duplicate.status_code == 409
    assert duplicate.json()["reason"] == "duplicateBookCode"


@pytest.mark.asyncio
async def test_create_book_validation(client: AsyncClient, admin_headers):
    response = await client.post(
        "/api/v1/admin/books",
        json={**NEW_BOOK, "total_copies": -1},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["reason"] == "invalidArgument"


@pytest.mark.asyncio
async def test_list_catalog_includes_unavailable(client: AsyncClient, admin_headers, test_book, unavailable_book):
    response = await client.get("/api/v1/admin/books", headers=admin_headers)
    assert response.status_code == 200
    codes = {book["book_code"] for book in response.json()}
    assert codes == {"LIB-0001", "LIB-0002"}


@pytest.mark.asyncio
async def test_update_book_reconciles_copies(client: AsyncClient, db_session, admin_headers, test_user):
    book = await make_book(db_session, "EDIT-1", copies=5)
    await make_loan(db_session, test_user, book)
    await make_loan(db_session, await make_user(db_session, "second-reader@example.com"), book)

    # 5 total, 3 free, 2 on loan; asking for 5 free is clamped to 3
    response = await client.put(
        f"/api/v1/admin/books/{book.id}",
        json={"available_copies": 5, "title": "Edited Title"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["title"] == "Edited Title"
    assert data["total_copies"] == 5
    assert data["available_copies"] == 3

    # Raising the total shifts availability by the same amount
    response = await client.put(
        f"/api/v1/admin/books/{book.id}",
        json={"total_copies": 7},
        headers=admin_headers,
    )
    assert response.json()["available_copies"] == 5

    # Total cannot drop below the copies on loan
    response = await client.put(
        f"/api/v1/admin/books/{book.id}",
        json={"total_copies": 1},
        headers=admin_headers,
    )
    assert response.status_code == 409
    assert response.json()["reason"] == "copiesInUse"


@pytest.mark.asyncio
async def test_update_book_code_conflict(client: AsyncClient, admin_headers, test_book, unavailable_book):
    response = await client.put(
        f"/api/v1/admin/books/{test_book.id}",
        json={"book_code": unavailable_book.book_code},
        headers=admin_headers,
    )
    assert response.status_code == 409
    assert response.json()["reason"] == "duplicateBookCode"


@pytest.mark.asyncio
async def test_update_missing_book(client: AsyncClient, admin_headers):
    response = await client.put("/api/v1/admin/books/99999", json={"title": "Nope"}, headers=admin_headers)
    assert response.status_code == 404
    assert response.json()["reason"] == "bookNotFound"


@pytest.mark.asyncio
async def test_delete_book(client: AsyncClient, db_session, admin_headers, test_user, test_book):
    loan = await make_loan(db_session, test_user, test_book)

    response = await client.delete(f"/api/v1/admin/books/{test_book.id}", headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["reason"] == "bookInUse"

    returned = await client.post(
        f"/api/v1/borrows/return/{loan.id}",
        json={"user_id": test_user.id, "evidence_photos": list(loan.borrow_evidence)},
    )
    assert returned.status_code == 200

    response = await client.delete(f"/api/v1/admin/books/{test_book.id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["book_id"] == test_book.id

    missing = await client.get(f"/api/v1/books/{test_book.id}")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_list_users(client: AsyncClient, admin_headers, test_user, blocked_user):
    response = await client.get("/api/v1/admin/users", headers=admin_headers)
    assert response.status_code == 200
    emails = {user["email"] for user in response.json()}
    assert {"reader@example.com", "blocked@example.com", "admin@example.com"} <= emails


@pytest.mark.asyncio
async def test_block_and_unblock(client: AsyncClient, admin_headers, test_user, test_book, evidence):
    response = await client.post(f"/api/v1/admin/users/{test_user.id}/block", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["user"]["is_blocked"] is True

    refused = await client.post(
        f"/api/v1/borrows/{test_book.id}",
        json={"user_id": test_user.id, "evidence_photos": evidence},
    )
    assert refused.status_code == 403
    assert refused.json()["reason"] == "userBlocked"

    response = await client.post(f"/api/v1/admin/users/{test_user.id}/unblock", headers=admin_headers)
    assert response.json()["user"]["is_blocked"] is False

    allowed = await client.post(
        f"/api/v1/borrows/{test_book.id}",
        json={"user_id": test_user.id, "evidence_photos": evidence},
    )
    assert allowed.status_code == 201


@pytest.mark.asyncio
async def test_block_unknown_user(client: AsyncClient, admin_headers):
    response = await client.post("/api/v1/admin/users/99999/block", headers=admin_headers)
    assert response.status_code == 404
    assert response.json()["reason"] == "userNotFound"


@pytest.mark.asyncio
async def test_user_borrow_records(client: AsyncClient, db_session, admin_headers, test_user):
    older = await make_loan(db_session, test_user, await make_book(db_session, "OLD", copies=1), borrowed_days_ago=9)
    newer = await make_loan(db_session, test_user, await make_book(db_session, "NEW", copies=1), borrowed_days_ago=2)

    response = await client.get(f"/api/v1/admin/users/{test_user.id}/borrows", headers=admin_headers)
    assert response.status_code == 200
    assert [row["id"] for row in response.json()] == [newer.id, older.id]
    assert response.json()[0]["book"]["book_code"] == "NEW"


@pytest.mark.asyncio
async def test_overdue_listing(client: AsyncClient, db_session, admin_headers, test_user, other_user):
    late = await make_loan(db_session, test_user, await make_book(db_session, "LATE", copies=1), borrowed_days_ago=20)
    later = await make_loan(db_session, other_user, await make_book(db_session, "LATER", copies=1), borrowed_days_ago=18)
    await make_loan(db_session, test_user, await make_book(db_session, "ON-TIME", copies=1), borrowed_days_ago=3)

    response = await client.get("/api/v1/admin/overdue", headers=admin_headers)
    assert response.status_code == 200
    rows = response.json()
    assert [row["id"] for row in rows] == [late.id, later.id]

    first = rows[0]
    assert first["days_overdue"] == 5
    assert first["user"]["email"] == "reader@example.com"
    assert first["book"]["book_code"] == "LATE"
    assert rows[1]["days_overdue"] == 3

