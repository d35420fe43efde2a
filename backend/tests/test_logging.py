"""
Tests for log processors and request correlation.
"""

import pytest
from httpx import AsyncClient

from library_lending.core.logging import redact_data_uris
from tests.factories import EVIDENCE


def test_evidence_payloads_are_redacted():
    event = redact_data_uris(None, "info", {"event": "borrow_rejected", "photos": EVIDENCE, "book_id": 3})

    assert event["book_id"] == 3
    assert event["event"] == "borrow_rejected"
    assert len(event["photos"]) == 4
    assert all(photo.startswith("<data:image/jpeg ") for photo in event["photos"])


def test_plain_strings_untouched():
    event = redact_data_uris(None, "info", {"event": "book_created", "image": "https://covers.example.com/1"})
    assert event["image"] == "https://covers.example.com/1"


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient):
    response = await client.get("/health", headers={"X-Request-ID": "abc123"})
    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "abc123"
    assert response.json()["cache"] == {"status": "disabled"}


@pytest.mark.asyncio
async def test_request_id_is_assigned(client: AsyncClient):
    response = await client.get("/")
    assert len(response.headers["X-Request-ID"]) == 8
