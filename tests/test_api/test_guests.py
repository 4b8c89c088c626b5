"""Tests for guest endpoints."""

import uuid
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.database import utcnow
from frontdesk.services.archival import run_archive
from frontdesk.services.assets import AssetCleanupResult
from tests.factories import booking_payload, insert_booking, insert_guest

pytestmark = pytest.mark.asyncio(loop_scope="session")


class TestListGuests:
    """Tests for listing and searching guests."""

    async def test_list_and_search(self, client: AsyncClient, auth_headers: dict, test_booking: dict) -> None:
        await client.post(
            "/api/v1/bookings",
            json=booking_payload(guest_name="Rohan Mehta", guest_mobile="9123456780"),
            headers=auth_headers,
        )

        response = await client.get("/api/v1/guests", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["total"] == 2

        response = await client.get("/api/v1/guests", params={"search": "mehta"}, headers=auth_headers)
        assert [guest["name"] for guest in response.json()["items"]] == ["Rohan Mehta"]


class TestGuestDetail:
    """Tests for a single guest and their totals."""

    async def test_detail_includes_totals(
        self, client: AsyncClient, auth_headers: dict, test_booking: dict
    ) -> None:
        response = await client.get(f"/api/v1/guests/{test_booking['guest_id']}", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["total_visits"] == 1
        assert data["totals"]["visits"] == 1
        assert Decimal(data["totals"]["revenue"]) == Decimal("2500")
        assert data["totals"]["historic_visits"] == 0

    async def test_not_found(self, client: AsyncClient, auth_headers: dict) -> None:
        response = await client.get(f"/api/v1/guests/{uuid.uuid4()}", headers=auth_headers)
        assert response.status_code == 404

    async def test_search_by_national_id(self, client: AsyncClient, auth_headers: dict) -> None:
        created = await client.post(
            "/api/v1/bookings", json=booking_payload(guest_national_id="1234-5678-9012"), headers=auth_headers
        )
        assert created.status_code == 201

        response = await client.get(
            "/api/v1/guests/search", params={"national_id": "123456789012"}, headers=auth_headers
        )
        assert response.status_code == 200
        data = response.json()
        assert data["guest"]["mobile"] == "9876543210"
        assert [b["id"] for b in data["recent_bookings"]] == [created.json()["id"]]

    async def test_search_requires_a_key(self, client: AsyncClient, auth_headers: dict) -> None:
        response = await client.get("/api/v1/guests/search", headers=auth_headers)
        assert response.status_code == 422


class TestGuestHistory:
    """Lifetime view spanning live and archived data."""

    async def test_history_after_archival(
        self, client: AsyncClient, auth_headers: dict, db_session: AsyncSession
    ) -> None:
        now = utcnow()
        guest = await insert_guest(db_session, "9855000001", total_visits=2, total_revenue=Decimal("3000"))
        await insert_booking(db_session, guest, created_at=now - timedelta(days=3 * 365), rent=Decimal("1000"))
        await insert_booking(db_session, guest, rent=Decimal("2000"))
        await run_archive(db_session, retention_years=2, now=now)

        response = await client.get(f"/api/v1/guests/{guest.id}/history", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["totals"]["visits"] == 2
        assert Decimal(data["totals"]["revenue"]) == Decimal("3000")
        assert data["totals"]["historic_visits"] == 1
        assert data["historic_summary"]["total_historic_visits"] == 1
        assert len(data["recent_bookings"]) == 1

    async def test_history_for_archived_only_guest(
        self, client: AsyncClient, auth_headers: dict, db_session: AsyncSession
    ) -> None:
        now = utcnow()
        guest = await insert_guest(db_session, "9855000002", total_visits=1, total_revenue=Decimal("1200"))
        guest_id = guest.id
        await insert_booking(db_session, guest, created_at=now - timedelta(days=3 * 365), rent=Decimal("1200"))
        await run_archive(db_session, retention_years=2, now=now)

        response = await client.get(f"/api/v1/guests/{guest_id}/history", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["guest"] is None
        assert data["totals"]["live_visits"] == 0
        assert Decimal(data["totals"]["historic_revenue"]) == Decimal("1200")
        assert data["recent_bookings"] == []


class TestUpdateGuest:
    """Tests for editing guest identity."""

    async def test_update_name(self, client: AsyncClient, auth_headers: dict, test_booking: dict) -> None:
        response = await client.put(
            f"/api/v1/guests/{test_booking['guest_id']}",
            json={"name": "Asha R. Verma"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["name"] == "Asha R. Verma"

        booking = await client.get(f"/api/v1/bookings/{test_booking['id']}", headers=auth_headers)
        assert booking.json()["guest_name"] == "Asha Verma"

    async def test_mobile_taken(self, client: AsyncClient, auth_headers: dict, test_booking: dict) -> None:
        await client.post(
            "/api/v1/bookings",
            json=booking_payload(guest_name="Rohan Mehta", guest_mobile="9123456780"),
            headers=auth_headers,
        )
        response = await client.put(
            f"/api/v1/guests/{test_booking['guest_id']}",
            json={"mobile": "9123456780"},
            headers=auth_headers,
        )
        assert response.status_code == 409
        assert response.json()["detail"]["field"] == "mobile"

    async def test_attach_document(self, client: AsyncClient, auth_headers: dict, test_booking: dict) -> None:
        response = await client.put(
            f"/api/v1/guests/{test_booking['guest_id']}/document",
            json={"url": "https://assets.test/id.jpg", "public_id": "id-1"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["id_document_url"] == "https://assets.test/id.jpg"

    async def test_replaced_document_released_after_commit(
        self, client: AsyncClient, auth_headers: dict, test_booking: dict, db_session: AsyncSession
    ) -> None:
        url = f"/api/v1/guests/{test_booking['guest_id']}/document"
        await client.put(url, json={"url": "https://assets.test/old.jpg", "public_id": "old"}, headers=auth_headers)
        calls = []

        async def store(public_ids):
            calls.append((list(public_ids), db_session.in_transaction()))
            return AssetCleanupResult(requested=len(public_ids), deleted=len(public_ids))

        with patch("frontdesk.services.assets.delete_assets", new=store):
            response = await client.put(
                url, json={"url": "https://assets.test/new.jpg", "public_id": "new"}, headers=auth_headers
            )

        assert response.status_code == 200
        assert response.json()["id_document_url"] == "https://assets.test/new.jpg"
        assert calls == [(["old"], False)]
