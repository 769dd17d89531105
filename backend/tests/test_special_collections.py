"""
Tests for special-collection bookings and slot availability.
"""
import asyncio
import pytest
from datetime import datetime
from httpx import AsyncClient

from conftest import auth_headers
from schemas.user_schema import User
from services.special_collection_service import check_availability, create_schedule, day_bounds, parse_utc_datetime
from utils.errors import ValidationError

SLOTS = ["8:00 AM - 11:00 AM", "11:00 AM - 2:00 PM", "2:00 PM - 5:00 PM"]


def booking_payload(date="2025-03-10T00:00:00.000Z", slot=SLOTS[0], **overrides):
    payload = {
        "date": date,
        "timeSlot": slot,
        "wasteType": "Electronic",
        "location": {"latitude": 6.9271, "longitude": 79.8612},
        "remarks": "Old fridge",
        "weight": 12.5,
        "totalAmount": 1500,
    }
    payload.update(overrides)
    return payload


async def _seed_bookings(mongo_db, count, slot, day=datetime(2025, 3, 10, 9, 30)):
    await mongo_db.special_collections.insert_many([
        {"date": day, "time_slot": slot, "waste_type": "Bulky", "status": "Pending"}
        for _ in range(count)
    ])


class TestDateHelpers:

    def test_day_bounds_cover_whole_utc_day(self):
        start, end = day_bounds("2025-03-10T15:45:00Z")
        assert start == datetime(2025, 3, 10)
        assert end == datetime(2025, 3, 10, 23, 59, 59, 999000)

    def test_offset_datetimes_are_converted_to_utc(self):
        assert parse_utc_datetime("2025-03-10T01:00:00+05:30") == datetime(2025, 3, 9, 19, 30)

    def test_unparseable_date(self):
        with pytest.raises(ValidationError):
            parse_utc_datetime("next tuesday")


class TestAvailability:

    @pytest.mark.asyncio
    async def test_empty_day_has_every_slot_in_order(self, async_client: AsyncClient):
        response = await async_client.get("/api/collections/availability", params={"date": "2025-03-10"})
        assert response.status_code == 200
        assert response.json() == SLOTS

    @pytest.mark.asyncio
    async def test_full_slot_is_excluded(self, async_client: AsyncClient, mongo_db):
        await _seed_bookings(mongo_db, 5, SLOTS[0])
        response = await async_client.get("/api/collections/availability", params={"date": "2025-03-10"})
        assert response.json() == SLOTS[1:]

    @pytest.mark.asyncio
    async def test_slot_under_limit_is_still_offered(self, mongo_db):
        await _seed_bookings(mongo_db, 4, SLOTS[1])
        assert await check_availability("2025-03-10") == SLOTS

    @pytest.mark.asyncio
    async def test_other_days_do_not_count(self, mongo_db):
        await _seed_bookings(mongo_db, 5, SLOTS[2], day=datetime(2025, 3, 11, 0, 0))
        await _seed_bookings(mongo_db, 5, SLOTS[2], day=datetime(2025, 3, 9, 23, 59, 59))
        assert await check_availability("2025-03-10") == SLOTS

    @pytest.mark.asyncio
    async def test_bookings_with_unknown_slot_labels_are_ignored(self, mongo_db):
        await _seed_bookings(mongo_db, 6, "6:00 PM - 9:00 PM")
        assert await check_availability("2025-03-10") == SLOTS

    @pytest.mark.asyncio
    async def test_missing_date_is_400(self, async_client: AsyncClient):
        response = await async_client.get("/api/collections/availability")
        assert response.status_code == 400
        assert response.json()["detail"] == "Date is required"

    @pytest.mark.asyncio
    async def test_invalid_date_is_400(self, async_client: AsyncClient):
        response = await async_client.get("/api/collections/availability", params={"date": "not-a-date"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_check_and_book_is_not_atomic(self, mongo_db, user):
        """Two callers can both see the last seat; the write path does not re-check."""
        await _seed_bookings(mongo_db, 4, SLOTS[0])
        first, second = await asyncio.gather(check_availability("2025-03-10"), check_availability("2025-03-10"))
        assert SLOTS[0] in first and SLOTS[0] in second

        caller = User(user_id=str(user["_id"]), email=user["email"])
        await create_schedule(caller, booking_payload())
        await create_schedule(caller, booking_payload())

        assert await mongo_db.special_collections.count_documents({"time_slot": SLOTS[0]}) == 6
        assert await check_availability("2025-03-10") == SLOTS[1:]


class TestBookings:

    @pytest.mark.asyncio
    async def test_create_booking(self, async_client: AsyncClient, user, mongo_db):
        response = await async_client.post("/api/collections", json=booking_payload(), headers=auth_headers(user))
        assert response.status_code == 201
        data = response.json()
        assert data["timeSlot"] == SLOTS[0]
        assert data["userId"] == str(user["_id"])
        assert data["status"] == "Pending"
        assert data["totalAmount"] == 1500

        stored = await mongo_db.special_collections.find_one({})
        assert stored["date"] == datetime(2025, 3, 10)
        assert stored["user_id"] == user["_id"]

    @pytest.mark.asyncio
    async def test_create_requires_auth(self, async_client: AsyncClient):
        response = await async_client.post("/api/collections", json=booking_payload())
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_create_missing_fields(self, async_client: AsyncClient, user):
        payload = booking_payload()
        del payload["wasteType"]
        response = await async_client.post("/api/collections", json=payload, headers=auth_headers(user))
        assert response.status_code == 400
        assert response.json()["detail"] == "Please provide all required fields"

    @pytest.mark.asyncio
    async def test_create_unknown_slot(self, async_client: AsyncClient, user):
        response = await async_client.post(
            "/api/collections", json=booking_payload(slot="Midnight"), headers=auth_headers(user)
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid time slot"

    @pytest.mark.asyncio
    async def test_create_bad_location(self, async_client: AsyncClient, user):
        response = await async_client.post(
            "/api/collections", json=booking_payload(location={"latitude": "north"}), headers=auth_headers(user)
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_my_schedules_only_for_owner_or_manager(self, async_client: AsyncClient, user, make_user, manager):
        other = await make_user()
        await async_client.post("/api/collections", json=booking_payload(), headers=auth_headers(user))

        own = await async_client.get(f"/api/collections/my-schedules/{user['_id']}", headers=auth_headers(user))
        assert own.status_code == 200
        assert len(own.json()) == 1

        forbidden = await async_client.get(f"/api/collections/my-schedules/{user['_id']}", headers=auth_headers(other))
        assert forbidden.status_code == 403

        managed = await async_client.get(f"/api/collections/my-schedules/{user['_id']}", headers=auth_headers(manager))
        assert managed.status_code == 200

    @pytest.mark.asyncio
    async def test_all_schedules_is_manager_only(self, async_client: AsyncClient, user, manager):
        await async_client.post("/api/collections", json=booking_payload(), headers=auth_headers(user))

        denied = await async_client.get("/api/collections/all", headers=auth_headers(user))
        assert denied.status_code == 403

        response = await async_client.get("/api/collections/all", headers=auth_headers(manager))
        assert response.status_code == 200
        schedules = response.json()
        assert len(schedules) == 1
        assert schedules[0]["user"]["email"] == user["email"]
