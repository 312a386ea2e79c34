"""Tests for the overlap validator and the conflict diagnostics endpoints."""
from datetime import time

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from conftest import BOOKING_DATE, add_booking, add_station
from turfbook.core.errors import ValidatorUnavailableError
from turfbook.models.booking import Booking
from turfbook.schemas.booking import BookingConflict
from turfbook.services.overlap_validator import conflict_message, overlap_validator


class BrokenSession:
    async def execute(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection refused"))


async def test_finds_overlapping_active_booking(db):
    station = await add_station(db)
    existing = await add_booking(db, station, time(14), time(15))

    conflicts = await overlap_validator.find_conflicts(
        db, station.id, BOOKING_DATE, time(14, 30), time(15, 30)
    )

    assert [b.id for b in conflicts] == [existing.id]


async def test_adjacent_interval_is_free(db):
    station = await add_station(db)
    await add_booking(db, station, time(14), time(15))

    assert not await overlap_validator.check_overlap(
        db, station.id, BOOKING_DATE, time(15), time(16)
    )
    assert not await overlap_validator.check_overlap(
        db, station.id, BOOKING_DATE, time(13), time(14)
    )


@pytest.mark.parametrize("status,blocks", [
    ("confirmed", True),
    ("in-progress", True),
    ("completed", False),
    ("cancelled", False),
    ("no-show", False),
])
async def test_only_active_statuses_conflict(db, status, blocks):
    station = await add_station(db)
    await add_booking(db, station, time(14), time(15), status=status)

    assert await overlap_validator.check_overlap(
        db, station.id, BOOKING_DATE, time(14), time(15)
    ) is blocks


async def test_other_station_and_date_do_not_conflict(db):
    station = await add_station(db, "Turf A")
    other = await add_station(db, "Turf B")
    await add_booking(db, other, time(14), time(15))

    assert not await overlap_validator.check_overlap(
        db, station.id, BOOKING_DATE, time(14), time(15)
    )


async def test_exclude_booking_id(db):
    station = await add_station(db)
    existing = await add_booking(db, station, time(14), time(15))

    assert not await overlap_validator.check_overlap(
        db, station.id, BOOKING_DATE, time(14), time(15), exclude_booking_id=existing.id
    )


async def test_legacy_midnight_end_counts_as_end_of_day(db):
    station = await add_station(db)
    await add_booking(db, station, time(23), time(0))

    assert await overlap_validator.check_overlap(
        db, station.id, BOOKING_DATE, time(23, 30), time(23, 59, 59)
    )
    assert not await overlap_validator.check_overlap(
        db, station.id, BOOKING_DATE, time(22), time(23)
    )


async def test_infrastructure_failure_raises():
    with pytest.raises(ValidatorUnavailableError) as excinfo:
        await overlap_validator.find_conflicts(
            BrokenSession(), "station", BOOKING_DATE, time(14), time(15)
        )

    assert excinfo.value.status_code == 500
    assert excinfo.value.error == "Conflict check failed"


async def test_check_stations_names_each_station(db):
    first = await add_station(db, "Pool Table 1", "8ball")
    second = await add_station(db, "Pool Table 2", "8ball")
    await add_booking(db, second, time(18), time(19))

    conflicts = await overlap_validator.check_stations(
        db, [first.id, second.id], BOOKING_DATE, time(18, 30), time(19, 30)
    )

    assert len(conflicts) == 1
    assert conflicts[0].station_name == "Pool Table 2"
    assert conflicts[0].existing_start_time == time(18)


def test_conflict_message_for_several_stations():
    conflicts = [
        BookingConflict(
            station_id="a", station_name="Turf A", existing_booking_id="1",
            existing_start_time=time(14), existing_end_time=time(15), status="confirmed",
        ),
        BookingConflict(
            station_id="b", station_name="Turf B", existing_booking_id="2",
            existing_start_time=time(14), existing_end_time=time(16), status="confirmed",
        ),
    ]

    message = conflict_message(conflicts)

    assert "Turf A 14:00:00 - 15:00:00" in message
    assert "Turf B 14:00:00 - 16:00:00" in message


async def test_find_conflict_endpoint(client, db):
    station = await add_station(db)
    await add_booking(db, station, time(14), time(15))
    await add_booking(db, station, time(16), time(17), status="cancelled")

    response = await client.post(
        "/api/bookings/find-conflict",
        json={
            "station_id": station.id,
            "booking_date": BOOKING_DATE.isoformat(),
            "start_time": "14:00:00",
            "end_time": "17:00:00",
            "include_all": True,
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["has_overlap"] is True
    assert data["count"] == 1
    assert data["conflicting_bookings"][0]["start_time"] == "14:00:00"
    assert len(data["all_bookings"]) == 2


async def test_cleanup_blocking_deletes_only_inactive_rows(client, db):
    station = await add_station(db)
    stale = await add_booking(db, station, time(23), time(0), status="cancelled")
    active = await add_booking(db, station, time(23, 30), time(23, 59, 59))
    stale_id, active_id = stale.id, active.id
    body = {"station_id": station.id, "booking_date": BOOKING_DATE.isoformat()}

    found = await client.post("/api/bookings/cleanup-blocking", json=body)
    deleted = await client.post(
        "/api/bookings/cleanup-blocking", json={**body, "action": "delete"}
    )

    assert found.status_code == 200
    assert found.json()["blocking_count"] == 2
    assert found.json()["deleted_count"] == 0
    assert found.json()["test_slot"]["end_time"] == "23:59:59"
    assert found.json()["has_overlap"] is True

    assert deleted.json()["deleted_count"] == 1
    assert deleted.json()["action_taken"] == "delete"
    remaining = (
        await db.execute(select(Booking.id).where(Booking.station_id == station.id))
    ).scalars().all()
    assert remaining == [active_id]
    assert stale_id not in remaining


async def test_cleanup_blocking_rejects_unknown_action(client, db):
    station = await add_station(db)

    response = await client.post(
        "/api/bookings/cleanup-blocking",
        json={"station_id": station.id, "booking_date": BOOKING_DATE.isoformat(), "action": "purge"},
    )

    assert response.status_code == 400


async def test_verify_slot_boundary(client, db):
    station = await add_station(db)
    legacy = await add_booking(db, station, time(22), time(0))

    response = await client.get(
        "/api/bookings/verify-slot-boundary",
        params={"station_id": station.id, "date": BOOKING_DATE.isoformat()},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["uses_2359"] is True
    assert data["uses_0000"] is False
    assert data["total_slots"] == 13
    assert data["last_slot"]["end_time"] == "23:59:59"
    assert [b["id"] for b in data["bookings_with_midnight_end"]] == [legacy.id]
