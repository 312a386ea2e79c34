"""Tests for duplicate booking cleanup."""
from datetime import datetime, time

from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from conftest import add_booking, add_station
from turfbook.core.config import settings
from turfbook.models.booking import Booking
from turfbook.services import deduplicator
from turfbook.services.deduplicator import duplicate_cleaner, plan_duplicate_deletions

T0 = datetime(2026, 1, 5, 9, 0, 0)
T1 = datetime(2026, 1, 5, 9, 0, 5)
T2 = datetime(2026, 1, 5, 9, 0, 9)


async def remaining_ids(db):
    return set((await db.execute(select(Booking.id))).scalars().all())


async def seed_duplicates(db):
    station = await add_station(db)
    kept = await add_booking(db, station, time(14), time(15), created_at=T0)
    first = await add_booking(db, station, time(14), time(15), created_at=T1)
    second = await add_booking(db, station, time(14), time(15), created_at=T2)
    other = await add_booking(db, station, time(16), time(17), created_at=T1)
    cancelled = await add_booking(db, station, time(14), time(15), status="cancelled", created_at=T1)
    return kept, first, second, other, cancelled


async def test_deletes_all_but_oldest(db):
    kept, first, second, other, cancelled = await seed_duplicates(db)

    result = await duplicate_cleaner.cleanup(db)

    assert result.processed == 4
    assert result.duplicate_groups == 1
    assert result.duplicates_found == 3
    assert result.duplicates_deleted == 2
    assert set(result.deleted_booking_ids) == {first.id, second.id}
    assert result.message == "Deleted 2 duplicate booking(s) from 1 group(s)"
    assert await remaining_ids(db) == {kept.id, other.id, cancelled.id}


async def test_second_run_deletes_nothing(db):
    await seed_duplicates(db)

    await duplicate_cleaner.cleanup(db)
    result = await duplicate_cleaner.cleanup(db)

    assert result.duplicates_deleted == 0
    assert result.deleted_booking_ids == []
    assert result.message == "No duplicates found"


async def test_empty_table(db):
    result = await duplicate_cleaner.cleanup(db)

    assert result.processed == 0
    assert result.message == "No bookings to check"


async def test_failed_group_is_skipped(db, monkeypatch):
    station = await add_station(db)
    for start in (time(12), time(18)):
        await add_booking(db, station, start, time(start.hour + 1), created_at=T0)
        await add_booking(db, station, start, time(start.hour + 1), created_at=T1)

    real_delete = deduplicator.booking_repository.delete_by_ids
    calls = []

    async def flaky_delete(session, ids):
        calls.append(ids)
        if len(calls) == 1:
            raise OperationalError("DELETE", {}, Exception("database is locked"))
        return await real_delete(session, ids)

    monkeypatch.setattr(deduplicator.booking_repository, "delete_by_ids", flaky_delete)

    result = await duplicate_cleaner.cleanup(db)

    assert result.duplicate_groups == 2
    assert result.failed_groups == 1
    assert result.duplicates_deleted == 1
    assert "1 group(s) failed" in result.message
    assert len(await remaining_ids(db)) == 3


async def test_identical_created_at_keeps_smallest_id(db):
    station = await add_station(db)
    larger = await add_booking(
        db, station, time(14), time(15), created_at=T0,
        booking_id="bbbbbbbb-0000-4000-8000-000000000000",
    )
    smaller = await add_booking(
        db, station, time(14), time(15), created_at=T0,
        booking_id="aaaaaaaa-0000-4000-8000-000000000000",
    )

    result = await duplicate_cleaner.cleanup(db)

    assert result.deleted_booking_ids == [larger.id]
    assert await remaining_ids(db) == {smaller.id}


async def test_rows_already_gone_are_not_counted(db, monkeypatch):
    kept, first, second, other, cancelled = await seed_duplicates(db)
    real_delete = deduplicator.booking_repository.delete_by_ids

    async def delete_after_concurrent_removal(session, ids):
        await real_delete(session, [first.id])
        return await real_delete(session, ids)

    monkeypatch.setattr(deduplicator.booking_repository, "delete_by_ids", delete_after_concurrent_removal)

    result = await duplicate_cleaner.cleanup(db)

    assert result.duplicates_found == 3
    assert result.duplicates_deleted == 1
    assert result.deleted_booking_ids == [second.id]
    assert result.message == "Deleted 1 duplicate booking(s) from 1 group(s)"
    assert await remaining_ids(db) == {kept.id, other.id, cancelled.id}


def test_plan_keeps_first_of_each_group():
    rows = [
        Booking(id="b", station_id="s", booking_date=T0.date(), start_time=time(14), end_time=time(15)),
        Booking(id="a", station_id="s", booking_date=T0.date(), start_time=time(14), end_time=time(15)),
        Booking(id="c", station_id="s", booking_date=T0.date(), start_time=time(15), end_time=time(16)),
    ]

    plan = plan_duplicate_deletions(rows)

    assert len(plan) == 1
    key, kept, ids = plan[0]
    assert kept.id == "b"
    assert ids == ["a"]


async def test_cleanup_endpoint(client, db):
    kept, first, second, _, _ = await seed_duplicates(db)

    response = await client.post("/api/bookings/cleanup-duplicates")

    assert response.status_code == 200
    data = response.json()
    assert data["ok"] is True
    assert data["duplicatesDeleted"] == 2
    assert data["duplicateGroups"] == 1
    assert data["failedGroups"] == 0
    assert set(data["deletedBookingIds"]) == {first.id, second.id}


async def test_cleanup_endpoint_skips_when_already_running(client, scheduler):
    scheduler.states["cleanup_duplicate_bookings"].is_running = True

    response = await client.post("/api/bookings/cleanup-duplicates")

    assert response.status_code == 200
    assert response.json()["skipped"] is True


async def test_cleanup_endpoint_requires_cron_secret(client, monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")

    denied = await client.post("/api/bookings/cleanup-duplicates")
    wrong = await client.post(
        "/api/bookings/cleanup-duplicates", headers={"Authorization": "Bearer nope"}
    )
    allowed = await client.post(
        "/api/bookings/cleanup-duplicates", headers={"Authorization": "Bearer s3cret"}
    )

    assert denied.status_code == 401
    assert denied.json() == {"ok": False, "error": "Unauthorized"}
    assert wrong.status_code == 401
    assert allowed.status_code == 200
