"""Diagnostics for slots that look blocked."""
import logging
from datetime import date
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from turfbook.models.booking import Booking, ACTIVE_STATUSES, INACTIVE_STATUSES
from turfbook.schemas.booking import BookingInDB, ConflictCheckRequest, ConflictCheckResponse
from turfbook.schemas.maintenance import (
    BlockingCleanupRequest,
    BlockingCleanupResult,
    SlotBoundaryReport,
)
from turfbook.schemas.slot import TimeSlot
from turfbook.services.booking_repository import booking_repository
from turfbook.services.intervals import END_OF_DAY, MIDNIGHT, normalize_end, overlaps
from turfbook.services.overlap_validator import overlap_validator
from turfbook.services.slot_service import slot_service

logger = logging.getLogger(__name__)


async def _day_bookings(db: AsyncSession, station_id: str, booking_date: date):
    result = await db.execute(
        select(Booking)
        .where(and_(Booking.station_id == station_id, Booking.booking_date == booking_date))
        .order_by(Booking.start_time)
    )
    return list(result.scalars().all())


async def find_conflict(db: AsyncSession, request: ConflictCheckRequest) -> ConflictCheckResponse:
    """List the active bookings overlapping a proposed interval."""
    logger.info(
        f"Finding conflicting bookings: station={request.station_id} date={request.booking_date} "
        f"{request.start_time}-{request.end_time}"
    )
    conflicts = await overlap_validator.find_conflicts(
        db,
        request.station_id,
        request.booking_date,
        request.start_time,
        request.end_time,
        request.exclude_booking_id,
    )

    all_bookings = None
    if request.include_all:
        all_bookings = [
            BookingInDB.model_validate(b)
            for b in await _day_bookings(db, request.station_id, request.booking_date)
        ]

    return ConflictCheckResponse(
        station_id=request.station_id,
        booking_date=request.booking_date,
        start_time=request.start_time,
        end_time=request.end_time,
        has_overlap=bool(conflicts),
        conflicting_bookings=[BookingInDB.model_validate(b) for b in conflicts],
        count=len(conflicts),
        all_bookings=all_bookings,
    )


async def cleanup_blocking(db: AsyncSession, request: BlockingCleanupRequest) -> BlockingCleanupResult:
    """
    Find bookings of any status overlapping a probe slot.

    With ``action == "delete"`` the non-active ones (cancelled, completed,
    no-show) are removed. Active bookings are never deleted here.
    """
    probe_end = normalize_end(request.end_time)
    logger.info(
        f"Checking for bookings blocking {request.start_time}-{probe_end}: "
        f"station={request.station_id} date={request.booking_date} action={request.action}"
    )

    await slot_service.get_station(db, request.station_id)
    bookings = await _day_bookings(db, request.station_id, request.booking_date)
    blocking = [
        b
        for b in bookings
        if overlaps(b.start_time, normalize_end(b.end_time), request.start_time, probe_end)
    ]

    has_overlap = await overlap_validator.check_overlap(
        db, request.station_id, request.booking_date, request.start_time, probe_end
    )

    deleted_count = 0
    if request.action == "delete":
        removable = [b.id for b in blocking if b.status in INACTIVE_STATUSES]
        if removable:
            deleted_count = len(await booking_repository.delete_by_ids(db, removable))
            logger.info(f"Deleted {deleted_count} non-active blocking booking(s)")

    return BlockingCleanupResult(
        station_id=request.station_id,
        booking_date=request.booking_date,
        test_slot=TimeSlot(
            start_time=request.start_time,
            end_time=probe_end,
            is_available=not has_overlap,
            status="booked" if has_overlap else "available",
        ),
        has_overlap=has_overlap,
        blocking_bookings=[BookingInDB.model_validate(b) for b in blocking],
        blocking_count=len(blocking),
        deleted_count=deleted_count,
        action_taken=request.action,
    )


async def verify_slot_boundary(db: AsyncSession, station_id: str, target_date: date) -> SlotBoundaryReport:
    """Check that the day grid ends at 23:59:59 and find rows still ending at 00:00:00."""
    listing = await slot_service.get_available_slots(db, station_id, target_date)
    last_slot = listing.slots[-1] if listing.slots else None
    uses_2359 = last_slot is not None and last_slot.end_time == END_OF_DAY
    uses_0000 = last_slot is not None and last_slot.end_time == MIDNIGHT

    result = await db.execute(
        select(Booking).where(
            and_(
                Booking.station_id == station_id,
                Booking.booking_date == target_date,
                Booking.status.in_(ACTIVE_STATUSES),
                Booking.end_time == MIDNIGHT,
            )
        )
    )
    legacy = list(result.scalars().all())

    if uses_2359 and not legacy:
        message = "Slots end at 23:59:59"
    elif uses_2359:
        message = f"Slots end at 23:59:59 but {len(legacy)} active booking(s) still end at 00:00:00"
    elif uses_0000:
        message = "Slots still end at 00:00:00"
    else:
        message = "Last slot ends before the end of the day"

    return SlotBoundaryReport(
        station_id=station_id,
        date=target_date,
        total_slots=len(listing.slots),
        last_slot=last_slot,
        uses_2359=uses_2359,
        uses_0000=uses_0000,
        bookings_with_midnight_end=[BookingInDB.model_validate(b) for b in legacy],
        message=message,
    )
