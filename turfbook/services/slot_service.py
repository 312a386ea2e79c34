"""Slot generation for stations."""
import logging
from typing import Iterable, List, Optional, Sequence
from datetime import date, datetime, time as dt_time
import pytz
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from turfbook.core.config import settings
from turfbook.core.errors import ConfigurationError, NotFoundError, ValidationError
from turfbook.models.booking import Booking, ACTIVE_STATUSES
from turfbook.models.station import Station
from turfbook.schemas.slot import (
    TimeSlot,
    CombinedTimeSlot,
    SlotListResponse,
    CombinedSlotListResponse,
)
from turfbook.services.intervals import (
    from_minutes,
    normalize_end,
    overlaps,
    to_minutes,
)

logger = logging.getLogger(__name__)


def validate_slot_duration(opening: dt_time, closing: dt_time, duration: int) -> int:
    """Check that ``duration`` tiles the operating window exactly.

    Returns:
        Length of the operating window in minutes

    Raises:
        ConfigurationError: duration is not positive or does not divide the window
    """
    window = to_minutes(closing) - to_minutes(opening)
    if window <= 0:
        raise ConfigurationError(
            f"Opening time {opening} must be before closing time {closing}"
        )
    if not isinstance(duration, int) or duration <= 0:
        raise ConfigurationError(f"Slot duration must be a positive number of minutes, got {duration}")
    if window % duration != 0:
        raise ConfigurationError(
            f"Slot duration {duration} does not evenly divide the {window} minute operating window"
        )
    return window


def generate_slots(
    opening: dt_time,
    closing: dt_time,
    duration: int,
    bookings: Iterable,
    target_date: Optional[date] = None,
    now: Optional[datetime] = None,
) -> List[TimeSlot]:
    """
    Build the ordered slot grid for one station and one date.

    The result depends only on the arguments. Slots are contiguous, each
    ``duration`` minutes long, and the last one ends at 23:59:59 when the
    venue closes at the end of the day.

    Args:
        opening: First slot start
        closing: Closing time; 23:59:59 means end of day
        duration: Slot length in minutes
        bookings: Bookings of this station on this date (any status)
        target_date: Date the slots belong to, used with ``now``
        now: Venue-local current time; slots already started today are elapsed

    Returns:
        List of time slots
    """
    window = validate_slot_duration(opening, closing, duration)

    blocking = [
        (b.start_time, normalize_end(b.end_time))
        for b in bookings
        if b.status in ACTIVE_STATUSES
    ]

    is_today = now is not None and target_date is not None and now.date() == target_date
    start_minute = to_minutes(opening)

    slots = []
    for offset in range(0, window, duration):
        start = from_minutes(start_minute + offset)
        end = from_minutes(start_minute + offset + duration)

        if is_today and (start.hour, start.minute) <= (now.hour, now.minute):
            status = "elapsed"
        elif any(overlaps(start, end, b_start, b_end) for b_start, b_end in blocking):
            status = "booked"
        else:
            status = "available"

        slots.append(
            TimeSlot(
                start_time=start,
                end_time=end,
                is_available=status == "available",
                status=status,
            )
        )

    return slots


def venue_now() -> datetime:
    """Current wall-clock time at the venue."""
    return datetime.now(pytz.timezone(settings.VENUE_TIMEZONE))


class SlotService:
    """Service for listing bookable slots."""

    def __init__(
        self,
        opening: Optional[dt_time] = None,
        closing: Optional[dt_time] = None,
        default_duration: Optional[int] = None,
    ):
        self.opening = opening or settings.OPENING_TIME
        self.closing = closing or settings.CLOSING_TIME
        self.default_duration = default_duration or settings.DEFAULT_SLOT_DURATION_MINUTES

    async def get_station(self, db: AsyncSession, station_id: str) -> Station:
        result = await db.execute(select(Station).where(Station.id == station_id))
        station = result.scalar_one_or_none()

        if not station:
            raise NotFoundError(f"Station {station_id} not found", error="Station not found")

        return station

    async def _bookings_for(
        self, db: AsyncSession, station_ids: Sequence[str], target_date: date
    ) -> List[Booking]:
        result = await db.execute(
            select(Booking).where(
                and_(
                    Booking.station_id.in_(station_ids),
                    Booking.booking_date == target_date,
                    Booking.status.in_(ACTIVE_STATUSES),
                )
            )
        )
        return list(result.scalars().all())

    async def get_available_slots(
        self,
        db: AsyncSession,
        station_id: str,
        target_date: date,
        slot_duration: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> SlotListResponse:
        """
        Get the slot grid for a station on a date.

        Bookings are re-read on every call.

        Args:
            db: Database session
            station_id: Station ID
            target_date: Date to list
            slot_duration: Slot length in minutes (defaults to configured value)
            now: Override for the venue-local current time

        Returns:
            SlotListResponse with availability flags
        """
        duration = self.default_duration if slot_duration is None else slot_duration
        validate_slot_duration(self.opening, self.closing, duration)

        station = await self.get_station(db, station_id)
        bookings = await self._bookings_for(db, [station_id], target_date)

        slots = generate_slots(
            self.opening,
            self.closing,
            duration,
            bookings,
            target_date=target_date,
            now=now or venue_now(),
        )

        logger.info(
            f"Listed {len(slots)} slots for station {station.name} ({station_id}) on {target_date}: "
            f"{sum(1 for s in slots if s.is_available)} available"
        )

        return SlotListResponse(
            station_id=station.id,
            station_name=station.name,
            date=target_date,
            slot_duration=duration,
            slots=slots,
        )

    async def get_combined_slots(
        self,
        db: AsyncSession,
        station_ids: Sequence[str],
        target_date: date,
        slot_duration: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> CombinedSlotListResponse:
        """
        Get one slot grid for several stations.

        A slot is available when at least one of the stations is free; the
        free stations are listed on each slot so callers can drop the others.
        """
        if not station_ids:
            raise ValidationError("At least one station is required")

        duration = self.default_duration if slot_duration is None else slot_duration
        validate_slot_duration(self.opening, self.closing, duration)

        for station_id in station_ids:
            await self.get_station(db, station_id)

        bookings = await self._bookings_for(db, station_ids, target_date)
        current = now or venue_now()

        per_station = {
            station_id: generate_slots(
                self.opening,
                self.closing,
                duration,
                [b for b in bookings if b.station_id == station_id],
                target_date=target_date,
                now=current,
            )
            for station_id in station_ids
        }

        combined = []
        for index, base in enumerate(per_station[station_ids[0]]):
            free = [sid for sid in station_ids if per_station[sid][index].is_available]
            if free:
                status = "available"
            elif base.status == "elapsed":
                status = "elapsed"
            else:
                status = "booked"
            combined.append(
                CombinedTimeSlot(
                    start_time=base.start_time,
                    end_time=base.end_time,
                    is_available=bool(free),
                    status=status,
                    available_station_ids=free,
                )
            )

        return CombinedSlotListResponse(
            station_ids=list(station_ids),
            date=target_date,
            slot_duration=duration,
            slots=combined,
        )


# Singleton instance
slot_service = SlotService()
