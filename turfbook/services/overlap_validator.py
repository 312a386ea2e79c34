"""Overlap validation for proposed bookings."""
import logging
from typing import Dict, List, Optional, Sequence
from datetime import date, time as dt_time
from sqlalchemy import select, and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from turfbook.core.errors import ValidatorUnavailableError
from turfbook.models.booking import Booking, ACTIVE_STATUSES
from turfbook.models.station import Station
from turfbook.schemas.booking import BookingConflict
from turfbook.services.intervals import MIDNIGHT, format_range, normalize_end

logger = logging.getLogger(__name__)


def overlap_clause(
    station_id: str,
    booking_date: date,
    start_time: dt_time,
    end_time: dt_time,
    exclude_booking_id: Optional[str] = None,
):
    """SQL form of ``existing.start < end AND start < existing.end`` for active rows.

    Rows still stored with a 00:00:00 end count as ending at 23:59:59.
    """
    end_time = normalize_end(end_time)
    conditions = [
        Booking.station_id == station_id,
        Booking.booking_date == booking_date,
        Booking.status.in_(ACTIVE_STATUSES),
        Booking.start_time < end_time,
        or_(Booking.end_time > start_time, Booking.end_time == MIDNIGHT),
    ]
    if exclude_booking_id:
        conditions.append(Booking.id != exclude_booking_id)
    return and_(*conditions)


def conflict_message(conflicts: Sequence[BookingConflict]) -> str:
    """Human-readable message naming the blocking time range and station."""
    if not conflicts:
        return ""

    if len(conflicts) == 1:
        conflict = conflicts[0]
        return (
            f"This time slot is already booked for {conflict.station_name or 'this station'} "
            f"({format_range(conflict.existing_start_time, conflict.existing_end_time)}). "
            "Please select a different time."
        )

    names = list(dict.fromkeys(c.station_name or "Unknown Station" for c in conflicts))
    ranges = ", ".join(
        f"{c.station_name or 'Unknown Station'} {format_range(c.existing_start_time, c.existing_end_time)}"
        for c in conflicts
    )
    return (
        f"These time slots are already booked for {', '.join(names)} ({ranges}). "
        "Please select different times."
    )


class OverlapValidator:
    """Decides whether a proposed interval conflicts with active bookings."""

    async def find_conflicts(
        self,
        db: AsyncSession,
        station_id: str,
        booking_date: date,
        start_time: dt_time,
        end_time: dt_time,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """
        Find active bookings overlapping [start_time, end_time).

        Args:
            db: Database session
            station_id: Station ID
            booking_date: Calendar date
            start_time: Proposed start
            end_time: Proposed end
            exclude_booking_id: Booking to ignore, when editing it

        Returns:
            Conflicting bookings ordered by start time

        Raises:
            ValidatorUnavailableError: the check itself could not run
        """
        try:
            result = await db.execute(
                select(Booking)
                .where(
                    overlap_clause(
                        station_id, booking_date, start_time, end_time, exclude_booking_id
                    )
                )
                .order_by(Booking.start_time)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(
                f"Conflict check failed for station {station_id} on {booking_date} "
                f"{format_range(start_time, end_time)}: {e}",
                exc_info=True,
            )
            raise ValidatorUnavailableError(
                f"Could not verify availability for station {station_id}: {e}"
            ) from e

    async def check_overlap(
        self,
        db: AsyncSession,
        station_id: str,
        booking_date: date,
        start_time: dt_time,
        end_time: dt_time,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        conflicts = await self.find_conflicts(
            db, station_id, booking_date, start_time, end_time, exclude_booking_id
        )
        return len(conflicts) > 0

    async def check_stations(
        self,
        db: AsyncSession,
        station_ids: Sequence[str],
        booking_date: date,
        start_time: dt_time,
        end_time: dt_time,
    ) -> List[BookingConflict]:
        """Check every station and describe each conflict found."""
        conflicts: List[BookingConflict] = []
        names: Dict[str, str] = {}

        for station_id in station_ids:
            bookings = await self.find_conflicts(
                db, station_id, booking_date, start_time, end_time
            )
            if not bookings:
                continue

            if station_id not in names:
                try:
                    result = await db.execute(
                        select(Station.name).where(Station.id == station_id)
                    )
                    names[station_id] = result.scalar_one_or_none()
                except SQLAlchemyError as e:
                    raise ValidatorUnavailableError(str(e)) from e

            for booking in bookings:
                conflicts.append(
                    BookingConflict(
                        station_id=station_id,
                        station_name=names[station_id],
                        existing_booking_id=booking.id,
                        existing_start_time=booking.start_time,
                        existing_end_time=booking.end_time,
                        status=booking.status,
                    )
                )

        return conflicts


# Singleton instance
overlap_validator = OverlapValidator()
