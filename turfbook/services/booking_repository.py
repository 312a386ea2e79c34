"""Booking repository - guarded writes to the bookings table."""
import logging
from typing import List, Sequence

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from turfbook.core.errors import ConflictError, UpstreamError
from turfbook.models.booking import Booking
from turfbook.models.station import Station
from turfbook.services.intervals import format_range, overlaps
from turfbook.services.overlap_validator import overlap_clause

logger = logging.getLogger(__name__)

OVERLAP_CONSTRAINT = "bookings_no_overlap"
EXCLUSION_VIOLATION = "23P01"
UNIQUE_VIOLATION = "23505"


def _is_overlap_violation(error: IntegrityError) -> bool:
    orig = getattr(error, "orig", None)
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code in (EXCLUSION_VIOLATION, UNIQUE_VIOLATION):
        return True
    return OVERLAP_CONSTRAINT in str(orig)


class BookingRepository:
    """Storage-side guard for booking inserts and id-batched deletes."""

    async def insert_bookings(self, db: AsyncSession, rows: Sequence[dict]) -> List[Booking]:
        """
        Insert booking rows after re-checking overlaps under a station lock.

        The station rows are locked (``SELECT ... FOR UPDATE``) so concurrent
        inserts for the same station serialize, then the overlap predicate is
        re-run inside the same transaction. On PostgreSQL the
        ``bookings_no_overlap`` exclusion constraint is the final word. The
        caller commits.

        Raises:
            ConflictError: another active booking holds an overlapping interval
        """
        station_ids = sorted({row["station_id"] for row in rows})
        await db.execute(
            select(Station.id).where(Station.id.in_(station_ids)).with_for_update()
        )

        seen: dict = {}
        for row in rows:
            key = (row["station_id"], row["booking_date"])
            for start, end in seen.get(key, []):
                if overlaps(row["start_time"], row["end_time"], start, end):
                    raise ConflictError(
                        f"Requested intervals overlap each other ({format_range(start, end)})"
                    )
            seen.setdefault(key, []).append((row["start_time"], row["end_time"]))

            result = await db.execute(
                select(Booking).where(
                    overlap_clause(
                        row["station_id"], row["booking_date"], row["start_time"], row["end_time"]
                    )
                )
            )
            existing = result.scalars().first()
            if existing:
                logger.warning(
                    f"Storage guard rejected booking for station {row['station_id']} on "
                    f"{row['booking_date']} {format_range(row['start_time'], row['end_time'])}: "
                    f"overlaps {existing.id}"
                )
                raise ConflictError(
                    f"This time slot ({format_range(existing.start_time, existing.end_time)}) "
                    "is already booked. Please select a different time.",
                    conflicts=[
                        {
                            "station_id": existing.station_id,
                            "existing_booking_id": existing.id,
                            "existing_start_time": existing.start_time.isoformat(),
                            "existing_end_time": existing.end_time.isoformat(),
                        }
                    ],
                )

        bookings = [Booking(**row) for row in rows]
        db.add_all(bookings)

        try:
            await db.flush()
        except IntegrityError as e:
            if _is_overlap_violation(e):
                logger.warning(f"Database constraint rejected overlapping booking: {e.orig}")
                ranges = ", ".join(
                    dict.fromkeys(format_range(r["start_time"], r["end_time"]) for r in rows)
                )
                raise ConflictError(
                    f"This time slot ({ranges}) is already booked on station(s) "
                    f"{', '.join(station_ids)}. Please select a different time.",
                    conflicts=[
                        {
                            "station_id": r["station_id"],
                            "start_time": r["start_time"].isoformat(),
                            "end_time": r["end_time"].isoformat(),
                        }
                        for r in rows
                    ],
                ) from e
            raise UpstreamError(f"Failed to create booking: {e.orig}") from e

        return bookings

    async def find_by_payment_txn(self, db: AsyncSession, payment_txn_id: str) -> List[Booking]:
        result = await db.execute(
            select(Booking).where(Booking.payment_txn_id == payment_txn_id)
        )
        return list(result.scalars().all())

    async def delete_by_ids(self, db: AsyncSession, booking_ids: Sequence[str]) -> List[str]:
        """Delete exactly the listed bookings and commit. Returns the ids actually deleted."""
        result = await db.execute(
            delete(Booking)
            .where(Booking.id.in_(list(booking_ids)))
            .returning(Booking.id)
            .execution_options(synchronize_session=False)
        )
        deleted = list(result.scalars().all())
        await db.commit()
        return deleted


# Singleton instance
booking_repository = BookingRepository()
