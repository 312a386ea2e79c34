"""Duplicate booking cleanup."""
import logging
from typing import Dict, List, Tuple
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from turfbook.core.errors import UpstreamError
from turfbook.models.booking import Booking, ACTIVE_STATUSES
from turfbook.schemas.maintenance import DuplicateCleanupResult
from turfbook.services.booking_repository import booking_repository

logger = logging.getLogger(__name__)


def slot_key(booking: Booking) -> Tuple:
    return (booking.station_id, booking.booking_date, booking.start_time, booking.end_time)


def plan_duplicate_deletions(bookings: List[Booking]) -> List[Tuple[Tuple, Booking, List[str]]]:
    """
    Group bookings by (station, date, start, end) and pick the rows to delete.

    ``bookings`` must already be ordered oldest first; the first row of each
    group is kept.

    Returns:
        (key, kept booking, ids to delete) for every group with more than one row
    """
    groups: Dict[Tuple, List[Booking]] = {}
    for booking in bookings:
        groups.setdefault(slot_key(booking), []).append(booking)

    return [
        (key, members[0], [b.id for b in members[1:]])
        for key, members in groups.items()
        if len(members) > 1
    ]


class DuplicateBookingCleaner:
    """Deletes all but the oldest active booking of every identical slot."""

    async def cleanup(self, db: AsyncSession) -> DuplicateCleanupResult:
        """
        Run one cleanup pass.

        Active bookings are read oldest first (ties broken by id), grouped by
        slot, and every group's extra rows are deleted by explicit id. A group
        whose delete fails is logged and skipped; the pass continues.

        Args:
            db: Database session

        Returns:
            DuplicateCleanupResult summary
        """
        logger.info("Checking for duplicate bookings...")

        try:
            result = await db.execute(
                select(Booking)
                .where(Booking.status.in_(ACTIVE_STATUSES))
                .order_by(Booking.created_at.asc(), Booking.id.asc())
            )
            bookings = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch bookings for duplicate cleanup: {e}", exc_info=True)
            raise UpstreamError(f"Failed to fetch bookings: {e}") from e

        if not bookings:
            return DuplicateCleanupResult(message="No bookings to check")

        plan = plan_duplicate_deletions(bookings)

        if not plan:
            logger.info("No duplicate bookings found")
            return DuplicateCleanupResult(
                processed=len(bookings),
                message="No duplicates found",
            )

        logger.info(f"Found {len(plan)} duplicate groups")

        duplicates_found = sum(len(ids) + 1 for _, _, ids in plan)
        # A rollback expires loaded rows, so only plain values are used below
        groups = [("|".join(str(part) for part in key), kept.id, ids) for key, kept, ids in plan]
        deleted_ids: List[str] = []
        failed_groups = 0

        for label, kept_id, ids in groups:
            logger.info(f"Duplicate group {label}: keeping {kept_id}, deleting {len(ids)}")

            try:
                deleted = await booking_repository.delete_by_ids(db, ids)
            except SQLAlchemyError as e:
                await db.rollback()
                failed_groups += 1
                logger.error(f"Error deleting duplicates for group {label}: {e}", exc_info=True)
                continue

            if len(deleted) < len(ids):
                logger.info(f"Group {label}: {len(ids) - len(deleted)} row(s) already gone")
            deleted_ids.extend(deleted)

        if deleted_ids:
            message = f"Deleted {len(deleted_ids)} duplicate booking(s) from {len(plan)} group(s)"
        else:
            message = "No duplicates to delete"
        if failed_groups:
            message += f"; {failed_groups} group(s) failed"

        logger.info(f"Cleanup complete: {message}")

        return DuplicateCleanupResult(
            processed=len(bookings),
            duplicates_found=duplicates_found,
            duplicates_deleted=len(deleted_ids),
            duplicate_groups=len(plan),
            failed_groups=failed_groups,
            deleted_booking_ids=deleted_ids,
            message=message,
        )


# Singleton instance
duplicate_cleaner = DuplicateBookingCleaner()
