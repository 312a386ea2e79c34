"""Booking endpoints."""
import logging
from datetime import date
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from turfbook.core.database import get_db
from turfbook.core.errors import BookingError, UpstreamError
from turfbook.schemas.booking import (
    BookingCreateRequest,
    BookingCreateResponse,
    ConflictCheckRequest,
    ConflictCheckResponse,
)
from turfbook.schemas.maintenance import (
    BlockingCleanupRequest,
    BlockingCleanupResult,
    SlotBoundaryReport,
)
from turfbook.services import booking_diagnostics
from turfbook.services.booking_service import booking_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bookings", tags=["bookings"])


@router.post("/create", response_model=BookingCreateResponse, response_model_by_alias=True)
async def create_booking(
    request: BookingCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Create a booking on one or more stations.

    Every selected station gets one confirmed booking for the selected slot,
    or none does. A slot already held by an active booking is rejected with
    409 and the conflicting time range.

    Args:
        request: Booking details
        db: Database session

    Returns:
        Created booking ids
    """
    try:
        return await booking_service.create_booking(db, request)
    except BookingError:
        raise
    except Exception as e:
        logger.error(
            f"Unexpected error creating booking: {e}; payload={request.model_dump(mode='json')}",
            exc_info=True,
        )
        raise UpstreamError(str(e), error="Unexpected error occurred")


@router.post("/find-conflict", response_model=ConflictCheckResponse)
async def find_conflict(
    request: ConflictCheckRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Show which active bookings overlap a proposed interval.

    With ``include_all`` every booking of that station and date is listed too.
    """
    try:
        return await booking_diagnostics.find_conflict(db, request)
    except BookingError:
        raise
    except Exception as e:
        logger.error(f"Error finding conflicting bookings: {e}", exc_info=True)
        raise UpstreamError(f"Failed to find conflicts: {e}")


@router.post("/cleanup-blocking", response_model=BlockingCleanupResult)
async def cleanup_blocking(
    request: BlockingCleanupRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Inspect the bookings blocking a slot, by default the last slot of the day.

    ``action="delete"`` removes the cancelled, completed and no-show rows
    among them. Active bookings are only reported.
    """
    try:
        return await booking_diagnostics.cleanup_blocking(db, request)
    except BookingError:
        raise
    except Exception as e:
        logger.error(f"Error cleaning up blocking bookings: {e}", exc_info=True)
        raise UpstreamError(f"Failed to clean up blocking bookings: {e}")


@router.get("/verify-slot-boundary", response_model=SlotBoundaryReport)
async def verify_slot_boundary(
    station_id: str = Query(..., description="Station ID"),
    date: date = Query(..., description="Date to check (YYYY-MM-DD)"),
    db: AsyncSession = Depends(get_db),
):
    """Check that the day's last slot ends at 23:59:59."""
    try:
        return await booking_diagnostics.verify_slot_boundary(db, station_id, date)
    except BookingError:
        raise
    except Exception as e:
        logger.error(f"Error verifying slot boundary: {e}", exc_info=True)
        raise UpstreamError(f"Failed to verify slot boundary: {e}")
