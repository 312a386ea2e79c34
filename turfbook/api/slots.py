"""Slot availability endpoints."""
import logging
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from turfbook.core.database import get_db
from turfbook.core.errors import BookingError, UpstreamError, ValidationError
from turfbook.schemas.slot import SlotListResponse, CombinedSlotListResponse
from turfbook.services.slot_service import slot_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["slots"])


@router.get("/stations/{station_id}/slots", response_model=SlotListResponse)
async def get_station_slots(
    station_id: str,
    date: date = Query(..., description="Date to list (YYYY-MM-DD)"),
    slot_duration: Optional[int] = Query(default=None, description="Slot length in minutes"),
    db: AsyncSession = Depends(get_db),
):
    """
    List the slots of one station for a date.

    Every slot of the operating day is returned with its availability;
    booked and elapsed slots are flagged rather than omitted.

    Args:
        station_id: Station ID
        date: Date to list
        slot_duration: Slot length in minutes (defaults to the configured value)
        db: Database session

    Returns:
        Slot list
    """
    try:
        return await slot_service.get_available_slots(db, station_id, date, slot_duration)
    except BookingError:
        raise
    except Exception as e:
        logger.error(f"Failed to list slots for station {station_id} on {date}: {e}", exc_info=True)
        raise UpstreamError(f"Failed to list slots: {e}")


@router.get("/slots", response_model=CombinedSlotListResponse)
async def get_combined_slots(
    date: date = Query(..., description="Date to list (YYYY-MM-DD)"),
    station_ids: str = Query(..., description="Comma-separated station IDs"),
    slot_duration: Optional[int] = Query(default=None, description="Slot length in minutes"),
    db: AsyncSession = Depends(get_db),
):
    """
    List slots across several stations.

    A slot is available if any of the stations is free; each slot lists the
    free stations.
    """
    ids = list(dict.fromkeys(s.strip() for s in station_ids.split(",") if s.strip()))
    if not ids:
        raise ValidationError("station_ids must list at least one station")

    try:
        return await slot_service.get_combined_slots(db, ids, date, slot_duration)
    except BookingError:
        raise
    except Exception as e:
        logger.error(f"Failed to list combined slots for {ids} on {date}: {e}", exc_info=True)
        raise UpstreamError(f"Failed to list slots: {e}")
