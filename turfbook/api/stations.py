"""Station endpoints."""
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from turfbook.core.database import get_db
from turfbook.core.errors import NotFoundError
from turfbook.models.station import Station
from turfbook.schemas.station import StationCreate, StationUpdate, StationInDB

router = APIRouter(prefix="/api/stations", tags=["stations"])


async def _get_station_or_404(db: AsyncSession, station_id: str) -> Station:
    result = await db.execute(select(Station).where(Station.id == station_id))
    station = result.scalar_one_or_none()

    if not station:
        raise NotFoundError(f"Station {station_id} not found", error="Station not found")

    return station


@router.post("", response_model=StationInDB, status_code=201)
async def create_station(
    station: StationCreate,
    db: AsyncSession = Depends(get_db),
):
    """
    Create a new station.

    Args:
        station: Station data
        db: Database session

    Returns:
        Created station
    """
    db_station = Station(**station.model_dump())
    db.add(db_station)
    await db.commit()
    await db.refresh(db_station)

    return db_station


@router.get("", response_model=List[StationInDB])
async def list_stations(
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(get_db),
):
    """
    List all stations.

    Args:
        skip: Number of records to skip
        limit: Maximum number of records to return
        db: Database session

    Returns:
        List of stations
    """
    result = await db.execute(
        select(Station).order_by(Station.name).offset(skip).limit(limit)
    )
    return result.scalars().all()


@router.get("/{station_id}", response_model=StationInDB)
async def get_station(
    station_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Get a specific station by ID."""
    return await _get_station_or_404(db, station_id)


@router.patch("/{station_id}", response_model=StationInDB)
async def update_station(
    station_id: str,
    station_update: StationUpdate,
    db: AsyncSession = Depends(get_db),
):
    """
    Update a station's information.

    Args:
        station_id: Station ID
        station_update: Fields to update
        db: Database session

    Returns:
        Updated station
    """
    station = await _get_station_or_404(db, station_id)

    update_data = station_update.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(station, field, value)

    await db.commit()
    await db.refresh(station)

    return station


@router.delete("/{station_id}", status_code=204)
async def delete_station(
    station_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Delete a station and its bookings."""
    station = await _get_station_or_404(db, station_id)

    await db.delete(station)
    await db.commit()
