"""Time slot schemas."""
from pydantic import BaseModel
from typing import List
from datetime import date, time


class TimeSlot(BaseModel):
    """A candidate bookable interval. Derived on every query, never stored."""

    start_time: time
    end_time: time
    is_available: bool
    status: str = "available"  # available, booked, elapsed


class CombinedTimeSlot(TimeSlot):
    """A slot evaluated across several stations."""

    available_station_ids: List[str] = []


class SlotListResponse(BaseModel):
    """Schema for the slots of one station on one date."""

    ok: bool = True
    station_id: str
    station_name: str
    date: date
    slot_duration: int
    slots: List[TimeSlot]


class CombinedSlotListResponse(BaseModel):
    """Schema for slots merged across several stations."""

    ok: bool = True
    station_ids: List[str]
    date: date
    slot_duration: int
    slots: List[CombinedTimeSlot]
