"""Maintenance job schemas."""
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List
from datetime import date, time

from turfbook.schemas.booking import BookingInDB
from turfbook.schemas.slot import TimeSlot
from turfbook.services.intervals import END_OF_DAY


class CamelModel(BaseModel):
    """Serialises snake_case fields as camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DuplicateCleanupResult(CamelModel):
    """Summary of one duplicate cleanup pass."""

    ok: bool = True
    processed: int = 0
    duplicates_found: int = 0
    duplicates_deleted: int = 0
    duplicate_groups: int = 0
    failed_groups: int = 0
    deleted_booking_ids: List[str] = []
    message: str = ""
    skipped: bool = False


class ReconciliationItem(CamelModel):
    order_id: str
    status: str  # success, failed, conflict, error
    booking_id: Optional[str] = None
    error: Optional[str] = None


class ReconciliationResult(CamelModel):
    """Summary of one pending payment reconciliation pass."""

    ok: bool = True
    processed: int = 0
    successful: int = 0
    failed: int = 0
    results: List[ReconciliationItem] = []
    message: str = ""
    skipped: bool = False


class BlockingCleanupRequest(BaseModel):
    """Probe a slot and optionally delete the non-active rows blocking it."""

    station_id: str
    booking_date: date
    start_time: time = time(23, 30)
    end_time: time = END_OF_DAY
    action: str = Field(default="find", pattern="^(find|delete)$")


class BlockingCleanupResult(BaseModel):
    ok: bool = True
    station_id: str
    booking_date: date
    test_slot: TimeSlot
    has_overlap: bool
    blocking_bookings: List[BookingInDB]
    blocking_count: int
    deleted_count: int
    action_taken: str


class SlotBoundaryReport(BaseModel):
    """Whether the generated day ends at 23:59:59 and which rows still use 00:00:00."""

    ok: bool = True
    station_id: str
    date: date
    total_slots: int
    last_slot: Optional[TimeSlot] = None
    uses_2359: bool
    uses_0000: bool
    bookings_with_midnight_end: List[BookingInDB]
    message: str
