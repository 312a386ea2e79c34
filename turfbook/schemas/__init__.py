"""API schemas."""
from turfbook.schemas.station import (
    StationCreate,
    StationUpdate,
    StationInDB,
)
from turfbook.schemas.slot import (
    TimeSlot,
    CombinedTimeSlot,
    SlotListResponse,
    CombinedSlotListResponse,
)
from turfbook.schemas.booking import (
    CustomerInfo,
    SlotInterval,
    BookingCreateRequest,
    BookingCreateResponse,
    BookingInDB,
    BookingConflict,
    ConflictCheckRequest,
    ConflictCheckResponse,
    PendingBookingData,
)
from turfbook.schemas.maintenance import (
    DuplicateCleanupResult,
    ReconciliationItem,
    ReconciliationResult,
    BlockingCleanupRequest,
    BlockingCleanupResult,
    SlotBoundaryReport,
)

__all__ = [
    "StationCreate",
    "StationUpdate",
    "StationInDB",
    "TimeSlot",
    "CombinedTimeSlot",
    "SlotListResponse",
    "CombinedSlotListResponse",
    "CustomerInfo",
    "SlotInterval",
    "BookingCreateRequest",
    "BookingCreateResponse",
    "BookingInDB",
    "BookingConflict",
    "ConflictCheckRequest",
    "ConflictCheckResponse",
    "PendingBookingData",
    "DuplicateCleanupResult",
    "ReconciliationItem",
    "ReconciliationResult",
    "BlockingCleanupRequest",
    "BlockingCleanupResult",
    "SlotBoundaryReport",
]
