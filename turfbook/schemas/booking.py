"""Booking schemas."""
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional, List, Dict, Any
from datetime import date, datetime, time
from decimal import Decimal

from turfbook.services.intervals import MIDNIGHT, format_range


class CustomerInfo(BaseModel):
    """Existing customer id, or name and phone to find-or-create."""

    id: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None

    @model_validator(mode="after")
    def _require_identity(self):
        if not self.id and not (self.name and self.phone):
            raise ValueError("customerInfo needs either id, or name and phone")
        return self


class SlotInterval(BaseModel):
    """A [start_time, end_time) interval on one day."""

    start_time: time
    end_time: time

    @field_validator("start_time", "end_time")
    @classmethod
    def _strip_microseconds(cls, value: time) -> time:
        return value.replace(microsecond=0)

    @model_validator(mode="after")
    def _check_order(self):
        if self.end_time == MIDNIGHT:
            raise ValueError("end_time 00:00:00 is not allowed; the last slot ends at 23:59:59")
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self

    def label(self) -> str:
        return format_range(self.start_time, self.end_time)


class BookingCreateRequest(BaseModel):
    """Body of the booking creation endpoint."""

    customer_info: CustomerInfo = Field(alias="customerInfo")
    selected_stations: List[str] = Field(alias="selectedStations", min_length=1)
    selected_date: date = Field(alias="selectedDate")
    selected_slot: SlotInterval = Field(alias="selectedSlot")
    original_price: Decimal = Field(default=Decimal("0"), alias="originalPrice", ge=0)
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    final_price: Decimal = Field(default=Decimal("0"), alias="finalPrice", ge=0)
    applied_coupons: Optional[Dict[str, str]] = Field(default=None, alias="appliedCoupons")
    order_id: Optional[str] = Field(default=None, alias="orderId")
    payment_mode: str = "venue"

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("selected_stations")
    @classmethod
    def _unique_stations(cls, value: List[str]) -> List[str]:
        # Keep first-seen order
        return list(dict.fromkeys(value))


class BookingCreateResponse(BaseModel):
    ok: bool = True
    booking_id: str = Field(serialization_alias="bookingId")
    booking_ids: List[str] = Field(serialization_alias="bookingIds")
    message: str = "Booking created successfully"


class BookingInDB(BaseModel):
    """Schema for booking from database."""

    id: str
    station_id: str
    customer_id: Optional[str] = None
    booking_date: date
    start_time: time
    end_time: time
    duration: int
    status: str
    original_price: Decimal
    discount_percentage: Optional[Decimal] = None
    final_price: Decimal
    coupon_code: Optional[str] = None
    payment_mode: Optional[str] = None
    payment_txn_id: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BookingConflict(BaseModel):
    """An existing active booking that blocks a proposed interval."""

    station_id: str
    station_name: Optional[str] = None
    existing_booking_id: str
    existing_start_time: time
    existing_end_time: time
    status: str


class ConflictCheckRequest(BaseModel):
    station_id: str
    booking_date: date
    start_time: time
    end_time: time
    exclude_booking_id: Optional[str] = None
    include_all: bool = False

    @model_validator(mode="after")
    def _check_order(self):
        if self.start_time >= self.end_time and self.end_time != MIDNIGHT:
            raise ValueError("start_time must be before end_time")
        return self


class ConflictCheckResponse(BaseModel):
    ok: bool = True
    station_id: str
    booking_date: date
    start_time: time
    end_time: time
    has_overlap: bool
    conflicting_bookings: List[BookingInDB]
    count: int
    all_bookings: Optional[List[BookingInDB]] = None


class PendingBookingData(BaseModel):
    """Booking payload stored with a pending online payment."""

    customer: CustomerInfo
    selected_stations: List[str] = Field(alias="selectedStations", min_length=1)
    selected_date: date = Field(alias="selectedDateISO")
    slots: List[SlotInterval] = Field(min_length=1)
    duration: Optional[int] = None
    pricing: Dict[str, Any] = {}

    model_config = ConfigDict(populate_by_name=True)
