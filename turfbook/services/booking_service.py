"""Booking creation flow."""
import logging
import re
import time
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence, Tuple
from datetime import date, time as dt_time
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from turfbook.core.errors import (
    ConflictError,
    NotFoundError,
    UpstreamError,
    ValidationError,
    ValidatorUnavailableError,
)
from turfbook.models.booking import Booking, BookingStatus
from turfbook.models.customer import Customer
from turfbook.models.station import Station
from turfbook.schemas.booking import (
    BookingCreateRequest,
    BookingCreateResponse,
    CustomerInfo,
)
from turfbook.services.booking_repository import booking_repository
from turfbook.services.intervals import duration_minutes
from turfbook.services.overlap_validator import conflict_message, overlap_validator

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def normalize_phone(phone: str) -> str:
    """Strip everything but digits."""
    return re.sub(r"\D", "", phone or "")


def generate_customer_id(phone: str) -> str:
    """Short human-readable customer code: CUE + last 4 digits + time suffix."""
    millis = int(time.time() * 1000)
    suffix = ""
    while millis:
        millis, rem = divmod(millis, 36)
        suffix = BASE36[rem] + suffix
    return f"CUE{normalize_phone(phone)[-4:]}{suffix[-4:].upper()}"


@dataclass
class Pricing:
    """Totals for one booking transaction, split evenly across its rows."""

    original: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    final: Decimal = Decimal("0")
    coupon_code: Optional[str] = None

    def per_row(self, rows: int) -> Tuple[Decimal, Decimal]:
        return (
            (self.original / rows).quantize(CENT, rounding=ROUND_HALF_UP),
            (self.final / rows).quantize(CENT, rounding=ROUND_HALF_UP),
        )

    @property
    def discount_percentage(self) -> Optional[Decimal]:
        if self.discount > 0 and self.original > 0:
            return (self.discount / self.original * 100).quantize(CENT, rounding=ROUND_HALF_UP)
        return None


class BookingService:
    """Resolves the customer, checks every station, then inserts all rows or none."""

    async def resolve_customer(self, db: AsyncSession, info: CustomerInfo) -> Customer:
        """
        Find the customer by id or phone, creating one if needed.

        Args:
            db: Database session
            info: Customer id, or name and phone

        Returns:
            Customer row
        """
        if info.id:
            result = await db.execute(select(Customer).where(Customer.id == info.id))
            customer = result.scalar_one_or_none()
            if not customer:
                raise NotFoundError(f"Customer {info.id} not found", error="Customer not found")
            return customer

        phone = normalize_phone(info.phone)
        if not phone:
            raise ValidationError("Customer phone number must contain digits")

        logger.info(f"Searching for existing customer with phone: {phone}")
        result = await db.execute(select(Customer).where(Customer.phone == phone))
        customer = result.scalar_one_or_none()
        if customer:
            logger.info(f"Found existing customer: {customer.id}")
            return customer

        logger.info("Creating new customer")
        customer = Customer(
            name=info.name,
            phone=phone,
            email=info.email or None,
            custom_id=generate_customer_id(phone),
        )
        db.add(customer)
        try:
            await db.commit()
        except IntegrityError:
            # Another request created the same phone number first
            await db.rollback()
            result = await db.execute(select(Customer).where(Customer.phone == phone))
            customer = result.scalar_one_or_none()
            if not customer:
                raise UpstreamError("Customer creation failed: duplicate phone number")
            return customer

        await db.refresh(customer)
        logger.info(f"New customer created: {customer.id}")
        return customer

    async def _require_stations(self, db: AsyncSession, station_ids: Sequence[str]) -> None:
        result = await db.execute(select(Station.id).where(Station.id.in_(list(station_ids))))
        found = set(result.scalars().all())
        missing = [sid for sid in station_ids if sid not in found]
        if missing:
            raise NotFoundError(
                f"Unknown station(s): {', '.join(missing)}", error="Station not found"
            )

    async def book(
        self,
        db: AsyncSession,
        customer_id: str,
        station_ids: Sequence[str],
        booking_date: date,
        intervals: Sequence[Tuple[dt_time, dt_time]],
        pricing: Pricing,
        payment_mode: str = "venue",
        payment_txn_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> List[Booking]:
        """
        Create one confirmed booking per (station, interval), all or nothing.

        Every station is checked with the overlap validator first; any conflict
        aborts the whole transaction. The insert itself is guarded again by
        the repository, whose rejection is reported the same way.

        Raises:
            ConflictError: any station/interval is already taken
            ValidatorUnavailableError: the pre-check could not run
        """
        if not station_ids or not intervals:
            raise ValidationError("At least one station and one time slot are required")

        await self._require_stations(db, station_ids)

        conflicts = []
        for start, end in intervals:
            conflicts.extend(
                await overlap_validator.check_stations(db, station_ids, booking_date, start, end)
            )
        if conflicts:
            message = conflict_message(conflicts)
            logger.warning(f"Booking conflict detected on {booking_date}: {message}")
            raise ConflictError(message, conflicts=[c.model_dump(mode="json") for c in conflicts])

        total_rows = len(station_ids) * len(intervals)
        original_each, final_each = pricing.per_row(total_rows)

        rows = [
            dict(
                station_id=station_id,
                customer_id=customer_id,
                booking_date=booking_date,
                start_time=start,
                end_time=end,
                duration=duration_minutes(start, end),
                status=BookingStatus.CONFIRMED.value,
                original_price=original_each,
                discount_percentage=pricing.discount_percentage,
                final_price=final_each,
                coupon_code=pricing.coupon_code or None,
                payment_mode=payment_mode,
                payment_txn_id=payment_txn_id,
                notes=notes,
            )
            for station_id in station_ids
            for start, end in intervals
        ]

        logger.info(f"Inserting booking records: {len(rows)} records")

        try:
            bookings = await booking_repository.insert_bookings(db, rows)
            await db.commit()
        except ConflictError as e:
            await db.rollback()
            if isinstance(e.__cause__, IntegrityError):
                raise await self._describe_rejection(
                    db, station_ids, booking_date, intervals, e
                ) from e
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Booking creation failed: {e}", exc_info=True)
            raise UpstreamError(f"Failed to create booking: {e}") from e

        logger.info(f"Booking created successfully: {len(bookings)} records")
        return bookings

    async def _describe_rejection(
        self,
        db: AsyncSession,
        station_ids: Sequence[str],
        booking_date: date,
        intervals: Sequence[Tuple[dt_time, dt_time]],
        error: ConflictError,
    ) -> ConflictError:
        """Rebuild a storage-constraint rejection as the usual conflict error.

        The rejected transaction has been rolled back, so the committed
        blocking rows are visible again. Falls back to ``error`` when they
        can't be read.
        """
        conflicts = []
        try:
            for start, end in intervals:
                conflicts.extend(
                    await overlap_validator.check_stations(db, station_ids, booking_date, start, end)
                )
        except ValidatorUnavailableError as e:
            logger.warning(f"Could not describe rejected booking: {e.details}")
            return error

        if not conflicts:
            return error

        message = conflict_message(conflicts)
        logger.warning(f"Booking conflict detected on {booking_date} at insert: {message}")
        return ConflictError(message, conflicts=[c.model_dump(mode="json") for c in conflicts])

    async def create_booking(
        self, db: AsyncSession, request: BookingCreateRequest
    ) -> BookingCreateResponse:
        """
        Handle a booking creation request.

        Args:
            db: Database session
            request: Validated request body

        Returns:
            BookingCreateResponse with the created booking ids
        """
        slot = request.selected_slot
        logger.info(
            f"Booking request for stations {request.selected_stations} on "
            f"{request.selected_date} {slot.label()}"
        )

        await self._require_stations(db, request.selected_stations)
        customer = await self.resolve_customer(db, request.customer_info)

        coupons = ",".join(request.applied_coupons.values()) if request.applied_coupons else None
        pricing = Pricing(
            original=request.original_price,
            discount=request.discount,
            final=request.final_price,
            coupon_code=coupons,
        )

        bookings = await self.book(
            db,
            customer_id=customer.id,
            station_ids=request.selected_stations,
            booking_date=request.selected_date,
            intervals=[(slot.start_time, slot.end_time)],
            pricing=pricing,
            payment_mode=request.payment_mode,
            payment_txn_id=request.order_id,
        )

        return BookingCreateResponse(
            booking_id=bookings[0].id,
            booking_ids=[b.id for b in bookings],
        )


# Singleton instance
booking_service = BookingService()
