"""Reconciliation of pending online payments."""
import asyncio
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional
import pytz
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select, update, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from turfbook.core.config import settings
from turfbook.core.errors import BookingError, ConflictError, UpstreamError, ValidationError
from turfbook.models.pending_payment import PendingPayment, PendingPaymentStatus
from turfbook.schemas.booking import PendingBookingData
from turfbook.schemas.maintenance import ReconciliationItem, ReconciliationResult
from turfbook.schemas.slot import TimeSlot
from turfbook.services.booking_repository import booking_repository
from turfbook.services.booking_service import Pricing, booking_service
from turfbook.services.payment_gateway import is_successful, razorpay_client
from turfbook.services.slot_picker import contiguous_run

logger = logging.getLogger(__name__)


class PaymentNotSuccessful(Exception):
    """The gateway reports the payment as failed or otherwise not captured."""


class PaymentReconciler:
    """Turns verified pending payments into bookings."""

    def __init__(self, gateway=None, delay_seconds: Optional[float] = None):
        self.gateway = gateway or razorpay_client
        self.delay_seconds = (
            settings.REQUEST_DELAY_SECONDS if delay_seconds is None else delay_seconds
        )

    async def reconcile_pending(self, db: AsyncSession) -> ReconciliationResult:
        """
        Reconcile every recent pending payment.

        Each record is handled on its own; a failure is counted and the batch
        continues. Records already resolved are not selected, so repeated
        runs are no-ops for them.

        Args:
            db: Database session

        Returns:
            ReconciliationResult with processed/successful/failed counts
        """
        logger.info("Pending payment reconciliation started")
        cutoff = datetime.now(pytz.UTC) - timedelta(hours=settings.PENDING_PAYMENT_LOOKBACK_HOURS)

        try:
            result = await db.execute(
                select(PendingPayment)
                .where(
                    and_(
                        PendingPayment.status == PendingPaymentStatus.PENDING.value,
                        PendingPayment.created_at >= cutoff,
                    )
                )
                .order_by(PendingPayment.created_at.asc(), PendingPayment.id.asc())
                .limit(settings.PENDING_PAYMENT_BATCH_SIZE)
            )
            pending_payments = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Failed to load pending payments: {e}", exc_info=True)
            raise UpstreamError(f"Failed to load pending payments: {e}") from e

        if not pending_payments:
            logger.info("No pending payments to reconcile")
            return ReconciliationResult(message="No pending payments found")

        logger.info(f"Found {len(pending_payments)} pending payments to reconcile")

        # A rollback expires every loaded row, so each record is re-read by key
        batch = [(p.id, p.razorpay_order_id) for p in pending_payments]

        items = []
        for index, (pending_id, order_id) in enumerate(batch):
            if index and self.delay_seconds:
                await asyncio.sleep(self.delay_seconds)
            try:
                pending = await db.get(PendingPayment, pending_id)
                items.append(await self.reconcile_one(db, pending))
            except Exception as e:
                await db.rollback()
                logger.error(f"Failed to reconcile payment {order_id}: {e}", exc_info=True)
                items.append(ReconciliationItem(order_id=order_id, status="error", error=str(e)))

        successful = sum(1 for item in items if item.status == "success")
        failed = len(items) - successful

        logger.info(f"Reconciliation complete: {successful} successful, {failed} failed")

        return ReconciliationResult(
            processed=len(items),
            successful=successful,
            failed=failed,
            results=items,
            message=f"{successful} successful, {failed} failed",
        )

    async def reconcile_one(self, db: AsyncSession, pending: PendingPayment) -> ReconciliationItem:
        """Reconcile a single pending payment."""
        # A rollback expires the row, so its key is kept as a plain value
        pending_id = pending.id
        order_id = pending.razorpay_order_id
        logger.info(f"Reconciling payment: order={order_id} payment={pending.razorpay_payment_id}")

        try:
            payment_id = await self._find_successful_payment(pending)
        except PaymentNotSuccessful as e:
            await self._mark(db, pending_id, PendingPaymentStatus.FAILED, str(e))
            return ReconciliationItem(order_id=order_id, status="failed", error=str(e))

        if not payment_id:
            return ReconciliationItem(
                order_id=order_id, status="failed", error="No successful payment found"
            )

        if pending.razorpay_payment_id != payment_id:
            pending.razorpay_payment_id = payment_id
            await db.commit()

        try:
            booking_id = await self._create_bookings(db, pending, payment_id)
        except ConflictError as e:
            # Another run may have booked this same payment after our idempotency check
            existing = await booking_repository.find_by_payment_txn(db, payment_id)
            if existing:
                logger.info(f"Payment {payment_id} was booked by another run: {existing[0].id}")
                await self._mark(db, pending_id, PendingPaymentStatus.SUCCESS)
                return ReconciliationItem(
                    order_id=order_id, status="success", booking_id=existing[0].id
                )
            await self._mark(db, pending_id, PendingPaymentStatus.CONFLICT, str(e.details))
            logger.warning(f"Paid order {order_id} could not be booked: {e.details}")
            return ReconciliationItem(order_id=order_id, status="conflict", error=str(e.details))
        except (PydanticValidationError, ValidationError) as e:
            await self._mark(db, pending_id, PendingPaymentStatus.FAILED, "Invalid booking data")
            logger.error(f"Invalid booking data on pending payment {order_id}: {e}")
            return ReconciliationItem(order_id=order_id, status="failed", error="Invalid booking data")
        except BookingError as e:
            return ReconciliationItem(order_id=order_id, status="failed", error=str(e.details or e.error))

        await self._mark(db, pending_id, PendingPaymentStatus.SUCCESS)
        return ReconciliationItem(order_id=order_id, status="success", booking_id=booking_id)

    async def _find_successful_payment(self, pending: PendingPayment) -> Optional[str]:
        """Return the id of a captured/authorized payment for the record, if any."""
        if pending.razorpay_payment_id:
            payment = await self.gateway.fetch_payment(pending.razorpay_payment_id)
            if is_successful(payment):
                logger.info(f"Payment verified as successful: {payment.get('status')}")
                return pending.razorpay_payment_id
            raise PaymentNotSuccessful(f"Payment status: {payment.get('status')}")

        order = await self.gateway.fetch_order(pending.razorpay_order_id)

        for payment in order.get("payments") or []:
            if is_successful(payment):
                logger.info(f"Found successful payment in order: {payment['id']}")
                return payment["id"]

        if order.get("status") == "paid":
            for payment in await self.gateway.fetch_order_payments(pending.razorpay_order_id):
                if is_successful(payment):
                    logger.info(f"Found successful payment for paid order: {payment['id']}")
                    return payment["id"]

        return None

    async def _create_bookings(self, db: AsyncSession, pending: PendingPayment, payment_id: str) -> str:
        """Create the bookings paid for by ``payment_id``; idempotent per payment."""
        order_id = pending.razorpay_order_id
        existing = await booking_repository.find_by_payment_txn(db, payment_id)
        if existing:
            logger.info(f"Booking already exists: {existing[0].id}")
            return existing[0].id

        data = PendingBookingData.model_validate(pending.booking_data)
        grid = [
            TimeSlot(start_time=slot.start_time, end_time=slot.end_time, is_available=True)
            for slot in sorted(data.slots, key=lambda s: s.start_time)
        ]
        if len(contiguous_run(grid, grid[0])) != len(grid):
            raise ValidationError("Paid slots are not one contiguous range")

        customer = await booking_service.resolve_customer(db, data.customer)

        pricing = data.pricing or {}
        coupons = pricing.get("coupons")
        if isinstance(coupons, dict):
            coupons = ",".join(coupons.values())

        bookings = await booking_service.book(
            db,
            customer_id=customer.id,
            station_ids=list(dict.fromkeys(data.selected_stations)),
            booking_date=data.selected_date,
            intervals=[(slot.start_time, slot.end_time) for slot in data.slots],
            pricing=Pricing(
                original=Decimal(str(pricing.get("original") or 0)),
                discount=Decimal(str(pricing.get("discount") or 0)),
                final=Decimal(str(pricing.get("final") or 0)),
                coupon_code=coupons or None,
            ),
            payment_mode="razorpay",
            payment_txn_id=payment_id,
            notes=f"Razorpay Order ID: {order_id}",
        )
        return bookings[0].id

    async def _mark(
        self,
        db: AsyncSession,
        pending_id: int,
        status: PendingPaymentStatus,
        error: Optional[str] = None,
    ) -> bool:
        """Resolve a record that is still pending. Returns False if it was already resolved."""
        values = {"status": status.value, "error": error}
        if status == PendingPaymentStatus.SUCCESS:
            values["verified_at"] = datetime.now(pytz.UTC)

        result = await db.execute(
            update(PendingPayment)
            .where(
                and_(
                    PendingPayment.id == pending_id,
                    PendingPayment.status == PendingPaymentStatus.PENDING.value,
                )
            )
            .values(**values)
        )
        await db.commit()

        if not result.rowcount:
            logger.info(f"Pending payment {pending_id} already resolved, left unchanged")
            return False
        return True


# Singleton instance
payment_reconciler = PaymentReconciler()
