"""Pending payment model."""
import enum
from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from turfbook.core.database import Base


class PendingPaymentStatus(str, enum.Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    CONFLICT = "conflict"  # paid, but the slot was taken before reconciliation


class PendingPayment(Base):
    """An online payment whose booking has not been confirmed yet."""

    __tablename__ = "pending_payments"

    id = Column(Integer, primary_key=True, index=True)
    razorpay_order_id = Column(String, unique=True, nullable=False, index=True)
    razorpay_payment_id = Column(String, nullable=True)
    # {"customer": {...}, "selectedStations": [...], "selectedDateISO": "...",
    #  "slots": [{"start_time": ..., "end_time": ...}], "duration": 60,
    #  "pricing": {"original": ..., "discount": ..., "final": ..., "coupons": ...}}
    booking_data = Column(JSON, nullable=False)
    status = Column(String, nullable=False, default=PendingPaymentStatus.PENDING.value, index=True)
    error = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    verified_at = Column(DateTime(timezone=True), nullable=True)
