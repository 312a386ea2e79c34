"""Booking model."""
import enum
import uuid
from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Date,
    Time,
    Numeric,
    Index,
    DDL,
    event,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from turfbook.core.database import Base


class BookingStatus(str, enum.Enum):
    """Lifecycle status of a booking."""

    CONFIRMED = "confirmed"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


# Only active bookings hold a slot
ACTIVE_STATUSES = (BookingStatus.CONFIRMED.value, BookingStatus.IN_PROGRESS.value)
INACTIVE_STATUSES = (
    BookingStatus.COMPLETED.value,
    BookingStatus.CANCELLED.value,
    BookingStatus.NO_SHOW.value,
)


class Booking(Base):
    """Represents a reserved interval on one station for one day."""

    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    station_id = Column(String(36), ForeignKey("stations.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_id = Column(String(36), ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)
    booking_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)  # 23:59:59 for the last slot of the day
    duration = Column(Integer, nullable=False, default=60)  # minutes
    status = Column(String, nullable=False, default=BookingStatus.CONFIRMED.value)
    original_price = Column(Numeric(10, 2), nullable=False, default=0)
    discount_percentage = Column(Numeric(5, 2), nullable=True)
    final_price = Column(Numeric(10, 2), nullable=False, default=0)
    coupon_code = Column(String, nullable=True)
    payment_mode = Column(String, nullable=True)  # venue, razorpay
    payment_txn_id = Column(String, nullable=True, index=True)
    notes = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    station = relationship("Station", back_populates="bookings")
    customer = relationship("Customer", back_populates="bookings")

    __table_args__ = (
        Index("ix_bookings_station_date", "station_id", "booking_date"),
        Index("ix_bookings_status_created", "status", "created_at"),
    )
    __mapper_args__ = {"eager_defaults": True}

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def __repr__(self):
        return (
            f"<Booking {self.id} station={self.station_id} {self.booking_date} "
            f"{self.start_time}-{self.end_time} {self.status}>"
        )


# PostgreSQL enforces the no-overlap invariant itself. Other dialects rely on
# the locked re-check in BookingRepository.insert_bookings.
event.listen(
    Booking.__table__,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        "ALTER TABLE bookings ADD CONSTRAINT bookings_no_overlap EXCLUDE USING gist ("
        "station_id WITH =, "
        "tsrange(booking_date + start_time, booking_date + end_time) WITH &&"
        ") WHERE (status IN ('confirmed', 'in-progress'))"
    ).execute_if(dialect="postgresql"),
)
