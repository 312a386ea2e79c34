"""Customer model."""
import uuid
from sqlalchemy import Column, Integer, String, Boolean, Numeric, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from turfbook.core.database import Base


class Customer(Base):
    """Represents a venue customer, identified by phone number."""

    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    custom_id = Column(String, nullable=True, index=True)  # e.g., "CUE1234K9QZ"
    name = Column(String, nullable=False)
    phone = Column(String, unique=True, nullable=False, index=True)  # digits only
    email = Column(String, nullable=True)
    is_member = Column(Boolean, default=False, nullable=False)
    loyalty_points = Column(Integer, default=0, nullable=False)
    total_spent = Column(Numeric(12, 2), default=0, nullable=False)
    total_play_time = Column(Integer, default=0, nullable=False)  # minutes
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    bookings = relationship("Booking", back_populates="customer")
