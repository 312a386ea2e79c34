"""Station schemas."""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal


class StationBase(BaseModel):
    """Base station schema."""

    name: str = Field(min_length=1)
    type: str = "turf"
    hourly_rate: Decimal = Field(default=Decimal("0"), ge=0)


class StationCreate(StationBase):
    """Schema for creating a station."""

    pass


class StationUpdate(BaseModel):
    """Schema for updating a station."""

    name: Optional[str] = None
    type: Optional[str] = None
    hourly_rate: Optional[Decimal] = Field(default=None, ge=0)


class StationInDB(StationBase):
    """Schema for station from database."""

    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
