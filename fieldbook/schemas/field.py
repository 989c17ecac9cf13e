"""Field catalog schemas."""
from pydantic import BaseModel, ConfigDict, Field as PydanticField, field_validator
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal

from fieldbook.core.timeslots import WEEKDAYS, is_hhmm


class _DayWindow(BaseModel):
    """A weekday plus an "HH:MM" window."""

    day: str
    start: str
    end: str

    @field_validator("day")
    @classmethod
    def _check_day(cls, value: str) -> str:
        value = value.lower()
        if value not in WEEKDAYS:
            raise ValueError(f"day must be one of {', '.join(WEEKDAYS)}")
        return value

    @field_validator("start", "end")
    @classmethod
    def _check_time(cls, value: str) -> str:
        if not is_hhmm(value):
            raise ValueError("time must be HH:MM (00:00-23:59)")
        return value


class OperatingHours(_DayWindow):
    """Opening window for one weekday."""

    slot_minutes: int = PydanticField(default=60, ge=5, le=720)


class PriceRange(_DayWindow):
    """Price multiplier for part of one weekday's window."""

    multiplier: Decimal = PydanticField(ge=0)


class Amenity(BaseModel):
    """Optional extra a customer can add to a booking."""

    id: str
    name: str
    price: Decimal = PydanticField(ge=0)


class PricingConfig(BaseModel):
    """Operating hours, price segments and base price."""

    operating_hours: List[OperatingHours]
    price_ranges: List[PriceRange]
    base_price: Decimal = PydanticField(ge=0)


class FieldCreate(PricingConfig):
    """Schema for creating a field."""

    name: str
    min_slots: int = PydanticField(default=1, ge=1, le=48)
    max_slots: int = PydanticField(default=4, ge=1, le=48)
    staff_ids: List[int] = []
    amenities: List[Amenity] = []


class FieldUpdate(BaseModel):
    """Schema for updating a field. Pricing fields must be sent together."""

    name: Optional[str] = None
    is_active: Optional[bool] = None
    min_slots: Optional[int] = PydanticField(default=None, ge=1, le=48)
    max_slots: Optional[int] = PydanticField(default=None, ge=1, le=48)
    staff_ids: Optional[List[int]] = None
    amenities: Optional[List[Amenity]] = None
    operating_hours: Optional[List[OperatingHours]] = None
    price_ranges: Optional[List[PriceRange]] = None
    base_price: Optional[Decimal] = PydanticField(default=None, ge=0)


class PendingPriceChange(BaseModel):
    """A queued pricing configuration."""

    new_operating_hours: List[OperatingHours]
    new_price_ranges: List[PriceRange]
    new_base_price: Decimal
    effective_date: date
    applied: bool = False
    created_by: Optional[int] = None


class PriceChangeCreate(BaseModel):
    """Schema for scheduling a price change."""

    config: PricingConfig
    effective_date: date


class FieldInDB(BaseModel):
    """Schema for a field from the database."""

    id: int
    owner_id: int
    name: str
    is_active: bool
    staff_ids: List[int]
    operating_hours: List[OperatingHours]
    price_ranges: List[PriceRange]
    base_price: Decimal
    min_slots: int
    max_slots: int
    amenities: List[Amenity]
    pending_price_changes: List[PendingPriceChange]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CourtCreate(BaseModel):
    """Schema for adding a court to a field."""

    name: str
    court_number: int = PydanticField(ge=1)


class CourtInDB(CourtCreate):
    """Schema for a court from the database."""

    id: int
    field_id: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class HolidayRequest(BaseModel):
    """Schema for blocking a date."""

    reason: str
    court_id: Optional[int] = None
