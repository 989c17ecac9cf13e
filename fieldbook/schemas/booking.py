"""Booking schemas."""
from pydantic import BaseModel, ConfigDict, Field as PydanticField, field_validator, model_validator
from typing import Optional, List
from datetime import datetime, date, time
from decimal import Decimal

from fieldbook.core.timeslots import WEEKDAYS


class BookingCreate(BaseModel):
    """Schema for requesting a booking."""

    field_id: int
    court_id: Optional[int] = None
    date: date
    start_time: time
    end_time: time
    selected_amenities: List[str] = []
    coach_id: Optional[int] = None
    note: Optional[str] = PydanticField(default=None, max_length=500)


class BookingInDB(BaseModel):
    """Schema for a booking from the database."""

    id: int
    reference: str
    user_id: int
    field_id: int
    court_id: Optional[int] = None
    date: date
    start_time: time
    end_time: time
    num_slots: int
    status: str
    coach_id: Optional[int] = None
    coach_status: Optional[str] = None
    selected_amenities: List[str]
    amenities_fee: Decimal
    booking_amount: Decimal
    platform_fee: Decimal
    total_price: Decimal
    base_price_used: Decimal
    multiplier_applied: Decimal
    price_breakdown: str
    note: Optional[str] = None
    recurrence_group: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_by_role: Optional[str] = None
    refund_amount: Optional[Decimal] = None
    penalty_amount: Optional[Decimal] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SeriesBookingBase(BaseModel):
    """Fields shared by every multi-date booking request."""

    field_id: int
    court_id: Optional[int] = None
    start_time: time
    end_time: time
    selected_amenities: List[str] = []
    note: Optional[str] = PydanticField(default=None, max_length=500)


class WeeklyBookingCreate(SeriesBookingBase):
    """Same range on chosen weekdays, for a number of weeks."""

    start_date: date
    weekdays: List[str] = PydanticField(min_length=1, max_length=7)
    number_of_weeks: int = PydanticField(ge=1, le=12)
    skip_dates: List[date] = []

    @field_validator("weekdays")
    @classmethod
    def _check_weekdays(cls, value: List[str]) -> List[str]:
        value = [day.lower() for day in value]
        unknown = [day for day in value if day not in WEEKDAYS]
        if unknown:
            raise ValueError(f"weekdays must be among {', '.join(WEEKDAYS)}")
        return value


class ConsecutiveBookingCreate(SeriesBookingBase):
    """Same range on every date from start_date to end_date."""

    start_date: date
    end_date: date

    @model_validator(mode="after")
    def _check_order(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class CancelRequest(BaseModel):
    """Schema for cancelling a booking."""

    role: str = PydanticField(pattern="^(user|owner|coach)$")
    reason: Optional[str] = PydanticField(default=None, max_length=500)


class CancellationResult(BaseModel):
    """Outcome (or preview) of a cancellation."""

    booking_id: int
    role: str
    allowed: bool
    reason: Optional[str] = None
    status: str
    hours_until_start: float
    refund_percent: Optional[int] = None
    refund_amount: Optional[Decimal] = None
    penalty_percent: Optional[int] = None
    penalty_amount: Optional[Decimal] = None


class CoachResponse(BaseModel):
    """Schema for a coach accepting or declining a session."""

    accept: bool
    reason: Optional[str] = PydanticField(default=None, max_length=500)


class HolidayResult(BaseModel):
    """Outcome of blocking or unblocking a date."""

    field_id: int
    court_ids: List[Optional[int]]
    date: date
    is_blocked: bool
    cancelled_booking_ids: List[int] = []
