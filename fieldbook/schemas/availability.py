"""Availability schemas."""
from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime, date, time
from decimal import Decimal


class AvailabilitySlot(BaseModel):
    """Schema for a single bookable slot."""

    start_time: time
    end_time: time
    available: bool
    price: Decimal


class DailyAvailability(BaseModel):
    """Schema for the slots of one day."""

    date: date
    is_blocked: bool = False
    block_reason: Optional[str] = None
    slots: List[AvailabilitySlot]


class AvailabilityResponse(BaseModel):
    """Schema for availability response."""

    field_id: int
    field_name: str
    court_id: Optional[int] = None
    fetch_time: datetime
    days: List[DailyAvailability]
