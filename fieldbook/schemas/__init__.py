"""API schemas."""
from fieldbook.schemas.field import (
    Amenity,
    CourtCreate,
    CourtInDB,
    FieldCreate,
    FieldInDB,
    FieldUpdate,
    HolidayRequest,
    OperatingHours,
    PendingPriceChange,
    PriceChangeCreate,
    PriceRange,
    PricingConfig,
)
from fieldbook.schemas.availability import (
    AvailabilityResponse,
    AvailabilitySlot,
    DailyAvailability,
)
from fieldbook.schemas.booking import (
    BookingCreate,
    BookingInDB,
    CancellationResult,
    CancelRequest,
    CoachResponse,
    ConsecutiveBookingCreate,
    HolidayResult,
    WeeklyBookingCreate,
)

__all__ = [
    "Amenity",
    "CourtCreate",
    "CourtInDB",
    "FieldCreate",
    "FieldInDB",
    "FieldUpdate",
    "HolidayRequest",
    "OperatingHours",
    "PendingPriceChange",
    "PriceChangeCreate",
    "PriceRange",
    "PricingConfig",
    "AvailabilityResponse",
    "AvailabilitySlot",
    "DailyAvailability",
    "BookingCreate",
    "BookingInDB",
    "CancellationResult",
    "CancelRequest",
    "CoachResponse",
    "HolidayResult",
    "WeeklyBookingCreate",
    "ConsecutiveBookingCreate",
]
