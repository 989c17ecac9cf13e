"""Database models."""
from fieldbook.models.field import Field
from fieldbook.models.court import Court
from fieldbook.models.schedule_record import ScheduleRecord
from fieldbook.models.booking import Booking, BookingStatus, CoachStatus

__all__ = ["Field", "Court", "ScheduleRecord", "Booking", "BookingStatus", "CoachStatus"]
