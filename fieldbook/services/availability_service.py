"""Availability engine: range validation, overlap detection and slot grids."""
import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, Optional

import pytz
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldbook.core.config import settings
from fieldbook.core.exceptions import InvalidRangeError, ValidationError
from fieldbook.core.timeslots import minutes_to_str, minutes_to_time, to_minutes, weekday_name
from fieldbook.models.field import Field
from fieldbook.models.schedule_record import ScheduleRecord
from fieldbook.schemas.availability import (
    AvailabilityResponse,
    AvailabilitySlot,
    DailyAvailability,
)
from fieldbook.services.field_catalog import EffectivePricing, field_catalog, resolve_pricing
from fieldbook.services.pricing_service import TimeOfDay, pricing_service

logger = logging.getLogger(__name__)


def _as_minutes(value: TimeOfDay) -> int:
    return value if isinstance(value, int) else to_minutes(value)


def has_conflict(start: TimeOfDay, end: TimeOfDay, reserved_ranges: Iterable[Dict[str, Any]]) -> bool:
    """True if [start, end) overlaps any reserved range (half-open intervals)."""
    new_start, new_end = _as_minutes(start), _as_minutes(end)
    return any(
        new_start < to_minutes(other["end"]) and new_end > to_minutes(other["start"])
        for other in reserved_ranges
    )


class AvailabilityService:
    """Service for validating and listing bookable ranges."""

    def validate_range(
        self,
        start: TimeOfDay,
        end: TimeOfDay,
        field: Field,
        day: date,
        pricing: Optional[EffectivePricing] = None,
    ) -> int:
        """
        Check a requested range against the field's constraints on ``day``.

        Returns:
            Number of slot units in the range

        Raises:
            InvalidRangeError: naming the violated constraint
        """
        pricing = pricing or resolve_pricing(field, day)
        weekday = weekday_name(day)
        start_min, end_min = _as_minutes(start), _as_minutes(end)
        details = {"start": minutes_to_str(start_min), "end": minutes_to_str(end_min), "day": weekday}

        if start_min >= end_min:
            raise InvalidRangeError("End time must be after start time", details=details)

        hours = pricing.hours_for(weekday)
        if not hours:
            raise InvalidRangeError(f"No operating hours defined for {weekday}", details=details)

        open_min, close_min = to_minutes(hours["start"]), to_minutes(hours["end"])
        slot_minutes = int(hours["slot_minutes"])
        duration = end_min - start_min

        if duration % slot_minutes != 0:
            raise InvalidRangeError(
                f"Booking duration must be a multiple of {slot_minutes} minutes",
                details=details,
            )
        if (start_min - open_min) % slot_minutes != 0:
            raise InvalidRangeError("Start time must align with slot boundaries", details=details)

        num_slots = duration // slot_minutes
        if num_slots < field.min_slots or num_slots > field.max_slots:
            raise InvalidRangeError(
                f"Booking must cover between {field.min_slots} and {field.max_slots} slots",
                details={**details, "num_slots": num_slots},
            )

        if start_min < open_min or end_min > close_min:
            raise InvalidRangeError(
                f"Booking time must be within operating hours {hours['start']} - {hours['end']} for {weekday}",
                details=details,
            )

        return num_slots

    async def get_availability(
        self,
        db: AsyncSession,
        field_id: int,
        court_id: Optional[int],
        from_date: date,
        to_date: date,
    ) -> AvailabilityResponse:
        """
        Build the per-day slot grid for a field/court.

        Schedule records are read, never created. The result is advisory:
        reservation time is where conflicts are enforced.

        Args:
            db: Database session
            field_id: Field ID
            court_id: Court ID, or None to let the field decide
            from_date: First day (inclusive)
            to_date: Last day (inclusive)

        Returns:
            AvailabilityResponse with one entry per day
        """
        if from_date > to_date:
            raise ValidationError("from_date must be before or equal to to_date")
        if (to_date - from_date).days + 1 > settings.AVAILABILITY_MAX_DAYS:
            raise ValidationError(
                f"Date range cannot exceed {settings.AVAILABILITY_MAX_DAYS} days",
                details={"from_date": from_date.isoformat(), "to_date": to_date.isoformat()},
            )

        field = await field_catalog.get_field(db, field_id, active_only=True)
        court_id = await field_catalog.resolve_court(db, field, court_id)

        court_filter = (
            ScheduleRecord.court_id.is_(None) if court_id is None else ScheduleRecord.court_id == court_id
        )
        result = await db.execute(
            select(ScheduleRecord).where(
                ScheduleRecord.field_id == field_id,
                court_filter,
                ScheduleRecord.date >= from_date,
                ScheduleRecord.date <= to_date,
            )
        )
        records = {record.date: record for record in result.scalars().all()}

        days = []
        current_date = from_date
        while current_date <= to_date:
            days.append(self._day_grid(field, current_date, records.get(current_date)))
            current_date += timedelta(days=1)

        return AvailabilityResponse(
            field_id=field.id,
            field_name=field.name,
            court_id=court_id,
            fetch_time=datetime.now(pytz.UTC),
            days=days,
        )

    def _day_grid(
        self, field: Field, day: date, record: Optional[ScheduleRecord]
    ) -> DailyAvailability:
        pricing = resolve_pricing(field, day)
        hours = pricing.hours_for(weekday_name(day))
        is_blocked = bool(record and record.is_blocked)
        reserved = record.reserved_ranges if record else []

        slots = []
        if hours:
            slot_minutes = int(hours["slot_minutes"])
            open_min, close_min = to_minutes(hours["start"]), to_minutes(hours["end"])
            for slot_start in range(open_min, close_min - slot_minutes + 1, slot_minutes):
                slot_end = slot_start + slot_minutes
                quote = pricing_service.price_range(slot_start, slot_end, field, day, pricing)
                slots.append(
                    AvailabilitySlot(
                        start_time=minutes_to_time(slot_start),
                        end_time=minutes_to_time(slot_end),
                        available=not is_blocked and not has_conflict(slot_start, slot_end, reserved),
                        price=quote.total,
                    )
                )

        return DailyAvailability(
            date=day,
            is_blocked=is_blocked,
            block_reason=record.block_reason if is_blocked else None,
            slots=slots,
        )


# Singleton instance
availability_service = AvailabilityService()
