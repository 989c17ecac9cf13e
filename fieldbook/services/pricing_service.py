"""Pricing engine: per-slot-unit price computation."""
import logging
from collections import Counter
from dataclasses import dataclass, field as dc_field
from datetime import date, time as dt_time
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Union

from fieldbook.core.exceptions import PricingConfigurationError
from fieldbook.core.timeslots import minutes_to_str, to_minutes, weekday_name
from fieldbook.models.field import Field
from fieldbook.services.field_catalog import EffectivePricing, resolve_pricing

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

TimeOfDay = Union[str, dt_time, int]


def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def _format_multiplier(multiplier: Decimal) -> str:
    return format(multiplier.normalize(), "f")


def _as_minutes(value: TimeOfDay) -> int:
    return value if isinstance(value, int) else to_minutes(value)


@dataclass
class UnitPrice:
    start: str
    end: str
    multiplier: Decimal
    price: Decimal


@dataclass
class PriceQuote:
    """Result of pricing one range; frozen onto a booking as its snapshot."""

    total: Decimal
    base_price: Decimal
    multiplier: Decimal
    breakdown: str
    units: List[UnitPrice] = dc_field(default_factory=list)


class PricingService:
    """Computes the charge for a time range on a given date."""

    def price_range(
        self,
        start: TimeOfDay,
        end: TimeOfDay,
        field: Field,
        day: date,
        pricing: Optional[EffectivePricing] = None,
    ) -> PriceQuote:
        """
        Price [start, end) by summing base price x multiplier per slot unit.

        Args:
            start: Range start
            end: Range end
            field: Field being booked
            day: Booking date; selects the weekday and the configuration in force
            pricing: Already-resolved configuration, if the caller has one

        Returns:
            PriceQuote with total, dominant multiplier and breakdown

        Raises:
            PricingConfigurationError: If a unit has no covering price segment
        """
        pricing = pricing or resolve_pricing(field, day)
        weekday = weekday_name(day)
        hours = pricing.hours_for(weekday)
        segments = pricing.ranges_for(weekday)
        slot_minutes = int(hours["slot_minutes"]) if hours else 60

        start_min, end_min = _as_minutes(start), _as_minutes(end)
        units: List[UnitPrice] = []
        total = Decimal("0")

        for unit_start in range(start_min, end_min, slot_minutes):
            unit_end = min(unit_start + slot_minutes, end_min)
            multiplier = self._multiplier_at(unit_start, segments, field, weekday)
            price = quantize(pricing.base_price * multiplier)
            total += price
            units.append(
                UnitPrice(
                    start=minutes_to_str(unit_start),
                    end=minutes_to_str(unit_end),
                    multiplier=multiplier,
                    price=price,
                )
            )

        return PriceQuote(
            total=quantize(total),
            base_price=pricing.base_price,
            multiplier=self._dominant_multiplier(units),
            breakdown=", ".join(
                f"{u.start}-{u.end}: {u.price} ({_format_multiplier(u.multiplier)}x)" for u in units
            ),
            units=units,
        )

    def _multiplier_at(self, minute: int, segments, field: Field, weekday: str) -> Decimal:
        for segment in segments:
            if to_minutes(segment["start"]) <= minute < to_minutes(segment["end"]):
                return Decimal(str(segment["multiplier"]))

        logger.error(
            f"No price segment covers {minutes_to_str(minute)} on {weekday} for field {field.id}"
        )
        raise PricingConfigurationError(
            f"No price segment covers {minutes_to_str(minute)} on {weekday}",
            details={"field_id": field.id, "weekday": weekday, "at": minutes_to_str(minute)},
        )

    def _dominant_multiplier(self, units: List[UnitPrice]) -> Decimal:
        if not units:
            return Decimal("0")
        counts = Counter(u.multiplier for u in units)
        best = max(counts.values())
        # Earliest unit wins a tie
        for unit in units:
            if counts[unit.multiplier] == best:
                return unit.multiplier
        return units[0].multiplier


# Singleton instance
pricing_service = PricingService()
