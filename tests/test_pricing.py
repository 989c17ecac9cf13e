"""Tests for the pricing engine and the configuration validator."""
from datetime import date, timedelta
from decimal import Decimal

import pytest

from conftest import build_field
from fieldbook.core.exceptions import PricingConfigurationError, ValidationError
from fieldbook.core.timeslots import WEEKDAYS
from fieldbook.services.field_catalog import resolve_pricing, validate_pricing_config
from fieldbook.services.pricing_service import pricing_service

MONDAY = date(2030, 1, 7)


def test_evening_range_uses_segment_multiplier():
    field = build_field()

    quote = pricing_service.price_range("19:00", "21:00", field, MONDAY)

    assert quote.total == Decimal("300000.00")
    assert quote.multiplier == Decimal("1.5")
    assert quote.base_price == Decimal("100000")
    assert quote.breakdown == "19:00-20:00: 150000.00 (1.5x), 20:00-21:00: 150000.00 (1.5x)"


def test_range_spanning_segments_sums_each_unit():
    field = build_field()

    quote = pricing_service.price_range("16:00", "20:00", field, MONDAY)

    # 2 x 100000 + 2 x 150000; tie goes to the earliest multiplier
    assert quote.total == Decimal("500000.00")
    assert quote.multiplier == Decimal("1.0")
    assert len(quote.units) == 4


def test_dominant_multiplier_covers_most_units():
    field = build_field()

    quote = pricing_service.price_range("17:00", "20:00", field, MONDAY)

    assert quote.total == Decimal("400000.00")
    assert quote.multiplier == Decimal("1.5")


def test_whole_day_is_priced_exactly_once_per_unit():
    field = build_field()

    quote = pricing_service.price_range("08:00", "22:00", field, MONDAY)

    assert len(quote.units) == 14
    assert quote.total == Decimal("100000") * 10 + Decimal("150000") * 4


def test_half_hour_slots():
    field = build_field(slot_minutes=30)

    quote = pricing_service.price_range("17:30", "18:30", field, MONDAY)

    assert quote.total == Decimal("250000.00")
    assert [u.start for u in quote.units] == ["17:30", "18:00"]


def test_uncovered_unit_is_a_configuration_error():
    field = build_field()
    field.price_ranges = [r for r in field.price_ranges if r["start"] != "18:00"]

    with pytest.raises(PricingConfigurationError):
        pricing_service.price_range("19:00", "20:00", field, MONDAY)


def test_pending_change_applies_from_its_effective_date():
    field = build_field()
    field.pending_price_changes = [
        {
            "new_operating_hours": field.operating_hours,
            "new_price_ranges": field.price_ranges,
            "new_base_price": "200000",
            "effective_date": MONDAY.isoformat(),
            "applied": False,
            "created_by": 1,
        }
    ]

    before = pricing_service.price_range("10:00", "11:00", field, MONDAY - timedelta(days=1))
    on_the_day = pricing_service.price_range("10:00", "11:00", field, MONDAY)
    after = pricing_service.price_range("10:00", "11:00", field, MONDAY + timedelta(days=30))

    assert before.total == Decimal("100000.00")
    assert on_the_day.total == Decimal("200000.00")
    assert after.total == Decimal("200000.00")


def test_latest_due_change_wins_and_applied_changes_are_ignored():
    field = build_field()

    def change(effective: date, base: str, applied: bool = False):
        return {
            "new_operating_hours": field.operating_hours,
            "new_price_ranges": field.price_ranges,
            "new_base_price": base,
            "effective_date": effective.isoformat(),
            "applied": applied,
        }

    field.pending_price_changes = [
        change(MONDAY, "120000"),
        change(MONDAY + timedelta(days=7), "140000"),
        change(MONDAY + timedelta(days=3), "999999", applied=True),
    ]

    assert resolve_pricing(field, MONDAY + timedelta(days=5)).base_price == Decimal("120000")
    assert resolve_pricing(field, MONDAY + timedelta(days=8)).base_price == Decimal("140000")
    assert resolve_pricing(field, MONDAY - timedelta(days=1)).effective_date is None


def _hours(day="monday", start="08:00", end="22:00", slot_minutes=60):
    return {"day": day, "start": start, "end": end, "slot_minutes": slot_minutes}


def _range(start, end, multiplier="1.0", day="monday"):
    return {"day": day, "start": start, "end": end, "multiplier": multiplier}


def test_validator_accepts_exact_partition():
    validate_pricing_config(
        [_hours()],
        [_range("08:00", "12:00"), _range("12:00", "18:00", "1.2"), _range("18:00", "22:00", "1.5")],
    )


@pytest.mark.parametrize(
    "ranges, message",
    [
        ([_range("08:00", "12:00"), _range("13:00", "22:00")], "gap"),
        ([_range("08:00", "13:00"), _range("12:00", "22:00")], "overlap"),
        ([_range("09:00", "22:00")], "gap"),
        ([_range("08:00", "21:00")], "end exactly"),
        ([_range("08:00", "23:00")], "end exactly"),
        ([], "No price ranges"),
        ([_range("08:00", "22:00"), _range("08:00", "22:00", day="tuesday")], "no operating hours"),
        ([_range("08:00", "22:00", "-1")], "negative"),
    ],
)
def test_validator_rejects_broken_partitions(ranges, message):
    with pytest.raises(ValidationError) as exc_info:
        validate_pricing_config([_hours()], ranges)

    assert message in exc_info.value.message


def test_validator_rejects_bad_operating_hours():
    with pytest.raises(ValidationError):
        validate_pricing_config([_hours(start="22:00", end="08:00")], [])
    with pytest.raises(ValidationError):
        validate_pricing_config([_hours(), _hours()], [_range("08:00", "22:00")])
    with pytest.raises(ValidationError):
        validate_pricing_config([_hours(start="08:00", end="08:30")], [_range("08:00", "08:30")])


def test_validator_checks_every_day():
    hours = [_hours(day=day) for day in WEEKDAYS]
    ranges = [_range("08:00", "22:00", day=day) for day in WEEKDAYS if day != "sunday"]

    with pytest.raises(ValidationError) as exc_info:
        validate_pricing_config(hours, ranges)

    assert exc_info.value.details["day"] == "sunday"
