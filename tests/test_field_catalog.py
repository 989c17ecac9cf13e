"""Tests for field configuration and scheduled price changes."""
from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import OWNER_ID, STAFF_ID, field_payload
from fieldbook.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from fieldbook.schemas.field import CourtCreate, FieldCreate, FieldUpdate, PricingConfig
from fieldbook.services.field_catalog import field_catalog
from fieldbook.services.pricing_service import pricing_service
from fieldbook.services.scheduler import MaintenanceScheduler


def pricing_config(base_price="150000", evening="2.0"):
    payload = field_payload()
    for price_range in payload["price_ranges"]:
        if price_range["start"] == "18:00":
            price_range["multiplier"] = evening
    return PricingConfig(
        operating_hours=payload["operating_hours"],
        price_ranges=payload["price_ranges"],
        base_price=base_price,
    )


async def test_create_field_rejects_gaps(db):
    payload = field_payload()
    payload["price_ranges"] = [r for r in payload["price_ranges"] if r["start"] != "18:00"]

    with pytest.raises(ValidationError):
        await field_catalog.create_field(db, OWNER_ID, FieldCreate(**payload))


async def test_create_field_rejects_bad_slot_bounds(db):
    with pytest.raises(ValidationError):
        await field_catalog.create_field(db, OWNER_ID, FieldCreate(**field_payload(min_slots=5, max_slots=2)))


async def test_update_revalidates_pricing(db, field):
    bad_ranges = [
        {"day": "monday", "start": "08:00", "end": "20:00", "multiplier": "1.0"},
    ]

    with pytest.raises(ValidationError):
        await field_catalog.update_field(db, field.id, OWNER_ID, FieldUpdate(price_ranges=bad_ranges))

    updated = await field_catalog.update_field(
        db, field.id, OWNER_ID, FieldUpdate(name="Riverside Arena", base_price=Decimal("120000"))
    )
    assert updated.name == "Riverside Arena"
    assert updated.base_price == Decimal("120000")


async def test_only_owner_configures(db, field):
    with pytest.raises(AuthorizationError):
        await field_catalog.update_field(db, field.id, STAFF_ID, FieldUpdate(name="Mine now"))
    with pytest.raises(AuthorizationError):
        await field_catalog.add_court(db, field.id, STAFF_ID, CourtCreate(name="A", court_number=1))


async def test_court_resolution(db, field):
    assert await field_catalog.resolve_court(db, field, None) is None

    court = await field_catalog.add_court(db, field.id, OWNER_ID, CourtCreate(name="A", court_number=1))
    assert await field_catalog.resolve_court(db, field, None) == court.id

    with pytest.raises(NotFoundError):
        await field_catalog.resolve_court(db, field, court.id + 100)


async def test_price_change_must_be_in_the_future(db, field, booking_day):
    with pytest.raises(ValidationError):
        await field_catalog.schedule_price_change(
            db, field.id, pricing_config(), booking_day, OWNER_ID, today=booking_day
        )


async def test_price_change_is_validated(db, field, booking_day):
    config = pricing_config()
    config.price_ranges = config.price_ranges[:-1]

    with pytest.raises(ValidationError):
        await field_catalog.schedule_price_change(
            db, field.id, config, booking_day, OWNER_ID, today=booking_day - timedelta(days=1)
        )


async def test_price_change_prices_bookings_from_its_date(db, field, booking_day):
    today = booking_day - timedelta(days=5)

    await field_catalog.schedule_price_change(
        db, field.id, pricing_config(), booking_day, OWNER_ID, today=today
    )

    field = await field_catalog.get_field(db, field.id)
    before = pricing_service.price_range("19:00", "21:00", field, booking_day - timedelta(days=1))
    after = pricing_service.price_range("19:00", "21:00", field, booking_day)
    assert before.total == Decimal("300000.00")
    assert after.total == Decimal("600000.00")


async def test_same_date_change_is_replaced(db, field, booking_day):
    today = booking_day - timedelta(days=5)

    await field_catalog.schedule_price_change(
        db, field.id, pricing_config(base_price="150000"), booking_day, OWNER_ID, today=today
    )
    await field_catalog.schedule_price_change(
        db, field.id, pricing_config(base_price="180000"), booking_day, OWNER_ID, today=today
    )

    changes = await field_catalog.list_price_changes(db, field.id)
    assert len(changes) == 1
    assert changes[0].new_base_price == Decimal("180000")
    assert changes[0].created_by == OWNER_ID


async def test_cancel_price_change(db, field, booking_day):
    await field_catalog.schedule_price_change(
        db, field.id, pricing_config(), booking_day, OWNER_ID, today=booking_day - timedelta(days=1)
    )

    assert await field_catalog.cancel_price_change(db, field.id, booking_day, OWNER_ID) is True
    assert await field_catalog.cancel_price_change(db, field.id, booking_day, OWNER_ID) is False
    assert await field_catalog.list_price_changes(db, field.id) == []


async def test_apply_due_price_changes(db, field, booking_day):
    await field_catalog.schedule_price_change(
        db, field.id, pricing_config(), booking_day, OWNER_ID, today=booking_day - timedelta(days=3)
    )
    later = booking_day + timedelta(days=7)
    await field_catalog.schedule_price_change(
        db, field.id, pricing_config(base_price="200000"), later, OWNER_ID, today=booking_day - timedelta(days=3)
    )

    assert await field_catalog.apply_due_price_changes(db, today=booking_day - timedelta(days=1)) == 0
    assert await field_catalog.apply_due_price_changes(db, today=booking_day) == 1

    field = await field_catalog.get_field(db, field.id)
    assert field.base_price == Decimal("150000")
    remaining = await field_catalog.list_price_changes(db, field.id)
    assert [c.effective_date for c in remaining] == [later]

    # Applied changes stay applied
    assert await field_catalog.apply_due_price_changes(db, today=booking_day) == 0


async def test_scheduler_jobs_use_their_own_sessions(session_factory, field):
    scheduler = MaintenanceScheduler(session_factory=session_factory)

    assert await scheduler.apply_price_changes() == 0
    assert await scheduler.cleanup_schedule_records() == 0
    assert await scheduler.complete_finished_bookings() == 0
    assert not scheduler.running


async def test_apply_does_not_overwrite_a_concurrent_schedule(db, session_factory, field, booking_day):
    field_id = field.id
    today = booking_day - timedelta(days=3)
    later = booking_day + timedelta(days=7)
    await field_catalog.schedule_price_change(db, field_id, pricing_config(), booking_day, OWNER_ID, today=today)

    # Another request queues a change while this session still holds the old field
    async with session_factory() as other:
        await field_catalog.schedule_price_change(
            other, field_id, pricing_config(base_price="200000"), later, OWNER_ID, today=today
        )

    assert await field_catalog.apply_due_price_changes(db, today=booking_day) == 0
    assert await field_catalog.apply_due_price_changes(db, today=booking_day) == 1

    remaining = await field_catalog.list_price_changes(db, field_id)
    assert [c.effective_date for c in remaining] == [later]
    assert (await field_catalog.get_field(db, field_id)).base_price == Decimal("150000")


async def test_stale_update_is_a_conflict(db, session_factory, field):
    field_id = field.id
    async with session_factory() as other:
        await field_catalog.update_field(other, field_id, OWNER_ID, FieldUpdate(name="Renamed"))

    with pytest.raises(ConflictError):
        await field_catalog.update_field(db, field_id, OWNER_ID, FieldUpdate(name="Mine"))

    assert (await field_catalog.get_field(db, field_id)).name == "Renamed"


async def test_expiry_job_runs_in_its_own_session(session_factory, field):
    scheduler = MaintenanceScheduler(session_factory=session_factory)

    assert await scheduler.expire_unpaid_bookings() == 0
