"""Tests for the versioned schedule store."""
from datetime import timedelta

import pytest

from fieldbook.core.exceptions import ConflictError, DateBlockedError, SlotConflictError
from fieldbook.services.schedule_store import ScheduleStore, schedule_store


async def test_first_reservation_creates_the_record(db, field, booking_day):
    version = await schedule_store.reserve(db, field.id, None, booking_day, "09:00", "10:00", "ref-1")
    await db.commit()

    record = await schedule_store.get_record(db, field.id, None, booking_day)
    assert version == 1
    assert record.version == 1
    assert record.slot_key == f"{field.id}:-:{booking_day.isoformat()}"
    assert record.reserved_ranges == [{"start": "09:00", "end": "10:00", "booking_ref": "ref-1"}]


async def test_overlapping_reservation_is_rejected(db, field, booking_day):
    field_id = field.id
    await schedule_store.reserve(db, field_id, None, booking_day, "09:00", "10:00", "ref-1")
    await db.commit()

    with pytest.raises(SlotConflictError):
        await schedule_store.reserve(db, field_id, None, booking_day, "09:30", "10:30", "ref-2")
    await db.rollback()

    version = await schedule_store.reserve(db, field_id, None, booking_day, "10:00", "11:00", "ref-3")
    await db.commit()
    assert version == 2


async def test_records_are_per_court_and_date(db, field, booking_day):
    await schedule_store.reserve(db, field.id, None, booking_day, "09:00", "10:00", "ref-1")
    await schedule_store.reserve(
        db, field.id, None, booking_day + timedelta(days=1), "09:00", "10:00", "ref-2"
    )
    await db.commit()

    assert (await schedule_store.get_record(db, field.id, None, booking_day)).booking_refs == ["ref-1"]


async def test_release_is_idempotent(db, field, booking_day):
    await schedule_store.reserve(db, field.id, None, booking_day, "09:00", "10:00", "ref-1")
    await schedule_store.reserve(db, field.id, None, booking_day, "11:00", "12:00", "ref-2")
    await db.commit()

    assert await schedule_store.release(db, field.id, None, booking_day, "ref-1") is True
    await db.commit()
    once = await schedule_store.get_record(db, field.id, None, booking_day)

    assert await schedule_store.release(db, field.id, None, booking_day, "ref-1") is False
    await db.commit()
    twice = await schedule_store.get_record(db, field.id, None, booking_day)

    assert once.reserved_ranges == twice.reserved_ranges
    assert once.version == twice.version
    assert twice.booking_refs == ["ref-2"]


async def test_release_without_record(db, field, booking_day):
    assert await schedule_store.release(db, field.id, None, booking_day, "missing") is False


async def test_holiday_blocks_and_clears(db, field, booking_day):
    field_id = field.id
    await schedule_store.reserve(db, field_id, None, booking_day, "09:00", "10:00", "ref-1")
    await db.commit()

    cleared = await schedule_store.mark_holiday(db, field_id, None, booking_day, "Lunar New Year")
    await db.commit()

    assert cleared == ["ref-1"]
    with pytest.raises(DateBlockedError) as exc_info:
        await schedule_store.reserve(db, field_id, None, booking_day, "12:00", "13:00", "ref-2")
    assert "Lunar New Year" in exc_info.value.message
    await db.rollback()

    await schedule_store.unmark_holiday(db, field_id, None, booking_day)
    await schedule_store.reserve(db, field_id, None, booking_day, "12:00", "13:00", "ref-2")
    await db.commit()

    record = await schedule_store.get_record(db, field_id, None, booking_day)
    assert not record.is_blocked
    assert record.booking_refs == ["ref-2"]


async def test_holiday_on_unused_date_creates_blocked_record(db, field, booking_day):
    assert await schedule_store.mark_holiday(db, field.id, None, booking_day, "Closed") == []
    await db.commit()

    record = await schedule_store.get_record(db, field.id, None, booking_day)
    assert record.is_blocked
    assert record.block_reason == "Closed"


async def test_lost_version_race_is_retried(db, field, booking_day, monkeypatch):
    store = ScheduleStore()
    original = store._compare_and_swap
    calls = []

    async def flaky(session, record_id, expected_version, **values):
        calls.append(expected_version)
        if len(calls) == 1:
            return False
        return await original(session, record_id, expected_version, **values)

    monkeypatch.setattr(store, "_compare_and_swap", flaky)

    version = await store.reserve(db, field.id, None, booking_day, "09:00", "10:00", "ref-1")
    await db.commit()

    assert version == 1
    assert calls == [0, 0]


async def test_retries_are_bounded(db, field, booking_day, monkeypatch):
    store = ScheduleStore(max_attempts=3)
    calls = []

    async def always_lose(session, record_id, expected_version, **values):
        calls.append(expected_version)
        return False

    monkeypatch.setattr(store, "_compare_and_swap", always_lose)

    with pytest.raises(ConflictError) as exc_info:
        await store.reserve(db, field.id, None, booking_day, "09:00", "10:00", "ref-1")

    assert not isinstance(exc_info.value, SlotConflictError)
    assert len(calls) == 3


async def test_cleanup_removes_only_empty_past_records(db, field, booking_day):
    await schedule_store.reserve(db, field.id, None, booking_day, "09:00", "10:00", "ref-1")
    await schedule_store.mark_holiday(db, field.id, None, booking_day + timedelta(days=1), "Closed")
    await db.commit()
    await schedule_store.reserve(db, field.id, None, booking_day + timedelta(days=2), "09:00", "10:00", "ref-2")
    await schedule_store.release(db, field.id, None, booking_day + timedelta(days=2), "ref-2")
    await db.commit()

    deleted = await schedule_store.cleanup_empty_records(db, booking_day + timedelta(days=5))

    assert deleted == 1
    assert await schedule_store.get_record(db, field.id, None, booking_day) is not None
    assert await schedule_store.get_record(db, field.id, None, booking_day + timedelta(days=1)) is not None
    assert await schedule_store.get_record(db, field.id, None, booking_day + timedelta(days=2)) is None


async def test_unmark_leaves_reservations_alone(db, field, booking_day):
    field_id = field.id
    await schedule_store.reserve(db, field_id, None, booking_day, "09:00", "10:00", "ref-1")
    await db.commit()

    assert await schedule_store.unmark_holiday(db, field_id, None, booking_day) is False
    await db.commit()

    record = await schedule_store.get_record(db, field_id, None, booking_day)
    assert record.version == 1
    assert record.booking_refs == ["ref-1"]
    with pytest.raises(SlotConflictError):
        await schedule_store.reserve(db, field_id, None, booking_day, "09:00", "10:00", "ref-2")


async def test_unmark_unused_date_creates_nothing(db, field, booking_day):
    assert await schedule_store.unmark_holiday(db, field.id, None, booking_day) is False
    await db.commit()

    assert await schedule_store.get_record(db, field.id, None, booking_day) is None


async def test_unmark_clears_only_the_block(db, field, booking_day):
    await schedule_store.mark_holiday(db, field.id, None, booking_day, "Closed")
    await db.commit()

    assert await schedule_store.unmark_holiday(db, field.id, None, booking_day) is True
    await db.commit()

    record = await schedule_store.get_record(db, field.id, None, booking_day)
    assert not record.is_blocked
    assert record.block_reason is None
    assert record.version == 2


async def test_reserve_without_creating_needs_an_existing_record(db, field, booking_day):
    field_id = field.id
    with pytest.raises(ConflictError):
        await schedule_store.reserve(
            db, field_id, None, booking_day, "09:00", "10:00", "ref-1", create_missing=False
        )
    assert await schedule_store.get_record(db, field_id, None, booking_day) is None

    await schedule_store.ensure_records(db, field_id, None, [booking_day, booking_day + timedelta(days=1)])
    version = await schedule_store.reserve(
        db, field_id, None, booking_day, "09:00", "10:00", "ref-1", create_missing=False
    )
    await db.commit()

    assert version == 1
    assert await schedule_store.get_record(db, field_id, None, booking_day + timedelta(days=1)) is not None
