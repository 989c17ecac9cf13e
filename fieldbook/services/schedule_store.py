"""
Schedule store: lazily created per-(field, court, date) reservation records.

Double-booking is prevented here and only here. Every mutation is a
compare-and-swap on the record's version:

1. get-or-create the record (a concurrent first insert surfaces as an
   IntegrityError and is treated as "record exists")
2. read ranges and check for conflicts
3. UPDATE ... WHERE version = <read version>; zero rows means another
   writer got there first, so go back to 1

Methods never commit. They run inside the caller's transaction so that the
reservation and whatever the caller persists next succeed or fail together.
``mark_holiday`` and a ``reserve`` that may create its record must be the
first write of that transaction, because a lost creation race rolls it back.
Callers reserving several keys in one transaction create the records first
with ``ensure_records`` and reserve with ``create_missing=False``.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fieldbook.core.config import settings
from fieldbook.core.exceptions import ConflictError, DateBlockedError, SlotConflictError
from fieldbook.core.timeslots import minutes_to_str, to_minutes
from fieldbook.models.schedule_record import ScheduleRecord, make_slot_key
from fieldbook.services.availability_service import has_conflict
from fieldbook.services.pricing_service import TimeOfDay

logger = logging.getLogger(__name__)


@dataclass
class ScheduleSnapshot:
    """Point-in-time copy of a schedule record."""

    id: int
    slot_key: str
    version: int
    reserved_ranges: List[Dict[str, Any]]
    is_blocked: bool
    block_reason: Optional[str]

    @property
    def booking_refs(self) -> List[str]:
        return [r["booking_ref"] for r in self.reserved_ranges]


def _hhmm(value: TimeOfDay) -> str:
    return minutes_to_str(value if isinstance(value, int) else to_minutes(value))


class ScheduleStore:
    """Optimistically versioned reservation records."""

    def __init__(self, max_attempts: Optional[int] = None):
        self._max_attempts = max_attempts

    @property
    def max_attempts(self) -> int:
        return self._max_attempts or settings.RESERVATION_MAX_ATTEMPTS

    async def get_record(
        self, db: AsyncSession, field_id: int, court_id: Optional[int], day: date
    ) -> Optional[ScheduleSnapshot]:
        """Read a record without creating it."""
        return await self._read(db, make_slot_key(field_id, court_id, day))

    async def ensure_records(
        self,
        db: AsyncSession,
        field_id: int,
        court_id: Optional[int],
        days: List[date],
    ) -> None:
        """Create any missing records for ``days``, committing each one."""
        for day in days:
            await self._get_or_create(db, field_id, court_id, day)
            await db.commit()

    async def reserve(
        self,
        db: AsyncSession,
        field_id: int,
        court_id: Optional[int],
        day: date,
        start: TimeOfDay,
        end: TimeOfDay,
        booking_ref: str,
        create_missing: bool = True,
    ) -> int:
        """
        Add [start, end) to the record for (field, court, day).

        With ``create_missing=False`` the record must already exist; a
        missing one counts as a lost race.

        Returns:
            The record's new version

        Raises:
            DateBlockedError: If the date is blocked
            SlotConflictError: If the range overlaps an existing reservation
            ConflictError: If the version race is lost on every attempt
        """
        slot_key = make_slot_key(field_id, court_id, day)
        new_range = {"start": _hhmm(start), "end": _hhmm(end), "booking_ref": booking_ref}

        for attempt in range(1, self.max_attempts + 1):
            record = (
                await self._get_or_create(db, field_id, court_id, day)
                if create_missing
                else await self._read(db, slot_key)
            )
            if record is None:
                continue

            if record.is_blocked:
                raise DateBlockedError(
                    f"Cannot book on a blocked date: {record.block_reason or 'unavailable'}",
                    details={"slot_key": slot_key, "reason": record.block_reason},
                )

            if has_conflict(new_range["start"], new_range["end"], record.reserved_ranges):
                raise SlotConflictError(
                    "Selected time slots are not available",
                    details={"slot_key": slot_key, "start": new_range["start"], "end": new_range["end"]},
                )

            swapped = await self._compare_and_swap(
                db,
                record.id,
                record.version,
                reserved_ranges=record.reserved_ranges + [new_range],
            )
            if swapped:
                logger.info(
                    f"Reserved {new_range['start']}-{new_range['end']} on {slot_key} for {booking_ref}"
                )
                return record.version + 1

            logger.warning(
                f"Version conflict reserving on {slot_key} (attempt {attempt}/{self.max_attempts})"
            )

        raise ConflictError(
            "Slot was modified concurrently, please retry",
            details={"slot_key": slot_key, "attempts": self.max_attempts},
        )

    async def release(
        self,
        db: AsyncSession,
        field_id: int,
        court_id: Optional[int],
        day: date,
        booking_ref: str,
    ) -> bool:
        """
        Remove the range held by ``booking_ref``.

        Idempotent: a missing record or range is not an error.

        Returns:
            True if a range was removed
        """
        slot_key = make_slot_key(field_id, court_id, day)

        for attempt in range(1, self.max_attempts + 1):
            record = await self._read(db, slot_key)
            if record is None or booking_ref not in record.booking_refs:
                logger.debug(f"Nothing to release for {booking_ref} on {slot_key}")
                return False

            remaining = [r for r in record.reserved_ranges if r["booking_ref"] != booking_ref]
            if await self._compare_and_swap(db, record.id, record.version, reserved_ranges=remaining):
                logger.info(f"Released {booking_ref} on {slot_key}")
                return True

            logger.warning(
                f"Version conflict releasing on {slot_key} (attempt {attempt}/{self.max_attempts})"
            )

        raise ConflictError(
            "Slot was modified concurrently, please retry",
            details={"slot_key": slot_key, "attempts": self.max_attempts},
        )

    async def mark_holiday(
        self,
        db: AsyncSession,
        field_id: int,
        court_id: Optional[int],
        day: date,
        reason: str,
    ) -> List[str]:
        """
        Block the date and clear its reservations.

        Returns:
            Booking references whose ranges were cleared
        """
        return await self._block(db, field_id, court_id, day, reason)

    async def unmark_holiday(
        self,
        db: AsyncSession,
        field_id: int,
        court_id: Optional[int],
        day: date,
    ) -> bool:
        """
        Lift a block. Reservations are never touched.

        A missing or unblocked record is left alone.

        Returns:
            True if the record was unblocked
        """
        slot_key = make_slot_key(field_id, court_id, day)

        for attempt in range(1, self.max_attempts + 1):
            record = await self._read(db, slot_key)
            if record is None or not record.is_blocked:
                logger.debug(f"{slot_key} is not blocked")
                return False

            if await self._compare_and_swap(
                db, record.id, record.version, is_blocked=False, block_reason=None
            ):
                logger.info(f"Unblocked {slot_key}")
                return True

            logger.warning(
                f"Version conflict unblocking {slot_key} (attempt {attempt}/{self.max_attempts})"
            )

        raise ConflictError(
            "Slot was modified concurrently, please retry",
            details={"slot_key": slot_key, "attempts": self.max_attempts},
        )

    async def cleanup_empty_records(self, db: AsyncSession, before: date) -> int:
        """
        Delete empty, unblocked records dated before ``before``.

        Each delete is conditioned on the version read, so a record touched
        in the meantime survives. Commits its own work.

        Returns:
            Number of records deleted
        """
        result = await db.execute(
            select(
                ScheduleRecord.id,
                ScheduleRecord.version,
                ScheduleRecord.reserved_ranges,
            ).where(
                ScheduleRecord.date < before,
                ScheduleRecord.is_blocked.is_(False),
            )
        )
        deleted = 0
        for record_id, version, reserved_ranges in result.all():
            if reserved_ranges:
                continue
            outcome = await db.execute(
                delete(ScheduleRecord)
                .where(ScheduleRecord.id == record_id, ScheduleRecord.version == version)
                .execution_options(synchronize_session=False)
            )
            deleted += outcome.rowcount

        await db.commit()
        logger.info(f"Removed {deleted} empty schedule record(s) dated before {before.isoformat()}")
        return deleted

    async def _block(
        self,
        db: AsyncSession,
        field_id: int,
        court_id: Optional[int],
        day: date,
        reason: str,
    ) -> List[str]:
        slot_key = make_slot_key(field_id, court_id, day)

        for attempt in range(1, self.max_attempts + 1):
            record = await self._get_or_create(db, field_id, court_id, day)
            if record is None:
                continue

            swapped = await self._compare_and_swap(
                db,
                record.id,
                record.version,
                reserved_ranges=[],
                is_blocked=True,
                block_reason=reason,
            )
            if swapped:
                logger.info(f"Blocked {slot_key}: {reason}")
                return record.booking_refs

            logger.warning(
                f"Version conflict blocking {slot_key} (attempt {attempt}/{self.max_attempts})"
            )

        raise ConflictError(
            "Slot was modified concurrently, please retry",
            details={"slot_key": slot_key, "attempts": self.max_attempts},
        )

    async def _read(self, db: AsyncSession, slot_key: str) -> Optional[ScheduleSnapshot]:
        # Plain columns, not entities: each read must see the latest committed row
        result = await db.execute(
            select(
                ScheduleRecord.id,
                ScheduleRecord.slot_key,
                ScheduleRecord.version,
                ScheduleRecord.reserved_ranges,
                ScheduleRecord.is_blocked,
                ScheduleRecord.block_reason,
            ).where(ScheduleRecord.slot_key == slot_key)
        )
        row = result.first()
        if row is None:
            return None
        return ScheduleSnapshot(
            id=row.id,
            slot_key=row.slot_key,
            version=row.version,
            reserved_ranges=list(row.reserved_ranges or []),
            is_blocked=bool(row.is_blocked),
            block_reason=row.block_reason,
        )

    async def _get_or_create(
        self,
        db: AsyncSession,
        field_id: int,
        court_id: Optional[int],
        day: date,
    ) -> Optional[ScheduleSnapshot]:
        slot_key = make_slot_key(field_id, court_id, day)
        record = await self._read(db, slot_key)
        if record is not None:
            return record

        try:
            await db.execute(
                insert(ScheduleRecord).values(
                    slot_key=slot_key,
                    field_id=field_id,
                    court_id=court_id,
                    date=day,
                    reserved_ranges=[],
                    is_blocked=False,
                    version=0,
                )
            )
            logger.debug(f"Created schedule record {slot_key}")
        except IntegrityError:
            # Another writer created it first
            await db.rollback()
            logger.info(f"Schedule record {slot_key} was created concurrently")

        # None only if maintenance deleted it in between; callers retry
        return await self._read(db, slot_key)

    async def _compare_and_swap(
        self, db: AsyncSession, record_id: int, expected_version: int, **values
    ) -> bool:
        result = await db.execute(
            update(ScheduleRecord)
            .where(ScheduleRecord.id == record_id, ScheduleRecord.version == expected_version)
            .values(version=expected_version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


# Singleton instance
schedule_store = ScheduleStore()
