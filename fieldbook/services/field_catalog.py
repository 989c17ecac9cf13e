"""Field catalog: configuration writes, validation and price-change scheduling."""
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from fieldbook.core.exceptions import (
    AuthorizationError,
    ConflictError,
    FieldNotFoundError,
    NotFoundError,
    ValidationError,
)
from fieldbook.core.timeslots import to_minutes, today_local
from fieldbook.models.booking import Booking, BookingStatus
from fieldbook.models.court import Court
from fieldbook.models.field import Field
from fieldbook.schemas.field import (
    CourtCreate,
    FieldCreate,
    FieldUpdate,
    PendingPriceChange,
    PricingConfig,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EffectivePricing:
    """Pricing configuration in force on a given date."""

    operating_hours: List[Dict[str, Any]]
    price_ranges: List[Dict[str, Any]]
    base_price: Decimal
    effective_date: Optional[date] = None  # None means the live configuration

    def hours_for(self, day: str) -> Optional[Dict[str, Any]]:
        for entry in self.operating_hours:
            if entry["day"] == day:
                return entry
        return None

    def ranges_for(self, day: str) -> List[Dict[str, Any]]:
        return sorted(
            (r for r in self.price_ranges if r["day"] == day),
            key=lambda r: to_minutes(r["start"]),
        )


def validate_pricing_config(
    operating_hours: List[Dict[str, Any]],
    price_ranges: List[Dict[str, Any]],
) -> None:
    """
    Check that price ranges exactly partition each weekday's operating window.

    Must be called before any configuration is persisted.

    Raises:
        ValidationError: naming the first violated constraint
    """
    windows: Dict[str, Dict[str, Any]] = {}
    for entry in operating_hours:
        day = entry["day"]
        if day in windows:
            raise ValidationError(
                f"Operating hours for {day} are defined more than once",
                details={"day": day},
            )
        start, end = to_minutes(entry["start"]), to_minutes(entry["end"])
        if start >= end:
            raise ValidationError(
                f"Operating hours for {day} must start before they end",
                details={"day": day, "start": entry["start"], "end": entry["end"]},
            )
        slot_minutes = int(entry["slot_minutes"])
        if slot_minutes <= 0 or end - start < slot_minutes:
            raise ValidationError(
                f"Operating window for {day} is shorter than one {slot_minutes}-minute slot",
                details={"day": day, "slot_minutes": slot_minutes},
            )
        windows[day] = entry

    segments: Dict[str, List[Dict[str, Any]]] = {}
    for price_range in price_ranges:
        day = price_range["day"]
        if day not in windows:
            raise ValidationError(
                f"Price range defined for {day}, which has no operating hours",
                details={"day": day},
            )
        if to_minutes(price_range["start"]) >= to_minutes(price_range["end"]):
            raise ValidationError(
                f"Price range {price_range['start']}-{price_range['end']} on {day} is empty",
                details={"day": day},
            )
        if Decimal(str(price_range["multiplier"])) < 0:
            raise ValidationError(
                f"Price multiplier on {day} must not be negative",
                details={"day": day},
            )
        segments.setdefault(day, []).append(price_range)

    for day, window in windows.items():
        day_segments = sorted(segments.get(day, []), key=lambda r: to_minutes(r["start"]))
        if not day_segments:
            raise ValidationError(
                f"No price ranges cover the operating hours of {day}",
                details={"day": day},
            )
        cursor = to_minutes(window["start"])
        for segment in day_segments:
            seg_start = to_minutes(segment["start"])
            if seg_start > cursor:
                raise ValidationError(
                    f"Price ranges for {day} leave a gap before {segment['start']}",
                    details={"day": day, "at": segment["start"]},
                )
            if seg_start < cursor:
                raise ValidationError(
                    f"Price ranges for {day} overlap at {segment['start']}",
                    details={"day": day, "at": segment["start"]},
                )
            cursor = to_minutes(segment["end"])
        if cursor != to_minutes(window["end"]):
            raise ValidationError(
                f"Price ranges for {day} must end exactly at {window['end']}",
                details={"day": day, "expected_end": window["end"]},
            )


def resolve_pricing(field: Field, day: date) -> EffectivePricing:
    """
    Pick the configuration in force on ``day``.

    The unapplied pending change with the latest effective date on or before
    ``day`` wins; otherwise the live configuration applies.
    """
    due = [
        change
        for change in (field.pending_price_changes or [])
        if not change.get("applied") and date.fromisoformat(change["effective_date"]) <= day
    ]
    if due:
        change = max(due, key=lambda c: c["effective_date"])
        return EffectivePricing(
            operating_hours=change["new_operating_hours"],
            price_ranges=change["new_price_ranges"],
            base_price=Decimal(str(change["new_base_price"])),
            effective_date=date.fromisoformat(change["effective_date"]),
        )
    return EffectivePricing(
        operating_hours=field.operating_hours or [],
        price_ranges=field.price_ranges or [],
        base_price=Decimal(str(field.base_price)),
    )


def _dump_config(config: PricingConfig) -> Dict[str, Any]:
    return config.model_dump(mode="json")


class FieldCatalogService:
    """Service for field configuration."""

    async def get_field(self, db: AsyncSession, field_id: int, active_only: bool = False) -> Field:
        result = await db.execute(select(Field).where(Field.id == field_id))
        field = result.scalar_one_or_none()

        if not field or (active_only and not field.is_active):
            raise FieldNotFoundError(f"Field {field_id} not found", details={"field_id": field_id})

        return field

    async def create_field(self, db: AsyncSession, owner_id: int, data: FieldCreate) -> Field:
        """Validate and persist a new field."""
        payload = data.model_dump(mode="json")
        self._check_slot_bounds(data.min_slots, data.max_slots)
        self._check_amenities(payload["amenities"])
        validate_pricing_config(payload["operating_hours"], payload["price_ranges"])

        field = Field(
            owner_id=owner_id,
            name=data.name,
            staff_ids=payload["staff_ids"],
            operating_hours=payload["operating_hours"],
            price_ranges=payload["price_ranges"],
            base_price=data.base_price,
            min_slots=data.min_slots,
            max_slots=data.max_slots,
            amenities=payload["amenities"],
            pending_price_changes=[],
        )
        db.add(field)
        await db.commit()
        await db.refresh(field)

        logger.info(f"Created field {field.name} ({field.id}) for owner {owner_id}")
        return field

    async def update_field(
        self, db: AsyncSession, field_id: int, actor_id: int, data: FieldUpdate
    ) -> Field:
        """Apply a partial update; pricing changes are re-validated as a whole."""
        field = await self.get_field(db, field_id)
        self._require_owner(field, actor_id)

        update_data = data.model_dump(mode="json", exclude_unset=True)

        operating_hours = update_data.get("operating_hours", field.operating_hours)
        price_ranges = update_data.get("price_ranges", field.price_ranges)
        if "operating_hours" in update_data or "price_ranges" in update_data:
            validate_pricing_config(operating_hours, price_ranges)

        self._check_slot_bounds(
            update_data.get("min_slots", field.min_slots),
            update_data.get("max_slots", field.max_slots),
        )
        if "amenities" in update_data:
            self._check_amenities(update_data["amenities"])

        for name, value in update_data.items():
            if name == "base_price":
                value = data.base_price
            setattr(field, name, value)

        await self._commit(db, field)
        await db.refresh(field)
        return field

    async def add_court(
        self, db: AsyncSession, field_id: int, actor_id: int, data: CourtCreate
    ) -> Court:
        """
        Add a court to a field.

        Once a field has courts, requests resolve to court schedules, so a
        field still holding whole-field bookings cannot be split.
        """
        field = await self.get_field(db, field_id)
        self._require_owner(field, actor_id)

        held = await db.scalar(
            select(func.count())
            .select_from(Booking)
            .where(
                Booking.field_id == field.id,
                Booking.court_id.is_(None),
                Booking.status.in_(BookingStatus.ACTIVE),
                Booking.date >= today_local(),
            )
        )
        if held:
            raise ValidationError(
                "Field has upcoming whole-field bookings, courts cannot be added yet",
                details={"field_id": field.id, "bookings": held},
            )

        court = Court(field_id=field.id, name=data.name, court_number=data.court_number)
        db.add(court)
        await db.commit()
        await db.refresh(court)
        return court

    async def resolve_court(
        self, db: AsyncSession, field: Field, court_id: Optional[int]
    ) -> Optional[int]:
        """
        Decide which court a request targets.

        Fields without courts are booked whole (None). A field with a single
        active court defaults to it; with several, the caller must choose.
        """
        result = await db.execute(
            select(Court).where(Court.field_id == field.id, Court.is_active.is_(True))
        )
        courts = result.scalars().all()

        if court_id is not None:
            if not any(c.id == court_id for c in courts):
                raise NotFoundError(
                    f"Court {court_id} not found or inactive for field {field.id}",
                    details={"court_id": court_id},
                )
            return court_id

        if not courts:
            return None
        if len(courts) == 1:
            return courts[0].id
        raise ValidationError(
            "Field has multiple courts, court_id is required",
            details={"field_id": field.id},
        )

    async def schedule_price_change(
        self,
        db: AsyncSession,
        field_id: int,
        new_config: PricingConfig,
        effective_date: date,
        actor_id: int,
        today: Optional[date] = None,
    ) -> PendingPriceChange:
        """
        Queue a pricing configuration to take effect on ``effective_date``.

        An unapplied change already queued for the same date is replaced.
        """
        field = await self.get_field(db, field_id)
        self._require_owner(field, actor_id)

        today = today or today_local()
        if effective_date <= today:
            raise ValidationError(
                "effective_date must be after today",
                details={"effective_date": effective_date.isoformat(), "today": today.isoformat()},
            )

        config = _dump_config(new_config)
        validate_pricing_config(config["operating_hours"], config["price_ranges"])

        change = PendingPriceChange(
            new_operating_hours=new_config.operating_hours,
            new_price_ranges=new_config.price_ranges,
            new_base_price=new_config.base_price,
            effective_date=effective_date,
            created_by=actor_id,
        )
        remaining = [
            c
            for c in (field.pending_price_changes or [])
            if c.get("applied") or c["effective_date"] != effective_date.isoformat()
        ]
        field.pending_price_changes = remaining + [change.model_dump(mode="json")]
        await self._commit(db, field)

        logger.info(
            f"Scheduled price change for field {field_id} effective {effective_date.isoformat()}"
        )
        return change

    async def cancel_price_change(
        self, db: AsyncSession, field_id: int, effective_date: date, actor_id: int
    ) -> bool:
        """Drop an unapplied change. Returns False if none matched."""
        field = await self.get_field(db, field_id)
        self._require_owner(field, actor_id)

        before = field.pending_price_changes or []
        after = [
            c for c in before
            if c.get("applied") or c["effective_date"] != effective_date.isoformat()
        ]
        if len(after) == len(before):
            return False

        field.pending_price_changes = after
        await self._commit(db, field)
        return True

    async def list_price_changes(self, db: AsyncSession, field_id: int) -> List[PendingPriceChange]:
        field = await self.get_field(db, field_id)
        pending = [c for c in (field.pending_price_changes or []) if not c.get("applied")]
        pending.sort(key=lambda c: c["effective_date"])
        return [PendingPriceChange.model_validate(c) for c in pending]

    async def apply_due_price_changes(self, db: AsyncSession, today: Optional[date] = None) -> int:
        """
        Fold every due pending change into the live configuration.

        Changes are applied in effective-date order and marked ``applied``.
        A failure on one field is logged and does not stop the others. A field
        written concurrently is left for the next run.

        Returns:
            Number of fields updated
        """
        today = today or today_local()
        result = await db.execute(select(Field.id))
        field_ids = result.scalars().all()

        updated = 0
        for field_id in field_ids:
            field = await db.get(Field, field_id)
            if field is None:
                continue
            changes = [dict(c) for c in (field.pending_price_changes or [])]
            due = sorted(
                (c for c in changes if not c.get("applied") and date.fromisoformat(c["effective_date"]) <= today),
                key=lambda c: c["effective_date"],
            )
            if not due:
                continue

            try:
                for change in due:
                    validate_pricing_config(change["new_operating_hours"], change["new_price_ranges"])
                    field.operating_hours = change["new_operating_hours"]
                    field.price_ranges = change["new_price_ranges"]
                    field.base_price = Decimal(str(change["new_base_price"]))
                    change["applied"] = True
                field.pending_price_changes = changes
                await self._commit(db, field)
                updated += 1
                logger.info(f"Applied {len(due)} price change(s) for field {field_id}")
            except ConflictError:
                logger.warning(f"Field {field_id} changed while applying price changes, retrying next run")
            except Exception as e:
                await db.rollback()
                logger.error(
                    f"Failed to apply price changes for field {field_id}: {e}",
                    exc_info=True,
                )

        return updated

    async def _commit(self, db: AsyncSession, field: Field) -> None:
        field_id = field.id
        try:
            await db.commit()
        except StaleDataError:
            await db.rollback()
            raise ConflictError(
                f"Field {field_id} was modified concurrently, please retry",
                details={"field_id": field_id},
            )

    def _require_owner(self, field: Field, actor_id: int) -> None:
        if field.owner_id != actor_id:
            raise AuthorizationError(
                "Only the field owner can change its configuration",
                details={"field_id": field.id},
            )

    def _check_slot_bounds(self, min_slots: int, max_slots: int) -> None:
        if min_slots > max_slots:
            raise ValidationError(
                "min_slots must not exceed max_slots",
                details={"min_slots": min_slots, "max_slots": max_slots},
            )

    def _check_amenities(self, amenities: List[Dict[str, Any]]) -> None:
        ids = [a["id"] for a in amenities]
        if len(ids) != len(set(ids)):
            raise ValidationError("Amenity ids must be unique")


# Singleton instance
field_catalog = FieldCatalogService()
