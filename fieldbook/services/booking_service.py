"""
Booking lifecycle.

Creation reserves the range in the schedule store and inserts the booking
row inside one transaction; any failure rolls both back. Status changes are
conditional updates on the row's current state, so two concurrent
cancellations cannot both succeed.
"""
import logging
import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional

import pytz
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fieldbook.core.config import settings
from fieldbook.core.exceptions import (
    AuthorizationError,
    BookingNotFoundError,
    ConflictError,
    InvalidRangeError,
    ValidationError,
)
from fieldbook.core.timeslots import (
    local_instant,
    minutes_to_str,
    minutes_to_time,
    now_local,
    to_minutes,
)
from fieldbook.models.booking import Booking, BookingStatus, CoachStatus
from fieldbook.models.court import Court
from fieldbook.models.field import Field
from fieldbook.schemas.booking import CancellationResult, HolidayResult
from fieldbook.services.availability_service import availability_service
from fieldbook.services.cancellation_policy import (
    CancellationPolicy,
    CancellationRole,
    cancellation_policy,
)
from fieldbook.services.events import EventPublisher, EventType, event_publisher
from fieldbook.services.field_catalog import field_catalog, resolve_pricing
from fieldbook.services.pricing_service import pricing_service, quantize
from fieldbook.services.schedule_store import ScheduleStore, schedule_store

logger = logging.getLogger(__name__)


def platform_fee_for(booking_amount: Decimal) -> Decimal:
    """Platform fee on a booking amount, rounded to whole currency units."""
    fee = (booking_amount * settings.PLATFORM_FEE_RATE).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return quantize(fee)


def _booking_payload(booking: Booking) -> Dict[str, Any]:
    return {
        "booking_id": booking.id,
        "reference": booking.reference,
        "user_id": booking.user_id,
        "field_id": booking.field_id,
        "court_id": booking.court_id,
        "date": booking.date.isoformat(),
        "start_time": booking.start_time.strftime("%H:%M"),
        "end_time": booking.end_time.strftime("%H:%M"),
        "status": booking.status,
        "coach_id": booking.coach_id,
        "coach_status": booking.coach_status,
        "total_price": booking.total_price,
    }


class BookingService:
    """Service for creating bookings and moving them through their states."""

    def __init__(
        self,
        store: Optional[ScheduleStore] = None,
        policy: Optional[CancellationPolicy] = None,
        publisher: Optional[EventPublisher] = None,
    ):
        self.store = store or schedule_store
        self.policy = policy or cancellation_policy
        self.publisher = publisher or event_publisher

    async def create_booking(
        self,
        db: AsyncSession,
        user_id: int,
        field_id: int,
        court_id: Optional[int],
        day: date,
        start,
        end,
        selected_amenities: Iterable[str] = (),
        coach_id: Optional[int] = None,
        note: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Booking:
        """
        Validate, price, reserve and persist a booking.

        Args:
            db: Database session
            user_id: Customer making the booking
            field_id: Field to book
            court_id: Court to book, or None to let the field decide
            day: Booking date
            start: Range start (time or "HH:MM")
            end: Range end (time or "HH:MM")
            selected_amenities: Amenity ids from the field's catalog
            coach_id: Coach requested for the session, if any
            note: Free-text note

        Returns:
            The persisted booking, status pending

        Raises:
            FieldNotFoundError: If the field is unknown or inactive
            InvalidRangeError: If the range breaks the field's constraints
            DateBlockedError: If the date is blocked
            SlotConflictError: If the range overlaps another reservation
        """
        field = await field_catalog.get_field(db, field_id, active_only=True)
        court_id = await field_catalog.resolve_court(db, field, court_id)
        amenity_ids = list(dict.fromkeys(selected_amenities))

        # The reservation may roll the session back on a lost creation race,
        # so the booking row is built only from values computed up front.
        booking = self._build_booking(
            field, court_id, user_id, day, start, end, amenity_ids, coach_id, note, now
        )
        start_min, end_min = to_minutes(start), to_minutes(end)

        try:
            await self.store.reserve(db, field_id, court_id, day, start_min, end_min, booking.reference)
            db.add(booking)
            await db.commit()
        except Exception:
            await db.rollback()
            logger.info(
                f"Booking of field {field_id} on {day.isoformat()} "
                f"{minutes_to_str(start_min)}-{minutes_to_str(end_min)} was not created"
            )
            raise

        await db.refresh(booking)
        logger.info(f"Created booking {booking.id} ({booking.reference}) for user {user_id}")
        self.publisher.publish(EventType.BOOKING_CREATED, _booking_payload(booking))
        return booking

    async def create_recurring_bookings(
        self,
        db: AsyncSession,
        user_id: int,
        field_id: int,
        court_id: Optional[int],
        days: Iterable[date],
        start,
        end,
        selected_amenities: Iterable[str] = (),
        note: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[Booking]:
        """
        Book the same range on several dates, all or nothing.

        Every date is validated and priced on its own (a scheduled price
        change can apply to later dates). All reservations and rows commit in
        one transaction; a conflict on any date rolls every one of them back.

        Returns:
            The persisted bookings in date order, sharing a recurrence group

        Raises:
            ValidationError: If no dates are given or too many
            InvalidRangeError, DateBlockedError, SlotConflictError: As for
                a single booking, for the first date that fails
        """
        days = sorted(set(days))
        if not days:
            raise ValidationError("At least one date is required")
        if len(days) > settings.RECURRING_MAX_BOOKINGS:
            raise ValidationError(
                f"At most {settings.RECURRING_MAX_BOOKINGS} dates can be booked at once",
                details={"requested": len(days)},
            )

        field = await field_catalog.get_field(db, field_id, active_only=True)
        court_id = await field_catalog.resolve_court(db, field, court_id)
        amenity_ids = list(dict.fromkeys(selected_amenities))
        group = uuid.uuid4().hex

        bookings = [
            self._build_booking(
                field, court_id, user_id, day, start, end, amenity_ids, None, note, now, group
            )
            for day in days
        ]
        start_min, end_min = to_minutes(start), to_minutes(end)

        # Records are created up front so no reserve below can roll back the others
        await self.store.ensure_records(db, field_id, court_id, days)

        try:
            for booking in bookings:
                await self.store.reserve(
                    db,
                    field_id,
                    court_id,
                    booking.date,
                    start_min,
                    end_min,
                    booking.reference,
                    create_missing=False,
                )
            db.add_all(bookings)
            await db.commit()
        except Exception:
            await db.rollback()
            logger.info(
                f"Recurring booking of field {field_id} on {len(days)} date(s) "
                f"{minutes_to_str(start_min)}-{minutes_to_str(end_min)} was not created"
            )
            raise

        for booking in bookings:
            await db.refresh(booking)
            self.publisher.publish(EventType.BOOKING_CREATED, _booking_payload(booking))
        logger.info(f"Created {len(bookings)} recurring booking(s) in group {group} for user {user_id}")
        return bookings

    async def get_booking(self, db: AsyncSession, booking_id: int) -> Booking:
        result = await db.execute(
            select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
        )
        booking = result.scalar_one_or_none()

        if not booking:
            raise BookingNotFoundError(
                f"Booking {booking_id} not found", details={"booking_id": booking_id}
            )

        return booking

    async def get_booking_for(self, db: AsyncSession, booking_id: int, actor_id: int) -> Booking:
        """Fetch a booking the actor may see: its customer, its coach or a field manager."""
        booking = await self.get_booking(db, booking_id)
        if actor_id in (booking.user_id, booking.coach_id):
            return booking

        field = await field_catalog.get_field(db, booking.field_id)
        if not field.is_manager(actor_id):
            raise AuthorizationError(
                f"Not allowed to view booking {booking_id}",
                details={"booking_id": booking_id},
            )
        return booking

    async def list_user_bookings(
        self, db: AsyncSession, user_id: int, status: Optional[str] = None
    ) -> List[Booking]:
        query = select(Booking).where(Booking.user_id == user_id)
        if status:
            query = query.where(Booking.status == status)
        query = query.order_by(Booking.date.desc(), Booking.start_time.desc())

        result = await db.execute(query)
        return result.scalars().all()

    async def confirm_booking(self, db: AsyncSession, booking_id: int, actor_id: int) -> Booking:
        """Owner or staff confirms a pending booking."""
        booking = await self.get_booking(db, booking_id)
        field = await field_catalog.get_field(db, booking.field_id)
        self._require_manager(field, actor_id)
        return await self._confirm(db, booking)

    async def confirm_payment(self, db: AsyncSession, booking_id: int) -> Booking:
        """
        Mark a booking paid. Called by the payment collaborator, not a user.

        Confirming an already confirmed booking is a no-op.
        """
        booking = await self.get_booking(db, booking_id)
        if booking.status == BookingStatus.CONFIRMED:
            return booking
        return await self._confirm(db, booking)

    async def fail_payment(
        self, db: AsyncSession, booking_id: int, reason: Optional[str] = None
    ) -> Booking:
        """
        Cancel a pending booking whose payment failed and free its range.

        Called by the payment collaborator. Nothing was charged, so nothing
        is refunded. Failing an already cancelled booking is a no-op.
        """
        booking = await self.get_booking(db, booking_id)
        if booking.status == BookingStatus.CANCELLED:
            logger.warning(f"Payment failure for booking {booking_id}, already cancelled")
            return booking
        if booking.status != BookingStatus.PENDING:
            raise ValidationError(
                f"Payment cannot fail for a {booking.status} booking",
                details={"booking_id": booking_id},
            )

        await self._apply(
            db,
            booking,
            [Booking.status == BookingStatus.PENDING],
            release=True,
            status=BookingStatus.CANCELLED,
            cancellation_reason=reason or "Payment failed",
            refund_amount=Decimal("0.00"),
            penalty_amount=Decimal("0.00"),
        )
        logger.info(f"Booking {booking_id} cancelled after failed payment")
        self._publish_cancellation(booking)
        return booking

    async def expire_unpaid_bookings(self, db: AsyncSession, now: Optional[datetime] = None) -> int:
        """
        Cancel pending bookings older than the payment timeout.

        Returns:
            Number of bookings expired
        """
        cutoff = now_local(now).astimezone(pytz.UTC) - timedelta(
            minutes=settings.PENDING_PAYMENT_TIMEOUT_MINUTES
        )
        result = await db.execute(
            select(Booking.id).where(
                Booking.status == BookingStatus.PENDING,
                Booking.created_at < cutoff,
            )
        )
        booking_ids = result.scalars().all()

        expired = 0
        for booking_id in booking_ids:
            try:
                await self.fail_payment(db, booking_id, "Payment not received in time")
                expired += 1
            except (ConflictError, ValidationError) as e:
                # Confirmed or cancelled in the meantime
                logger.warning(f"Skipped expiring booking {booking_id}: {e.message}")

        return expired

    async def complete_booking(
        self, db: AsyncSession, booking_id: int, now: Optional[datetime] = None
    ) -> Booking:
        booking = await self.get_booking(db, booking_id)

        if booking.status != BookingStatus.CONFIRMED:
            raise ValidationError(
                f"Only confirmed bookings can be completed (status '{booking.status}')",
                details={"booking_id": booking_id},
            )
        if local_instant(booking.date, booking.end_time) > now_local(now):
            raise ValidationError(
                "Booking cannot be completed before it ends",
                details={"booking_id": booking_id},
            )

        await self._apply(
            db,
            booking,
            [Booking.status == BookingStatus.CONFIRMED],
            status=BookingStatus.COMPLETED,
        )
        logger.info(f"Completed booking {booking_id}")
        self.publisher.publish(EventType.BOOKING_COMPLETED, _booking_payload(booking))
        return booking

    async def complete_finished_bookings(self, db: AsyncSession, now: Optional[datetime] = None) -> int:
        """
        Complete every confirmed booking whose end time has passed.

        Returns:
            Number of bookings completed
        """
        current = now_local(now)
        result = await db.execute(
            select(Booking.id).where(
                Booking.status == BookingStatus.CONFIRMED,
                Booking.date <= current.date(),
            )
        )
        booking_ids = result.scalars().all()

        completed = 0
        for booking_id in booking_ids:
            try:
                await self.complete_booking(db, booking_id, now=current)
                completed += 1
            except ValidationError:
                # Ends later today
                continue
            except ConflictError as e:
                logger.warning(f"Skipped completing booking {booking_id}: {e.message}")

        return completed

    async def respond_to_coach_request(
        self,
        db: AsyncSession,
        booking_id: int,
        coach_id: int,
        accept: bool,
        reason: Optional[str] = None,
    ) -> Booking:
        """
        Record the requested coach's answer.

        Declining cancels the booking, releases its range and refunds the
        customer in full.
        """
        booking = await self.get_booking(db, booking_id)

        if booking.coach_id is None or booking.coach_id != coach_id:
            raise AuthorizationError(
                "Only the requested coach can respond to this booking",
                details={"booking_id": booking_id},
            )
        if booking.coach_status != CoachStatus.PENDING:
            raise ValidationError(
                f"Coach has already responded ({booking.coach_status})",
                details={"booking_id": booking_id},
            )
        if booking.is_terminal:
            raise ValidationError(
                f"Cannot respond to a {booking.status} booking",
                details={"booking_id": booking_id},
            )

        pending_coach = [
            Booking.coach_status == CoachStatus.PENDING,
            Booking.status.in_(BookingStatus.ACTIVE),
        ]

        if accept:
            await self._apply(db, booking, pending_coach, coach_status=CoachStatus.ACCEPTED)
            logger.info(f"Coach {coach_id} accepted booking {booking_id}")
            self.publisher.publish(EventType.COACH_ACCEPTED, _booking_payload(booking))
            return booking

        refund = self._full_refund(booking)
        await self._apply(
            db,
            booking,
            pending_coach,
            release=True,
            status=BookingStatus.CANCELLED,
            coach_status=CoachStatus.DECLINED,
            cancellation_reason=reason or "Coach declined",
            cancelled_by_role=CancellationRole.COACH,
            refund_amount=refund,
            penalty_amount=Decimal("0.00"),
        )
        logger.info(f"Coach {coach_id} declined booking {booking_id}")
        self.publisher.publish(EventType.COACH_DECLINED, _booking_payload(booking))
        self._publish_cancellation(booking)
        return booking

    async def preview_cancellation(
        self,
        db: AsyncSession,
        booking_id: int,
        actor_id: int,
        role: str,
        now: Optional[datetime] = None,
    ) -> CancellationResult:
        """What cancelling now would do, without changing anything."""
        booking = await self.get_booking(db, booking_id)
        await self._authorize_cancel(db, booking, actor_id, role)
        quote = self.policy.quote(booking, role, now)
        return self._result(booking, quote)

    async def cancel_booking(
        self,
        db: AsyncSession,
        booking_id: int,
        actor_id: int,
        role: str,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> CancellationResult:
        """
        Cancel a booking on behalf of its customer, the field owner or the coach.

        A booking the policy does not allow cancelling comes back with
        ``allowed=False`` and is left untouched.

        Raises:
            BookingNotFoundError: If the booking does not exist
            AuthorizationError: If the actor may not cancel in that role
            ValidationError: If the role is unknown
        """
        booking = await self.get_booking(db, booking_id)
        await self._authorize_cancel(db, booking, actor_id, role)

        quote = self.policy.quote(booking, role, now)
        if not quote.allowed:
            logger.info(f"Cancellation of booking {booking_id} refused: {quote.eligibility.reason}")
            return self._result(booking, quote)

        await self._apply(
            db,
            booking,
            [Booking.status == booking.status],
            release=True,
            status=BookingStatus.CANCELLED,
            cancellation_reason=reason,
            cancelled_by_role=role,
            refund_amount=quote.refund_amount,
            penalty_amount=quote.penalty_amount,
        )
        logger.info(
            f"Booking {booking_id} cancelled by {role} {actor_id}: "
            f"refund {quote.refund_amount}, penalty {quote.penalty_amount}"
        )
        self._publish_cancellation(booking)
        return self._result(booking, quote)

    async def mark_holiday(
        self,
        db: AsyncSession,
        field_id: int,
        day: date,
        reason: str,
        actor_id: int,
        court_id: Optional[int] = None,
    ) -> HolidayResult:
        """
        Block a date and cancel every active booking on it with a full refund.

        Without a court, every active court of the field is blocked, each in
        its own transaction.
        """
        court_ids = await self._holiday_targets(db, field_id, actor_id, court_id)

        cancelled: List[Booking] = []
        for target in court_ids:
            try:
                refs = await self.store.mark_holiday(db, field_id, target, day, reason)
                day_bookings = []
                if refs:
                    result = await db.execute(
                        select(Booking).where(
                            Booking.reference.in_(refs),
                            Booking.status.in_(BookingStatus.ACTIVE),
                        )
                    )
                    day_bookings = result.scalars().all()
                    for booking in day_bookings:
                        await self._transition(
                            db,
                            booking.id,
                            [Booking.status.in_(BookingStatus.ACTIVE)],
                            status=BookingStatus.CANCELLED,
                            cancellation_reason=f"Holiday: {reason}",
                            cancelled_by_role=CancellationRole.OWNER,
                            refund_amount=booking.total_price,
                            penalty_amount=Decimal("0.00"),
                        )
                await db.commit()
            except Exception:
                await db.rollback()
                raise

            for booking in day_bookings:
                await db.refresh(booking)
                self._publish_cancellation(booking)
            cancelled.extend(day_bookings)

        logger.info(
            f"Marked {day.isoformat()} as holiday on field {field_id}, "
            f"cancelled {len(cancelled)} booking(s)"
        )
        return HolidayResult(
            field_id=field_id,
            court_ids=court_ids,
            date=day,
            is_blocked=True,
            cancelled_booking_ids=[b.id for b in cancelled],
        )

    async def unmark_holiday(
        self,
        db: AsyncSession,
        field_id: int,
        day: date,
        actor_id: int,
        court_id: Optional[int] = None,
    ) -> HolidayResult:
        court_ids = await self._holiday_targets(db, field_id, actor_id, court_id)

        unblocked = 0
        for target in court_ids:
            try:
                unblocked += await self.store.unmark_holiday(db, field_id, target, day)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info(f"Unblocked {day.isoformat()} on field {field_id} ({unblocked} schedule(s) were blocked)")
        return HolidayResult(field_id=field_id, court_ids=court_ids, date=day, is_blocked=False)

    async def _confirm(self, db: AsyncSession, booking: Booking) -> Booking:
        if booking.status != BookingStatus.PENDING:
            raise ValidationError(
                f"Only pending bookings can be confirmed (status '{booking.status}')",
                details={"booking_id": booking.id},
            )

        await self._apply(
            db,
            booking,
            [Booking.status == BookingStatus.PENDING],
            status=BookingStatus.CONFIRMED,
        )
        logger.info(f"Confirmed booking {booking.id}")
        self.publisher.publish(EventType.BOOKING_CONFIRMED, _booking_payload(booking))
        return booking

    async def _apply(
        self,
        db: AsyncSession,
        booking: Booking,
        conditions: List[Any],
        release: bool = False,
        **values,
    ) -> None:
        """Run one guarded transition (and optional release), commit, refresh."""
        booking_id = booking.id
        try:
            if release:
                await self.store.release(
                    db, booking.field_id, booking.court_id, booking.date, booking.reference
                )
            await self._transition(db, booking_id, conditions, **values)
            await db.commit()
        except Exception:
            await db.rollback()
            logger.warning(f"Transition of booking {booking_id} rolled back")
            raise

        await db.refresh(booking)

    async def _transition(
        self, db: AsyncSession, booking_id: int, conditions: List[Any], **values
    ) -> None:
        result = await db.execute(
            update(Booking)
            .where(Booking.id == booking_id, *conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError(
                "Booking was modified concurrently, please retry",
                details={"booking_id": booking_id},
            )

    async def _authorize_cancel(
        self, db: AsyncSession, booking: Booking, actor_id: int, role: str
    ) -> None:
        if role not in CancellationRole.ALL:
            raise ValidationError(
                f"Unknown cancellation role '{role}'",
                details={"allowed": list(CancellationRole.ALL)},
            )

        if role == CancellationRole.USER:
            allowed = booking.user_id == actor_id
        elif role == CancellationRole.COACH:
            allowed = booking.coach_id is not None and booking.coach_id == actor_id
        else:
            field = await field_catalog.get_field(db, booking.field_id)
            allowed = field.is_manager(actor_id)

        if not allowed:
            raise AuthorizationError(
                f"Not allowed to cancel booking {booking.id} as {role}",
                details={"booking_id": booking.id, "role": role},
            )

    async def _holiday_targets(
        self, db: AsyncSession, field_id: int, actor_id: int, court_id: Optional[int]
    ) -> List[Optional[int]]:
        field = await field_catalog.get_field(db, field_id)
        self._require_manager(field, actor_id)

        if court_id is not None:
            return [await field_catalog.resolve_court(db, field, court_id)]

        result = await db.execute(
            select(Court.id)
            .where(Court.field_id == field_id, Court.is_active.is_(True))
            .order_by(Court.court_number)
        )
        return list(result.scalars().all()) or [None]

    def _require_manager(self, field: Field, actor_id: int) -> None:
        if not field.is_manager(actor_id):
            raise AuthorizationError(
                "Only the field owner or staff can do this",
                details={"field_id": field.id},
            )

    def _build_booking(
        self,
        field: Field,
        court_id: Optional[int],
        user_id: int,
        day: date,
        start,
        end,
        amenity_ids: List[str],
        coach_id: Optional[int],
        note: Optional[str],
        now: Optional[datetime],
        recurrence_group: Optional[str] = None,
    ) -> Booking:
        """Validate and price one date; returns an unsaved pending booking."""
        start_min, end_min = to_minutes(start), to_minutes(end)
        if local_instant(day, minutes_to_time(start_min)) <= now_local(now):
            raise InvalidRangeError(
                "Cannot book a time that has already started",
                details={"date": day.isoformat(), "start": minutes_to_str(start_min)},
            )

        pricing = resolve_pricing(field, day)
        num_slots = availability_service.validate_range(start_min, end_min, field, day, pricing)
        quote = pricing_service.price_range(start_min, end_min, field, day, pricing)

        amenities_fee = self._amenities_fee(field, amenity_ids)
        booking_amount = quote.total + amenities_fee
        platform_fee = platform_fee_for(booking_amount)

        return Booking(
            reference=uuid.uuid4().hex,
            user_id=user_id,
            field_id=field.id,
            court_id=court_id,
            date=day,
            start_time=minutes_to_time(start_min),
            end_time=minutes_to_time(end_min),
            num_slots=num_slots,
            status=BookingStatus.PENDING,
            coach_id=coach_id,
            coach_status=CoachStatus.PENDING if coach_id is not None else None,
            selected_amenities=amenity_ids,
            amenities_fee=amenities_fee,
            booking_amount=booking_amount,
            platform_fee=platform_fee,
            total_price=booking_amount + platform_fee,
            base_price_used=quote.base_price,
            multiplier_applied=quote.multiplier,
            price_breakdown=quote.breakdown,
            note=note,
            recurrence_group=recurrence_group,
        )

    def _amenities_fee(self, field: Field, amenity_ids: List[str]) -> Decimal:
        catalog = {a["id"]: Decimal(str(a["price"])) for a in (field.amenities or [])}
        unknown = [a for a in amenity_ids if a not in catalog]
        if unknown:
            raise ValidationError(
                f"Unknown amenities: {', '.join(unknown)}",
                details={"amenities": unknown},
            )
        return quantize(sum((catalog[a] for a in amenity_ids), Decimal("0")))

    def _full_refund(self, booking: Booking) -> Decimal:
        amount = Decimal(str(booking.booking_amount))
        if self.policy.platform_fee_refundable:
            amount += Decimal(str(booking.platform_fee))
        return quantize(amount)

    def _publish_cancellation(self, booking: Booking) -> None:
        payload = _booking_payload(booking)
        payload.update(
            cancelled_by_role=booking.cancelled_by_role,
            reason=booking.cancellation_reason,
            refund_amount=booking.refund_amount,
            penalty_amount=booking.penalty_amount,
        )
        self.publisher.publish(EventType.BOOKING_CANCELLED, payload)

        if booking.refund_amount and booking.refund_amount > 0:
            self.publisher.publish(
                EventType.LEDGER_REFUND,
                {"booking_id": booking.id, "user_id": booking.user_id, "amount": booking.refund_amount},
            )
        if booking.penalty_amount and booking.penalty_amount > 0:
            self.publisher.publish(
                EventType.LEDGER_PENALTY,
                {
                    "booking_id": booking.id,
                    "charged_role": booking.cancelled_by_role,
                    "field_id": booking.field_id,
                    "coach_id": booking.coach_id,
                    "amount": booking.penalty_amount,
                },
            )

    def _result(self, booking: Booking, quote) -> CancellationResult:
        return CancellationResult(
            booking_id=booking.id,
            role=quote.role,
            allowed=quote.allowed,
            reason=quote.eligibility.reason,
            status=booking.status,
            hours_until_start=round(quote.eligibility.hours_until_start, 2),
            refund_percent=quote.refund_percent,
            refund_amount=quote.refund_amount,
            penalty_percent=quote.penalty_percent,
            penalty_amount=quote.penalty_amount,
        )


# Singleton instance
booking_service = BookingService()
