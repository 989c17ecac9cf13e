"""Cancellation policy: eligibility rules and refund/penalty tiers.

Everything here is a pure function of the booking, the actor's role and the
current time. Executing refunds and penalties is the ledger's job.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from fieldbook.core.config import settings
from fieldbook.core.timeslots import local_instant, now_local
from fieldbook.models.booking import BookingStatus, CoachStatus
from fieldbook.services.pricing_service import quantize

logger = logging.getLogger(__name__)


class CancellationRole:
    USER = "user"
    OWNER = "owner"
    COACH = "coach"

    ALL = (USER, OWNER, COACH)


@dataclass(frozen=True)
class CancellationTier:
    """Applies when hours until start >= min_hours."""

    min_hours: float
    refund_percent: int
    penalty_percent: int


@dataclass
class Eligibility:
    allowed: bool
    hours_until_start: float
    reason: Optional[str] = None

    @property
    def has_started(self) -> bool:
        return self.hours_until_start <= 0


@dataclass
class CancellationQuote:
    """Refund and penalty a cancellation would produce right now."""

    eligibility: Eligibility
    role: str
    slot_value: Decimal
    refund_percent: Optional[int] = None
    refund_amount: Optional[Decimal] = None
    penalty_percent: Optional[int] = None
    penalty_amount: Optional[Decimal] = None

    @property
    def allowed(self) -> bool:
        return self.eligibility.allowed


def build_tiers(raw: Iterable[Sequence]) -> List[CancellationTier]:
    """Turn (min_hours, refund %, penalty %) rows into tiers, highest threshold first."""
    tiers = [CancellationTier(float(row[0]), int(row[1]), int(row[2])) for row in raw]
    if not tiers:
        raise ValueError("At least one cancellation tier is required")
    return sorted(tiers, key=lambda t: t.min_hours, reverse=True)


def _percent(amount: Decimal, percent: int) -> Decimal:
    return quantize(amount * Decimal(percent) / Decimal(100))


class CancellationPolicy:
    """Evaluates cancellations against the tier table."""

    def __init__(
        self,
        tiers: Optional[Iterable[Sequence]] = None,
        platform_fee_refundable: Optional[bool] = None,
    ):
        self._tiers = build_tiers(tiers) if tiers is not None else None
        self._platform_fee_refundable = platform_fee_refundable

    @property
    def tiers(self) -> List[CancellationTier]:
        return self._tiers or build_tiers(settings.CANCELLATION_TIERS)

    @property
    def platform_fee_refundable(self) -> bool:
        if self._platform_fee_refundable is None:
            return settings.PLATFORM_FEE_REFUNDABLE
        return self._platform_fee_refundable

    def hours_until_start(self, booking, now: Optional[datetime] = None) -> float:
        """Fractional hours from now to the booking start; negative once started."""
        starts_at = local_instant(booking.date, booking.start_time)
        return (starts_at - now_local(now)).total_seconds() / 3600

    def tier_for(self, hours_until_start: float) -> CancellationTier:
        tiers = self.tiers
        for tier in tiers:
            if hours_until_start >= tier.min_hours:
                return tier
        # Already started: most restrictive tier
        return tiers[-1]

    def refund_percent(self, hours_until_start: float) -> int:
        return self.tier_for(hours_until_start).refund_percent

    def penalty_percent(self, hours_until_start: float) -> int:
        return self.tier_for(hours_until_start).penalty_percent

    def eligibility(self, booking, role: str, now: Optional[datetime] = None) -> Eligibility:
        """Hard rules that no tier can override."""
        hours = self.hours_until_start(booking, now)

        if hours <= 0:
            return Eligibility(False, hours, "Booking has already started")
        if booking.status == BookingStatus.COMPLETED:
            return Eligibility(False, hours, "Booking is already completed")
        if booking.status not in BookingStatus.ACTIVE:
            return Eligibility(
                False,
                hours,
                f"Cannot cancel a booking with status '{booking.status}', "
                f"allowed: {', '.join(BookingStatus.ACTIVE)}",
            )
        if role == CancellationRole.COACH and booking.coach_status != CoachStatus.ACCEPTED:
            return Eligibility(False, hours, "Coach can only cancel accepted bookings")

        return Eligibility(True, hours)

    def quote(self, booking, role: str, now: Optional[datetime] = None) -> CancellationQuote:
        """
        Compute what cancelling now would cost each party.

        Customer cancellations refund the tier's share of the booking amount.
        Owner and coach cancellations refund the customer in full and charge
        the canceller the tier's penalty on the slot value.
        """
        booking_amount = Decimal(str(booking.booking_amount))
        platform_fee = Decimal(str(booking.platform_fee or 0))
        slot_value = booking_amount + platform_fee

        eligibility = self.eligibility(booking, role, now)
        quote = CancellationQuote(eligibility=eligibility, role=role, slot_value=slot_value)
        if not eligibility.allowed:
            return quote

        tier = self.tier_for(eligibility.hours_until_start)
        if role == CancellationRole.USER:
            quote.refund_percent = tier.refund_percent
            quote.penalty_percent = 0
            quote.penalty_amount = Decimal("0.00")
        else:
            quote.refund_percent = 100
            quote.penalty_percent = tier.penalty_percent
            quote.penalty_amount = _percent(slot_value, tier.penalty_percent)

        refundable = booking_amount + (platform_fee if self.platform_fee_refundable else Decimal("0"))
        quote.refund_amount = _percent(refundable, quote.refund_percent)
        return quote


# Singleton instance
cancellation_policy = CancellationPolicy()
