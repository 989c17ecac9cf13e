"""Booking model."""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date, Time, Numeric, JSON, Index
from sqlalchemy.sql import func
from fieldbook.core.database import Base


class BookingStatus:
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    TERMINAL = (CANCELLED, COMPLETED)
    ACTIVE = (PENDING, CONFIRMED)


class CoachStatus:
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class Booking(Base):
    """Represents a reservation of a field/court time range."""

    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    reference = Column(String, unique=True, nullable=False)  # schedule booking_ref
    user_id = Column(Integer, nullable=False, index=True)
    field_id = Column(Integer, ForeignKey("fields.id", ondelete="CASCADE"), nullable=False, index=True)
    court_id = Column(Integer, ForeignKey("courts.id", ondelete="SET NULL"), nullable=True)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    num_slots = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default=BookingStatus.PENDING)
    coach_id = Column(Integer, nullable=True, index=True)
    coach_status = Column(String, nullable=True)
    selected_amenities = Column(JSON, nullable=False, default=list)
    amenities_fee = Column(Numeric(12, 2), nullable=False, default=0)
    booking_amount = Column(Numeric(12, 2), nullable=False)
    platform_fee = Column(Numeric(12, 2), nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)
    # Pricing snapshot, frozen at creation
    base_price_used = Column(Numeric(12, 2), nullable=False)
    multiplier_applied = Column(Numeric(6, 2), nullable=False)
    price_breakdown = Column(String, nullable=False)
    note = Column(String, nullable=True)
    # Shared by bookings created together as one weekly or multi-day series
    recurrence_group = Column(String, nullable=True, index=True)
    cancellation_reason = Column(String, nullable=True)
    cancelled_by_role = Column(String, nullable=True)
    refund_amount = Column(Numeric(12, 2), nullable=True)
    penalty_amount = Column(Numeric(12, 2), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        Index("ix_bookings_field_date", "field_id", "date"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in BookingStatus.TERMINAL
