"""Schedule record model."""
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, Date, JSON, Index
from sqlalchemy.sql import func
from fieldbook.core.database import Base


def make_slot_key(field_id: int, court_id, day) -> str:
    """Build the unique key of a (field, court, date) schedule."""
    return f"{field_id}:{court_id if court_id is not None else '-'}:{day.isoformat()}"


class ScheduleRecord(Base):
    """Reserved ranges of one field/court on one date, created on first use."""

    __tablename__ = "schedule_records"

    id = Column(Integer, primary_key=True, index=True)
    slot_key = Column(String, unique=True, nullable=False)
    field_id = Column(Integer, ForeignKey("fields.id", ondelete="CASCADE"), nullable=False)
    court_id = Column(Integer, ForeignKey("courts.id", ondelete="CASCADE"), nullable=True)
    date = Column(Date, nullable=False)
    # [{"start": "09:00", "end": "10:00", "booking_ref": "..."}, ...]
    reserved_ranges = Column(JSON, nullable=False, default=list)
    is_blocked = Column(Boolean, default=False, nullable=False)
    block_reason = Column(String, nullable=True)
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        Index("ix_schedule_records_field_date", "field_id", "date"),
    )
