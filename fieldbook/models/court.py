"""Court model."""
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fieldbook.core.database import Base


class Court(Base):
    """Represents one court of a field. Fields without courts are booked whole."""

    __tablename__ = "courts"

    id = Column(Integer, primary_key=True, index=True)
    field_id = Column(Integer, ForeignKey("fields.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    court_number = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    field = relationship("Field", back_populates="courts")

    # One court number per field
    __table_args__ = (
        UniqueConstraint("field_id", "court_number", name="uq_courts_field_number"),
    )
