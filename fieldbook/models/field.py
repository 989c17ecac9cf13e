"""Field model."""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fieldbook.core.database import Base


class Field(Base):
    """Represents a bookable sports field and its pricing configuration."""

    __tablename__ = "fields"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, nullable=False, index=True)
    name = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    staff_ids = Column(JSON, nullable=False, default=list)
    # [{"day": "monday", "start": "08:00", "end": "22:00", "slot_minutes": 60}, ...]
    operating_hours = Column(JSON, nullable=False, default=list)
    min_slots = Column(Integer, nullable=False, default=1)
    max_slots = Column(Integer, nullable=False, default=4)
    # [{"day": "monday", "start": "18:00", "end": "22:00", "multiplier": "1.5"}, ...]
    price_ranges = Column(JSON, nullable=False, default=list)
    base_price = Column(Numeric(12, 2), nullable=False)
    # [{"new_operating_hours": [...], "new_price_ranges": [...], "new_base_price": "...",
    #   "effective_date": "2026-01-01", "applied": false, "created_by": 1}, ...]
    pending_price_changes = Column(JSON, nullable=False, default=list)
    # [{"id": "ball", "name": "Ball rental", "price": "20000"}, ...]
    amenities = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    # Bumped on every ORM write; a write based on a stale read fails
    version = Column(Integer, nullable=False)

    # Relationships
    courts = relationship("Court", back_populates="field", cascade="all, delete-orphan")

    __mapper_args__ = {"version_id_col": version}

    def is_manager(self, actor_id: int) -> bool:
        """True if the actor owns the field or is on its staff."""
        return actor_id == self.owner_id or actor_id in (self.staff_ids or [])
