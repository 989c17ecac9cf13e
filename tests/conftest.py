"""
Shared fixtures.

Every test gets its own SQLite file under tmp_path. NullPool gives each
session its own connection, so concurrent sessions really do race.
"""
import os

# Set before any fieldbook import so the module-level engine never points at Postgres
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./fieldbook-test.db")
os.environ["SCHEDULER_ENABLED"] = "false"

from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Tuple

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

import fieldbook.models  # noqa: F401
from fieldbook.core.database import Base
from fieldbook.core.timeslots import WEEKDAYS, today_local
from fieldbook.models.field import Field
from fieldbook.schemas.field import FieldCreate
from fieldbook.services.booking_service import booking_service
from fieldbook.services.field_catalog import field_catalog

OWNER_ID = 1
STAFF_ID = 2
CUSTOMER_ID = 10
OTHER_CUSTOMER_ID = 11
COACH_ID = 50


class RecordingPublisher:
    """Collects published events instead of sending them."""

    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def publish(self, event_type: str, payload: Dict[str, Any]) -> None:
        self.events.append((event_type, payload))

    @property
    def types(self) -> List[str]:
        return [event_type for event_type, _ in self.events]


def field_payload(**overrides) -> Dict[str, Any]:
    """
    Open 08:00-22:00 every day in 60 minute slots, base price 100000,
    x1.0 until 18:00 and x1.5 after.
    """
    slot_minutes = overrides.pop("slot_minutes", 60)
    payload = {
        "name": "Riverside Stadium",
        "base_price": "100000",
        "min_slots": 1,
        "max_slots": 4,
        "staff_ids": [STAFF_ID],
        "amenities": [
            {"id": "ball", "name": "Ball rental", "price": "20000"},
            {"id": "bibs", "name": "Training bibs", "price": "15000"},
        ],
        "operating_hours": [
            {"day": day, "start": "08:00", "end": "22:00", "slot_minutes": slot_minutes}
            for day in WEEKDAYS
        ],
        "price_ranges": [
            entry
            for day in WEEKDAYS
            for entry in (
                {"day": day, "start": "08:00", "end": "18:00", "multiplier": "1.0"},
                {"day": day, "start": "18:00", "end": "22:00", "multiplier": "1.5"},
            )
        ],
    }
    payload.update(overrides)
    return payload


def build_field(**overrides) -> Field:
    """An unsaved Field, for tests that never touch the database."""
    data = FieldCreate(**field_payload(**overrides)).model_dump(mode="json")
    return Field(
        id=1,
        owner_id=OWNER_ID,
        name=data["name"],
        is_active=True,
        staff_ids=data["staff_ids"],
        operating_hours=data["operating_hours"],
        price_ranges=data["price_ranges"],
        base_price=Decimal(data["base_price"]),
        min_slots=data["min_slots"],
        max_slots=data["max_slots"],
        amenities=data["amenities"],
        pending_price_changes=[],
    )


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'fieldbook.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 15},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def events(monkeypatch):
    recorder = RecordingPublisher()
    monkeypatch.setattr(booking_service, "publisher", recorder)
    return recorder


@pytest.fixture
def make_field(db):
    async def _make_field(**overrides):
        return await field_catalog.create_field(db, OWNER_ID, FieldCreate(**field_payload(**overrides)))

    return _make_field


@pytest.fixture
async def field(make_field):
    return await make_field()


@pytest.fixture
def booking_day() -> date:
    """A date far enough ahead that every tier is reachable."""
    return today_local() + timedelta(days=10)
