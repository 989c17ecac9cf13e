"""Field endpoints."""
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldbook.api.deps import get_actor_id
from fieldbook.core.database import get_db
from fieldbook.core.exceptions import NotFoundError
from fieldbook.models.field import Field
from fieldbook.schemas.booking import HolidayResult
from fieldbook.schemas.field import (
    CourtCreate,
    CourtInDB,
    FieldCreate,
    FieldInDB,
    FieldUpdate,
    HolidayRequest,
    PendingPriceChange,
    PriceChangeCreate,
)
from fieldbook.services.booking_service import booking_service
from fieldbook.services.field_catalog import field_catalog

router = APIRouter(prefix="/fields", tags=["fields"])


@router.post("", response_model=FieldInDB, status_code=201)
async def create_field(
    field: FieldCreate,
    actor_id: int = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a new field owned by the caller.

    Price ranges must exactly cover each weekday's operating hours.

    Args:
        field: Field configuration
        actor_id: Owner ID
        db: Database session

    Returns:
        Created field
    """
    return await field_catalog.create_field(db, actor_id, field)


@router.get("", response_model=List[FieldInDB])
async def list_fields(
    owner_id: Optional[int] = None,
    active_only: bool = True,
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(get_db),
):
    """
    List fields.

    Args:
        owner_id: Only fields of this owner
        active_only: Hide deactivated fields
        skip: Number of records to skip
        limit: Maximum number of records to return
        db: Database session

    Returns:
        List of fields
    """
    query = select(Field)
    if owner_id is not None:
        query = query.where(Field.owner_id == owner_id)
    if active_only:
        query = query.where(Field.is_active.is_(True))

    result = await db.execute(query.order_by(Field.id).offset(skip).limit(limit))
    return result.scalars().all()


@router.get("/{field_id}", response_model=FieldInDB)
async def get_field(
    field_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get a specific field by ID."""
    return await field_catalog.get_field(db, field_id)


@router.patch("/{field_id}", response_model=FieldInDB)
async def update_field(
    field_id: int,
    field_update: FieldUpdate,
    actor_id: int = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Update a field's configuration.

    Changes to operating hours or price ranges take effect immediately. Use
    price changes to schedule them for a later date.
    """
    return await field_catalog.update_field(db, field_id, actor_id, field_update)


@router.post("/{field_id}/courts", response_model=CourtInDB, status_code=201)
async def add_court(
    field_id: int,
    court: CourtCreate,
    actor_id: int = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
):
    return await field_catalog.add_court(db, field_id, actor_id, court)


@router.post("/{field_id}/price-changes", response_model=PendingPriceChange, status_code=201)
async def schedule_price_change(
    field_id: int,
    price_change: PriceChangeCreate,
    actor_id: int = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Schedule a pricing configuration for a future date.

    Bookings dated on or after the effective date are priced with it. A
    change already queued for the same date is replaced.

    Args:
        field_id: Field ID
        price_change: New configuration and its effective date
        actor_id: Must be the field owner
        db: Database session

    Returns:
        The queued change
    """
    return await field_catalog.schedule_price_change(
        db,
        field_id,
        price_change.config,
        price_change.effective_date,
        actor_id,
    )


@router.get("/{field_id}/price-changes", response_model=List[PendingPriceChange])
async def list_price_changes(
    field_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await field_catalog.list_price_changes(db, field_id)


@router.delete("/{field_id}/price-changes/{effective_date}", status_code=204)
async def cancel_price_change(
    field_id: int,
    effective_date: date,
    actor_id: int = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
):
    """Drop the pending change queued for a date."""
    removed = await field_catalog.cancel_price_change(db, field_id, effective_date, actor_id)
    if not removed:
        raise NotFoundError(
            f"No pending price change on {effective_date.isoformat()}",
            details={"field_id": field_id},
        )


@router.post("/{field_id}/holidays/{holiday_date}", response_model=HolidayResult)
async def mark_holiday(
    field_id: int,
    holiday_date: date,
    holiday: HolidayRequest,
    actor_id: int = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Block a date for a holiday or maintenance.

    Active bookings on that date are cancelled and refunded in full.

    Args:
        field_id: Field ID
        holiday_date: Date to block
        holiday: Reason and optional court (all courts when omitted)
        actor_id: Field owner or staff
        db: Database session

    Returns:
        Blocked courts and the cancelled bookings
    """
    return await booking_service.mark_holiday(
        db, field_id, holiday_date, holiday.reason, actor_id, court_id=holiday.court_id
    )


@router.delete("/{field_id}/holidays/{holiday_date}", response_model=HolidayResult)
async def unmark_holiday(
    field_id: int,
    holiday_date: date,
    court_id: Optional[int] = Query(default=None),
    actor_id: int = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
):
    return await booking_service.unmark_holiday(
        db, field_id, holiday_date, actor_id, court_id=court_id
    )
