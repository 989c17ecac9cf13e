"""Availability endpoints."""
from datetime import date, timedelta
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fieldbook.core.database import get_db
from fieldbook.core.timeslots import today_local
from fieldbook.schemas.availability import AvailabilityResponse
from fieldbook.services.availability_service import availability_service

router = APIRouter(prefix="/fields/{field_id}", tags=["availability"])


@router.get("/availability", response_model=AvailabilityResponse)
async def get_availability(
    field_id: int,
    court_id: Optional[int] = Query(default=None, description="Court (required for multi-court fields)"),
    from_date: date = Query(default=None, description="Start date (defaults to today)"),
    to_date: date = Query(default=None, description="End date (defaults to 6 days after from_date)"),
    db: AsyncSession = Depends(get_db),
):
    """
    Get the slot grid for a field.

    Each slot carries its price and whether it is still free. The grid is a
    snapshot: a free slot can still be taken before it is booked.

    Args:
        field_id: Field ID
        court_id: Court ID
        from_date: Start date (defaults to today)
        to_date: End date (defaults to a week from from_date)
        db: Database session

    Returns:
        Availability per day
    """
    if from_date is None:
        from_date = today_local()
    if to_date is None:
        to_date = from_date + timedelta(days=6)

    return await availability_service.get_availability(db, field_id, court_id, from_date, to_date)
