"""Booking endpoints."""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fieldbook.api.deps import get_actor_id
from fieldbook.core.database import get_db
from fieldbook.core.exceptions import AuthorizationError
from fieldbook.core.timeslots import consecutive_dates, weekly_dates
from fieldbook.schemas.booking import (
    BookingCreate,
    BookingInDB,
    CancellationResult,
    CancelRequest,
    CoachResponse,
    ConsecutiveBookingCreate,
    WeeklyBookingCreate,
)
from fieldbook.services.booking_service import booking_service

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=BookingInDB, status_code=201)
async def create_booking(
    booking: BookingCreate,
    actor_id: int = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Book a time range on a field.

    The range must align with the field's slots and fit inside its operating
    hours. Overlapping an existing booking fails with 409.

    Args:
        booking: Field, court, date and range to book
        actor_id: Customer making the booking
        db: Database session

    Returns:
        Created booking, status pending
    """
    return await booking_service.create_booking(
        db,
        user_id=actor_id,
        field_id=booking.field_id,
        court_id=booking.court_id,
        day=booking.date,
        start=booking.start_time,
        end=booking.end_time,
        selected_amenities=booking.selected_amenities,
        coach_id=booking.coach_id,
        note=booking.note,
    )


@router.post("/weekly", response_model=List[BookingInDB], status_code=201)
async def create_weekly_bookings(
    request: WeeklyBookingCreate,
    actor_id: int = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Book the same range on chosen weekdays for several weeks.

    Every date is booked or none is: one unavailable date fails the request.
    """
    days = weekly_dates(request.start_date, request.weekdays, request.number_of_weeks, request.skip_dates)
    return await booking_service.create_recurring_bookings(
        db,
        user_id=actor_id,
        field_id=request.field_id,
        court_id=request.court_id,
        days=days,
        start=request.start_time,
        end=request.end_time,
        selected_amenities=request.selected_amenities,
        note=request.note,
    )


@router.post("/consecutive", response_model=List[BookingInDB], status_code=201)
async def create_consecutive_bookings(
    request: ConsecutiveBookingCreate,
    actor_id: int = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
):
    """Book the same range on every day of a date span, all or nothing."""
    return await booking_service.create_recurring_bookings(
        db,
        user_id=actor_id,
        field_id=request.field_id,
        court_id=request.court_id,
        days=consecutive_dates(request.start_date, request.end_date),
        start=request.start_time,
        end=request.end_time,
        selected_amenities=request.selected_amenities,
        note=request.note,
    )


@router.get("", response_model=List[BookingInDB])
async def list_bookings(
    user_id: int = Query(..., description="Customer whose bookings to list"),
    status: Optional[str] = None,
    actor_id: int = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
):
    """List a customer's bookings, most recent first. Customers only see their own."""
    if user_id != actor_id:
        raise AuthorizationError("Cannot list another user's bookings")
    return await booking_service.list_user_bookings(db, user_id, status)


@router.get("/{booking_id}", response_model=BookingInDB)
async def get_booking(
    booking_id: int,
    actor_id: int = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
):
    """Get a booking. Visible to its customer, its coach and the field's managers."""
    return await booking_service.get_booking_for(db, booking_id, actor_id)


@router.post("/{booking_id}/confirm", response_model=BookingInDB)
async def confirm_booking(
    booking_id: int,
    actor_id: int = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
):
    """Confirm a pending booking (field owner or staff)."""
    return await booking_service.confirm_booking(db, booking_id, actor_id)


@router.post("/{booking_id}/coach-response", response_model=BookingInDB)
async def respond_to_coach_request(
    booking_id: int,
    response: CoachResponse,
    actor_id: int = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Accept or decline a coaching session.

    Declining cancels the booking and frees its time range.

    Args:
        booking_id: Booking ID
        response: Accept flag and optional reason
        actor_id: Must be the requested coach
        db: Database session

    Returns:
        Updated booking
    """
    return await booking_service.respond_to_coach_request(
        db, booking_id, actor_id, response.accept, response.reason
    )


@router.get("/{booking_id}/cancellation", response_model=CancellationResult)
async def preview_cancellation(
    booking_id: int,
    role: str = Query(default="user", pattern="^(user|owner|coach)$"),
    actor_id: int = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
):
    """Show whether the booking can be cancelled now and what it would cost."""
    return await booking_service.preview_cancellation(db, booking_id, actor_id, role)


@router.post("/{booking_id}/cancel", response_model=CancellationResult)
async def cancel_booking(
    booking_id: int,
    cancel: CancelRequest,
    actor_id: int = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Cancel a booking as its customer, the field owner or the coach.

    A refusal by the cancellation policy is not an error: the result comes
    back with allowed=false and the booking is unchanged.

    Args:
        booking_id: Booking ID
        cancel: Role the caller cancels in and an optional reason
        actor_id: Acting user
        db: Database session

    Returns:
        Cancellation outcome with refund and penalty amounts
    """
    return await booking_service.cancel_booking(
        db, booking_id, actor_id, cancel.role, cancel.reason
    )
