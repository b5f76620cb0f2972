# backend/tutorhub/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService.

Endpoints:
    POST /                     - Stage one: create a pending booking
    GET /{booking_id}          - Booking details
    PUT /stage-two/{booking_id}   - Frequency and terms acceptance
    PUT /stage-three/{booking_id} - Payment details and status change
    DELETE /{booking_id}       - Cancel a booking
"""

import asyncio
import logging
from typing import NoReturn

from fastapi import APIRouter, Body, Depends, HTTPException, status

from ...api.dependencies import get_booking_service
from ...core.exceptions import DomainException
from ...models.booking import Booking
from ...schemas.base import ApiResponse, MessageResponse
from ...schemas.booking import (
    BookingCreate,
    BookingDetailResponse,
    BookingResponse,
    BookingStageThree,
    BookingStageTwo,
)
from ...services.booking_service import BookingService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _respond(booking: Booking, message: str) -> ApiResponse[BookingResponse]:
    return ApiResponse[BookingResponse](
        message=message, data=BookingResponse.model_validate(booking)
    )


@router.post(
    "",
    response_model=ApiResponse[BookingResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_booking(
    payload: BookingCreate = Body(...),
    booking_service: BookingService = Depends(get_booking_service),
) -> ApiResponse[BookingResponse]:
    """Create a pending booking. No seat is taken until it is paid."""
    try:
        booking = await asyncio.to_thread(booking_service.create_booking, payload.model_dump())
        return _respond(booking, "Booking created")
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{booking_id}", response_model=ApiResponse[BookingDetailResponse])
async def get_booking(
    booking_id: str,
    booking_service: BookingService = Depends(get_booking_service),
) -> ApiResponse[BookingDetailResponse]:
    """Booking with its batch and participant summaries."""
    try:
        booking = await asyncio.to_thread(booking_service.get_booking_details, booking_id)
        return ApiResponse[BookingDetailResponse](
            message="Booking retrieved", data=BookingDetailResponse.model_validate(booking)
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/stage-two/{booking_id}", response_model=ApiResponse[BookingResponse])
async def update_stage_two(
    booking_id: str,
    payload: BookingStageTwo = Body(...),
    booking_service: BookingService = Depends(get_booking_service),
) -> ApiResponse[BookingResponse]:
    try:
        booking = await asyncio.to_thread(
            booking_service.advance_stage_two,
            booking_id,
            frequency=payload.frequency,
            accept_tnc=payload.accept_tnc,
        )
        return _respond(booking, "Booking updated")
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/stage-three/{booking_id}", response_model=ApiResponse[BookingResponse])
async def update_stage_three(
    booking_id: str,
    payload: BookingStageThree = Body(...),
    booking_service: BookingService = Depends(get_booking_service),
) -> ApiResponse[BookingResponse]:
    """
    Record payment details and optionally move the booking.

    ``status: paid`` takes a seat in the batch and redeems ``couponCode``;
    a full or inactive batch leaves the booking unchanged.
    """
    try:
        booking = await asyncio.to_thread(
            booking_service.advance_stage_three,
            booking_id,
            payment_details=payload.payment_details,
            status=payload.status,
            coupon_code=payload.coupon_code,
        )
        return _respond(booking, "Booking updated")
    except DomainException as e:
        handle_domain_exception(e)


@router.delete("/{booking_id}", response_model=MessageResponse)
async def delete_booking(
    booking_id: str,
    booking_service: BookingService = Depends(get_booking_service),
) -> MessageResponse:
    """Cancel the booking; a paid booking gives its seat back."""
    try:
        await asyncio.to_thread(booking_service.delete_booking, booking_id)
        return MessageResponse(message="Booking cancelled")
    except DomainException as e:
        handle_domain_exception(e)
