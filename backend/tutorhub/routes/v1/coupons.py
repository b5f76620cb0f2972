# backend/tutorhub/routes/v1/coupons.py
"""
Coupon routes - API v1

Endpoints:
    POST /validate             - Price preview; records nothing
    POST /apply                - Redeem a coupon for an order
    POST /                     - Create a coupon
    GET /{coupon_id}           - Coupon details
    PUT /{coupon_id}           - Update a coupon
    DELETE /{coupon_id}        - Delete a coupon
    PATCH /{coupon_id}/toggle  - Flip isActive
"""

import asyncio
import logging
from typing import NoReturn

from fastapi import APIRouter, Body, Depends, HTTPException, status

from ...api.dependencies import get_coupon_service
from ...core.exceptions import DomainException
from ...models.coupon import Coupon
from ...schemas.base import ApiResponse, MessageResponse
from ...schemas.coupon import (
    CouponApplyRequest,
    CouponCreate,
    CouponQuote,
    CouponRedemption,
    CouponResponse,
    CouponUpdate,
    CouponValidateRequest,
)
from ...services.coupon_service import CouponCriteria, CouponService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["coupons-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _respond(coupon: Coupon, message: str) -> ApiResponse[CouponResponse]:
    return ApiResponse[CouponResponse](message=message, data=CouponResponse.model_validate(coupon))


# Static routes first (before dynamic routes with path parameters)


@router.post("/validate", response_model=ApiResponse[CouponQuote])
async def validate_coupon(
    payload: CouponValidateRequest = Body(...),
    coupon_service: CouponService = Depends(get_coupon_service),
) -> ApiResponse[CouponQuote]:
    """Check a coupon against an order and quote the discount."""
    criteria = CouponCriteria.build(
        subjects=payload.subject,
        boards=payload.board,
        classes=payload.class_id,
        teachers=payload.teacher,
        batches=payload.batch,
    )
    try:
        validation = await asyncio.to_thread(
            coupon_service.validate,
            payload.coupon_code,
            payload.user_id,
            payload.order_amount,
            criteria=criteria,
        )
        validation.raise_for_reason()
        coupon = validation.coupon
        return ApiResponse[CouponQuote](
            message="Coupon is valid",
            data=CouponQuote(
                code=coupon.code,
                name=coupon.name,
                discount_type=coupon.discount_type,
                discount_value=coupon.discount_value,
                order_amount=validation.order_amount,
                discount_amount=validation.discount_amount,
                final_amount=validation.final_amount,
            ),
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/apply", response_model=ApiResponse[CouponRedemption])
async def apply_coupon(
    payload: CouponApplyRequest = Body(...),
    coupon_service: CouponService = Depends(get_coupon_service),
) -> ApiResponse[CouponRedemption]:
    try:
        application = await asyncio.to_thread(
            coupon_service.apply,
            payload.coupon_code,
            payload.user_id,
            payload.order_id,
            order_amount=payload.order_amount,
        )
        return ApiResponse[CouponRedemption](
            message="Coupon applied",
            data=CouponRedemption(
                code=application.coupon.code,
                user_id=payload.user_id,
                order_id=payload.order_id,
                usage_count=application.coupon.usage_count,
                discount_amount=application.discount_amount,
                final_amount=application.final_amount,
                used_at=application.usage.used_at,
            ),
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("", response_model=ApiResponse[CouponResponse], status_code=status.HTTP_201_CREATED)
async def create_coupon(
    payload: CouponCreate = Body(...),
    coupon_service: CouponService = Depends(get_coupon_service),
) -> ApiResponse[CouponResponse]:
    data = payload.model_dump(exclude={"created_by"})
    try:
        coupon = await asyncio.to_thread(
            coupon_service.create_coupon, data, created_by=payload.created_by
        )
        return _respond(coupon, "Coupon created")
    except DomainException as e:
        handle_domain_exception(e)


# Dynamic routes with path parameters


@router.get("/{coupon_id}", response_model=ApiResponse[CouponResponse])
async def get_coupon(
    coupon_id: str,
    coupon_service: CouponService = Depends(get_coupon_service),
) -> ApiResponse[CouponResponse]:
    try:
        coupon = await asyncio.to_thread(coupon_service.get_coupon, coupon_id)
        return _respond(coupon, "Coupon retrieved")
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/{coupon_id}", response_model=ApiResponse[CouponResponse])
async def update_coupon(
    coupon_id: str,
    payload: CouponUpdate = Body(...),
    coupon_service: CouponService = Depends(get_coupon_service),
) -> ApiResponse[CouponResponse]:
    try:
        coupon = await asyncio.to_thread(
            coupon_service.update_coupon, coupon_id, payload.model_dump(exclude_unset=True)
        )
        return _respond(coupon, "Coupon updated")
    except DomainException as e:
        handle_domain_exception(e)


@router.delete("/{coupon_id}", response_model=MessageResponse)
async def delete_coupon(
    coupon_id: str,
    coupon_service: CouponService = Depends(get_coupon_service),
) -> MessageResponse:
    try:
        await asyncio.to_thread(coupon_service.delete_coupon, coupon_id)
        return MessageResponse(message="Coupon deleted")
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/{coupon_id}/toggle", response_model=ApiResponse[CouponResponse])
async def toggle_coupon(
    coupon_id: str,
    coupon_service: CouponService = Depends(get_coupon_service),
) -> ApiResponse[CouponResponse]:
    try:
        coupon = await asyncio.to_thread(coupon_service.toggle_active, coupon_id)
        message = "Coupon activated" if coupon.is_active else "Coupon deactivated"
        return _respond(coupon, message)
    except DomainException as e:
        handle_domain_exception(e)
