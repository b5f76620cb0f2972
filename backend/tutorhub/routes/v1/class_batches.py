# backend/tutorhub/routes/v1/class_batches.py
"""
Class batch routes - API v1

Endpoints:
    GET /                                 - Batches matching typed filters
    POST /                                - Create a batch
    GET /teacher/{teacher_id}/enrollment  - A teacher's batches with paid bookings
    GET /{batch_id}                       - Batch details
    PUT /{batch_id}                       - Update a batch
    DELETE /{batch_id}                    - Deactivate a batch
    POST /{batch_id}/reconcile            - Rebuild the seat counter from paid bookings
"""

import asyncio
import logging
from typing import Any, Dict, List, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ...api.dependencies import get_class_batch_service, get_reconciliation_service
from ...core.exceptions import DomainException
from ...models.class_batch import ClassBatch
from ...schemas.base import ApiResponse
from ...schemas.class_batch import (
    BatchEnrollmentResponse,
    BatchReconciliationResponse,
    ClassBatchCreate,
    ClassBatchResponse,
    ClassBatchUpdate,
    EnrolledBookingSummary,
)
from ...services.class_batch_service import ClassBatchService
from ...services.enrollment_reconciliation import EnrollmentReconciliationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["class-batches-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _respond(batch: ClassBatch, message: str) -> ApiResponse[ClassBatchResponse]:
    return ApiResponse[ClassBatchResponse](
        message=message, data=ClassBatchResponse.from_batch(batch)
    )


@router.get("", response_model=ApiResponse[List[ClassBatchResponse]])
async def list_class_batches(
    teacher_id: Optional[List[str]] = Query(None, alias="teacherId"),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    subjects: Optional[List[str]] = Query(None),
    boards: Optional[List[str]] = Query(None),
    classes: Optional[List[str]] = Query(None),
    batch_service: ClassBatchService = Depends(get_class_batch_service),
) -> ApiResponse[List[ClassBatchResponse]]:
    """
    List batches ordered by start date.

    ``teacherId`` and ``isActive`` match exactly; ``subjects``, ``boards``
    and ``classes`` match when the batch carries any of the given values.
    Repeat a parameter to pass several values.
    """
    filters: Dict[str, List[Any]] = {
        "teacherId": teacher_id or [],
        "isActive": [is_active] if is_active is not None else [],
        "subjects": subjects or [],
        "boards": boards or [],
        "classes": classes or [],
    }
    try:
        batches = await asyncio.to_thread(batch_service.list_batches, filters)
        return ApiResponse[List[ClassBatchResponse]](
            message="Class batches retrieved",
            data=[ClassBatchResponse.from_batch(batch) for batch in batches],
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "", response_model=ApiResponse[ClassBatchResponse], status_code=status.HTTP_201_CREATED
)
async def create_class_batch(
    payload: ClassBatchCreate = Body(...),
    batch_service: ClassBatchService = Depends(get_class_batch_service),
) -> ApiResponse[ClassBatchResponse]:
    try:
        batch = await asyncio.to_thread(batch_service.create_batch, payload.model_dump())
        return _respond(batch, "Class batch created")
    except DomainException as e:
        handle_domain_exception(e)


@router.get(
    "/teacher/{teacher_id}/enrollment",
    response_model=ApiResponse[List[BatchEnrollmentResponse]],
)
async def get_teacher_enrollment(
    teacher_id: str,
    batch_service: ClassBatchService = Depends(get_class_batch_service),
) -> ApiResponse[List[BatchEnrollmentResponse]]:
    """Every batch of a teacher with the students holding its seats."""
    try:
        enrollments = await asyncio.to_thread(batch_service.get_teacher_enrollment, teacher_id)
        return ApiResponse[List[BatchEnrollmentResponse]](
            message="Enrollment retrieved",
            data=[
                BatchEnrollmentResponse(
                    batch=ClassBatchResponse.from_batch(enrollment.batch),
                    seats_available=enrollment.batch.seats_available,
                    enrolled=[
                        EnrolledBookingSummary(
                            booking_id=booking.id,
                            student_id=booking.student_id,
                            parent_id=booking.parent_id,
                            paid_at=booking.paid_at,
                        )
                        for booking in enrollment.paid_bookings
                    ],
                )
                for enrollment in enrollments
            ],
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{batch_id}", response_model=ApiResponse[ClassBatchResponse])
async def get_class_batch(
    batch_id: str,
    batch_service: ClassBatchService = Depends(get_class_batch_service),
) -> ApiResponse[ClassBatchResponse]:
    try:
        batch = await asyncio.to_thread(batch_service.get_batch, batch_id)
        return _respond(batch, "Class batch retrieved")
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/{batch_id}", response_model=ApiResponse[ClassBatchResponse])
async def update_class_batch(
    batch_id: str,
    payload: ClassBatchUpdate = Body(...),
    batch_service: ClassBatchService = Depends(get_class_batch_service),
) -> ApiResponse[ClassBatchResponse]:
    """Update a batch. Lowering maximumStudents below current enrolment is a 409."""
    try:
        batch = await asyncio.to_thread(
            batch_service.update_batch, batch_id, payload.model_dump(exclude_unset=True)
        )
        return _respond(batch, "Class batch updated")
    except DomainException as e:
        handle_domain_exception(e)


@router.delete("/{batch_id}", response_model=ApiResponse[ClassBatchResponse])
async def delete_class_batch(
    batch_id: str,
    batch_service: ClassBatchService = Depends(get_class_batch_service),
) -> ApiResponse[ClassBatchResponse]:
    """Batches are deactivated, never removed; paid bookings keep their seats."""
    try:
        batch = await asyncio.to_thread(batch_service.deactivate_batch, batch_id)
        return _respond(batch, "Class batch deactivated")
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{batch_id}/reconcile", response_model=ApiResponse[BatchReconciliationResponse])
async def reconcile_class_batch(
    batch_id: str,
    reconciliation_service: EnrollmentReconciliationService = Depends(
        get_reconciliation_service
    ),
) -> ApiResponse[BatchReconciliationResponse]:
    try:
        result = await asyncio.to_thread(reconciliation_service.reconcile_batch, batch_id)
        return ApiResponse[BatchReconciliationResponse](
            message="Seat counter reconciled",
            data=BatchReconciliationResponse(
                batch_id=result.batch_id,
                previous_students=result.previous_students,
                paid_bookings=result.paid_bookings,
                current_students=result.current_students,
                maximum_students=result.maximum_students,
                changed=result.changed,
            ),
        )
    except DomainException as e:
        handle_domain_exception(e)
