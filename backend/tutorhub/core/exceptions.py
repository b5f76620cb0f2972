# backend/tutorhub/core/exceptions.py
"""
Domain-specific exceptions for the TutorHub booking backend.

These exceptions carry business-focused error messages and a stable
error code; the API layer converts them into HTTP responses.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation of input fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class InvalidStateException(DomainException):
    """Raised when an entity is not in a state that allows the operation."""

    status_code = status.HTTP_400_BAD_REQUEST


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Not found


class BatchNotFoundException(NotFoundException):
    def __init__(self, batch_id: str):
        super().__init__(
            message="Class batch not found",
            code="BATCH_NOT_FOUND",
            details={"batch_id": batch_id},
        )


class BookingNotFoundException(NotFoundException):
    def __init__(self, booking_id: str):
        super().__init__(
            message="Booking not found",
            code="BOOKING_NOT_FOUND",
            details={"booking_id": booking_id},
        )


class CouponNotFoundException(NotFoundException):
    def __init__(self, code: Optional[str] = None, coupon_id: Optional[str] = None):
        details: Dict[str, Any] = {}
        if code is not None:
            details["code"] = code
        if coupon_id is not None:
            details["coupon_id"] = coupon_id
        super().__init__(message="Coupon not found", code="COUPON_NOT_FOUND", details=details)


class ParticipantNotFoundException(NotFoundException):
    """Raised when a teacher, student or parent referenced by a booking is missing."""

    def __init__(self, role: str, participant_id: str):
        super().__init__(
            message=f"{role.capitalize()} not found",
            code=f"{role.upper()}_NOT_FOUND",
            details={f"{role}_id": participant_id},
        )


# Invalid state


class BatchInactiveException(InvalidStateException):
    def __init__(self, batch_id: str):
        super().__init__(
            message="This class batch is not active",
            code="BATCH_INACTIVE",
            details={"batch_id": batch_id},
        )


class BatchFullException(InvalidStateException):
    def __init__(self, batch_id: str, maximum_students: Optional[int] = None):
        details: Dict[str, Any] = {"batch_id": batch_id}
        if maximum_students is not None:
            details["maximum_students"] = maximum_students
        super().__init__(message="This class batch is full", code="BATCH_FULL", details=details)


class InvalidBookingTransitionException(InvalidStateException):
    def __init__(self, booking_id: str, current_status: str, requested_status: str):
        super().__init__(
            message=f"Cannot move booking from {current_status} to {requested_status}",
            code="INVALID_BOOKING_TRANSITION",
            details={
                "booking_id": booking_id,
                "current_status": current_status,
                "requested_status": requested_status,
            },
        )


class CouponRejectedException(InvalidStateException):
    """Raised when a coupon exists but cannot be used for the order."""

    def __init__(self, reason: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.reason = reason
        super().__init__(message=message, code=reason, details=details)


# Conflicts


class DuplicateCouponCodeException(ConflictException):
    def __init__(self, code: str):
        super().__init__(
            message="Coupon code already exists",
            code="DUPLICATE_COUPON_CODE",
            details={"code": code},
        )


class CouponAlreadyAppliedException(ConflictException):
    def __init__(self, code: str, order_id: str):
        super().__init__(
            message="Coupon has already been applied to this order",
            code="COUPON_ALREADY_APPLIED",
            details={"code": code, "order_id": order_id},
        )


class CapacityConflictException(ConflictException):
    def __init__(self, batch_id: str, current_students: int, requested_maximum: int):
        super().__init__(
            message="Maximum students cannot be lower than the number of enrolled students",
            code="CAPACITY_CONFLICT",
            details={
                "batch_id": batch_id,
                "current_students": current_students,
                "requested_maximum": requested_maximum,
            },
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    Used when data access operations fail, such as connection issues,
    query failures, or constraint violations.
    """
