"""
Service layer for the TutorHub booking backend.

Services own business rules and transaction boundaries; repositories
only read and write rows.
"""

from .base import BaseService
from .booking_service import BookingService
from .capacity_ledger import CapacityLedger, SeatReservation
from .class_batch_service import ClassBatchService
from .coupon_service import CouponCriteria, CouponService, calculate_discount, is_applicable
from .enrollment_reconciliation import EnrollmentReconciliationService
from .teacher_schedule_service import TeacherScheduleService, make_schedule_listener

__all__ = [
    "BaseService",
    "BookingService",
    "CapacityLedger",
    "ClassBatchService",
    "CouponCriteria",
    "CouponService",
    "EnrollmentReconciliationService",
    "SeatReservation",
    "TeacherScheduleService",
    "calculate_discount",
    "is_applicable",
    "make_schedule_listener",
]
