"""
Service layer dependencies for dependency injection.

One session per request; services that cooperate on a request share it so
their writes land in the same transaction.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.booking_service import BookingService
from ...services.capacity_ledger import CapacityLedger
from ...services.class_batch_service import ClassBatchService
from ...services.coupon_service import CouponService
from ...services.enrollment_reconciliation import EnrollmentReconciliationService
from .database import get_db


def get_coupon_service(db: Session = Depends(get_db)) -> CouponService:
    return CouponService(db)


def get_capacity_ledger(db: Session = Depends(get_db)) -> CapacityLedger:
    return CapacityLedger(db)


def get_reconciliation_service(
    db: Session = Depends(get_db),
    capacity_ledger: CapacityLedger = Depends(get_capacity_ledger),
    coupon_service: CouponService = Depends(get_coupon_service),
) -> EnrollmentReconciliationService:
    return EnrollmentReconciliationService(
        db, capacity_ledger=capacity_ledger, coupon_service=coupon_service
    )


def get_booking_service(
    db: Session = Depends(get_db),
    capacity_ledger: CapacityLedger = Depends(get_capacity_ledger),
    coupon_service: CouponService = Depends(get_coupon_service),
    reconciliation: EnrollmentReconciliationService = Depends(get_reconciliation_service),
) -> BookingService:
    """
    Get BookingService instance.

    The capacity ledger, coupon engine and reconciliation service all use
    the request session, so a paid transition commits or rolls back as one.
    """
    return BookingService(
        db,
        capacity_ledger=capacity_ledger,
        coupon_service=coupon_service,
        reconciliation=reconciliation,
    )


def get_class_batch_service(db: Session = Depends(get_db)) -> ClassBatchService:
    return ClassBatchService(db)
