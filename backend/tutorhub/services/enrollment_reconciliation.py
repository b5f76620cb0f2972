# backend/tutorhub/services/enrollment_reconciliation.py
"""
Enrollment Reconciliation.

Keeps batch seat counters consistent with the set of paid bookings. The
cancellation path gives back exactly the seat a booking held; the sweep
rebuilds counters from scratch when they are suspected to have drifted.
"""

from dataclasses import dataclass
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import BatchNotFoundException
from ..models.booking import Booking, BookingStatus
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .capacity_ledger import CapacityLedger
from .coupon_service import CouponService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchReconciliation:
    batch_id: str
    previous_students: int
    paid_bookings: int
    current_students: int
    maximum_students: int

    @property
    def changed(self) -> bool:
        return self.previous_students != self.current_students

    @property
    def over_capacity(self) -> bool:
        return self.paid_bookings > self.maximum_students


class EnrollmentReconciliationService(BaseService):
    def __init__(
        self,
        db: Session,
        capacity_ledger: Optional[CapacityLedger] = None,
        coupon_service: Optional[CouponService] = None,
        release_coupon_on_cancel: Optional[bool] = None,
    ):
        super().__init__(db)
        self.capacity_ledger = capacity_ledger or CapacityLedger(db)
        self.coupon_service = coupon_service or CouponService(db)
        self.batch_repository = RepositoryFactory.create_class_batch_repository(db)
        self.release_coupon_on_cancel = (
            settings.coupon_release_on_cancel
            if release_coupon_on_cancel is None
            else release_coupon_on_cancel
        )

    @BaseService.measure_operation("release_for_cancellation")
    def release_for_cancellation(self, booking: Booking, prior_status: BookingStatus) -> bool:
        """
        Undo what a booking held once it has been cancelled.

        Must run in the same transaction as the status change. Only a
        booking that was ``paid`` holds a seat, so only then is one released.
        Coupon redemptions stay counted unless release_coupon_on_cancel is set.
        """
        if prior_status != BookingStatus.PAID:
            return False

        with self.transaction():
            released = self.capacity_ledger.release_seat(booking.batch_id)
            if self.release_coupon_on_cancel and booking.coupon_code:
                self.coupon_service.release_usage(booking.coupon_code, booking.id)

        logger.info(
            "Enrollment released for cancelled booking",
            extra={"booking_id": booking.id, "batch_id": booking.batch_id, "released": released},
        )
        return released

    @BaseService.measure_operation("reconcile_batch")
    def reconcile_batch(self, batch_id: str) -> BatchReconciliation:
        """Reset a batch's seat counter to its number of paid bookings."""
        batch = self.batch_repository.get_capacity(batch_id)
        if batch is None:
            raise BatchNotFoundException(batch_id)
        previous = batch.current_students

        with self.transaction():
            self.batch_repository.reconcile_current_students(batch_id)
            paid = self.batch_repository.count_paid_bookings(batch_id)
            batch = self.batch_repository.get_capacity(batch_id)
            result = BatchReconciliation(
                batch_id=batch_id,
                previous_students=previous,
                paid_bookings=paid,
                current_students=batch.current_students,
                maximum_students=batch.maximum_students,
            )

        if result.over_capacity:
            logger.error(
                "Batch has more paid bookings than seats",
                extra={
                    "batch_id": batch_id,
                    "paid_bookings": paid,
                    "maximum_students": result.maximum_students,
                },
            )
        elif result.changed:
            logger.warning(
                "Batch seat counter drifted and was reset",
                extra={
                    "batch_id": batch_id,
                    "previous_students": previous,
                    "current_students": result.current_students,
                },
            )
        return result

    @BaseService.measure_operation("reconcile_all")
    def reconcile_all(self) -> List[BatchReconciliation]:
        """Run reconcile_batch over every active batch, one transaction each."""
        results = [
            self.reconcile_batch(batch_id) for batch_id in self.batch_repository.get_active_ids()
        ]
        drifted = sum(1 for result in results if result.changed)
        logger.info("Reconciliation sweep finished: %d batches, %d reset", len(results), drifted)
        return results


if __name__ == "__main__":
    from ..database import get_db_session

    logging.basicConfig(level=logging.INFO)
    with get_db_session() as session:
        EnrollmentReconciliationService(session).reconcile_all()
