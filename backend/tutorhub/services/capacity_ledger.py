# backend/tutorhub/services/capacity_ledger.py
"""
Capacity Ledger.

Guarantees a batch's ``current_students`` stays within
``0..maximum_students`` under concurrent bookings. Reservation is a single
conditional increment in the database; when it matches no row the batch is
re-read only to explain why.
"""

from dataclasses import dataclass
import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.exceptions import (
    BatchFullException,
    BatchInactiveException,
    BatchNotFoundException,
    DomainException,
)
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeatReservation:
    granted: bool
    reason: Optional[str] = None
    batch_id: Optional[str] = None

    def raise_for_reason(self) -> None:
        """Raise the domain error matching a refused reservation."""
        if self.granted:
            return
        raise _REASON_EXCEPTIONS[self.reason or "BATCH_NOT_FOUND"](self.batch_id or "")


_REASON_EXCEPTIONS: dict[str, type[DomainException]] = {
    "BATCH_NOT_FOUND": BatchNotFoundException,
    "BATCH_INACTIVE": BatchInactiveException,
    "BATCH_FULL": BatchFullException,
}


class CapacityLedger(BaseService):
    """Seat accounting for class batches."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.batch_repository = RepositoryFactory.create_class_batch_repository(db)

    @BaseService.measure_operation("try_reserve_seat")
    def try_reserve_seat(self, batch_id: str) -> SeatReservation:
        """
        Take one seat in the batch if it is active and not full.

        Runs inside the caller's transaction when there is one, so the seat
        and whatever the caller records alongside it commit together.
        """
        with self.transaction():
            if self.batch_repository.increment_if_available(batch_id):
                reservation = SeatReservation(granted=True, batch_id=batch_id)
            else:
                reservation = SeatReservation(
                    granted=False, reason=self._refusal_reason(batch_id), batch_id=batch_id
                )

        outcome = "granted" if reservation.granted else reservation.reason or "unknown"
        prometheus_metrics.inc_seat_reservation(outcome)
        if reservation.granted:
            logger.info("Seat reserved", extra={"batch_id": batch_id})
        else:
            logger.warning(
                "Seat reservation refused",
                extra={"batch_id": batch_id, "reason": reservation.reason},
            )
        return reservation

    @BaseService.measure_operation("reserve_seat")
    def reserve_seat(self, batch_id: str) -> None:
        """Like try_reserve_seat but raises the matching domain error on refusal."""
        self.try_reserve_seat(batch_id).raise_for_reason()

    @BaseService.measure_operation("release_seat")
    def release_seat(self, batch_id: str) -> bool:
        """
        Give back one seat, floored at zero.

        Callers decide whether a release is due (a booking leaving ``paid``);
        this method only guarantees the counter never goes negative.
        """
        with self.transaction():
            released = self.batch_repository.decrement_if_positive(batch_id)

        if released:
            prometheus_metrics.inc_seat_reservation("released")
            logger.info("Seat released", extra={"batch_id": batch_id})
        else:
            logger.warning(
                "Seat release skipped: batch missing or already empty",
                extra={"batch_id": batch_id},
            )
        return released

    def _refusal_reason(self, batch_id: str) -> str:
        batch = self.batch_repository.get_capacity(batch_id)
        if batch is None:
            return "BATCH_NOT_FOUND"
        if not batch.is_active:
            return "BATCH_INACTIVE"
        return "BATCH_FULL"
