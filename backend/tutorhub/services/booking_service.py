# backend/tutorhub/services/booking_service.py
"""
Booking Service.

Drives a booking through its stages:

    pending -> confirmed -> paid
    pending | confirmed | paid -> cancelled

A seat is taken only on the move to ``paid``. That move is a status
compare-and-set on the booking followed by the capacity ledger's
conditional increment (and the coupon redemption, if any), all in one
transaction: if any step is refused the booking keeps its prior status
and no seat or coupon use is recorded. Rows are locked in the order
booking, batch, coupon on every path.
"""

from datetime import datetime, timezone
import logging
from typing import Any, Dict, FrozenSet, Mapping, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import (
    BatchInactiveException,
    BatchNotFoundException,
    BookingNotFoundException,
    InvalidBookingTransitionException,
    ParticipantNotFoundException,
    ValidationException,
)
from ..models.booking import PAYABLE_STATUSES, Booking, BookingStatus
from ..models.class_batch import ClassBatch
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .capacity_ledger import CapacityLedger
from .coupon_service import CouponCriteria, CouponService, to_money
from .enrollment_reconciliation import EnrollmentReconciliationService

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Mapping[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset(
        {
            BookingStatus.PENDING,
            BookingStatus.CONFIRMED,
            BookingStatus.PAID,
            BookingStatus.CANCELLED,
        }
    ),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.CONFIRMED, BookingStatus.PAID, BookingStatus.CANCELLED}
    ),
    BookingStatus.PAID: frozenset({BookingStatus.PAID, BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset({BookingStatus.CANCELLED}),
}

# A cancellation that keeps losing the compare-and-set is retried this often
_CANCEL_ATTEMPTS = 3


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class BookingService(BaseService):
    """Service layer for the booking lifecycle."""

    def __init__(
        self,
        db: Session,
        capacity_ledger: Optional[CapacityLedger] = None,
        coupon_service: Optional[CouponService] = None,
        reconciliation: Optional[EnrollmentReconciliationService] = None,
    ):
        super().__init__(db)
        self.repository = RepositoryFactory.create_booking_repository(db)
        self.batch_repository = RepositoryFactory.create_class_batch_repository(db)
        self.teacher_repository = RepositoryFactory.create_teacher_repository(db)
        self.student_repository = RepositoryFactory.create_student_repository(db)
        self.parent_repository = RepositoryFactory.create_parent_repository(db)
        self.capacity_ledger = capacity_ledger or CapacityLedger(db)
        self.coupon_service = coupon_service or CouponService(db)
        self.reconciliation = reconciliation or EnrollmentReconciliationService(
            db, capacity_ledger=self.capacity_ledger, coupon_service=self.coupon_service
        )

    # Lookups

    @BaseService.measure_operation("get_booking")
    def get_booking(self, booking_id: str) -> Booking:
        booking = self.repository.get_by_id(booking_id)
        if booking is None:
            raise BookingNotFoundException(booking_id)
        return booking

    @BaseService.measure_operation("get_booking_details")
    def get_booking_details(self, booking_id: str) -> Booking:
        """Booking with its batch, teacher, student and parent summaries."""
        booking = self.repository.get_booking_with_details(booking_id)
        if booking is None:
            raise BookingNotFoundException(booking_id)
        return booking

    def _get_bookable_batch(self, batch_id: str) -> ClassBatch:
        batch = self.batch_repository.get_by_id(batch_id)
        if batch is None:
            raise BatchNotFoundException(batch_id)
        if not batch.is_active:
            raise BatchInactiveException(batch_id)
        return batch

    def _ensure_participants(self, teacher_id: str, student_id: str, parent_id: str) -> None:
        for role, repository, participant_id in (
            ("teacher", self.teacher_repository, teacher_id),
            ("student", self.student_repository, student_id),
            ("parent", self.parent_repository, parent_id),
        ):
            if repository.get_by_id(participant_id) is None:
                raise ParticipantNotFoundException(role, participant_id)

    # Stage one

    @BaseService.measure_operation("create_booking")
    def create_booking(self, data: Dict[str, Any]) -> Booking:
        """
        Create a pending booking against a batch.

        No seat is held while the booking is pending; capacity is only
        checked and taken when the booking is paid.
        """
        batch = self._get_bookable_batch(data["batch_id"])
        self._ensure_participants(data["teacher_id"], data["student_id"], data["parent_id"])
        if batch.teacher_id != data["teacher_id"]:
            raise ValidationException(
                "Batch does not belong to this teacher",
                code="TEACHER_BATCH_MISMATCH",
                details={"batch_id": batch.id, "teacher_id": data["teacher_id"]},
            )

        values = dict(data)
        if values.get("fees") is None:
            values["fees"] = batch.fees
        values["status"] = BookingStatus.PENDING.value

        with self.transaction():
            booking = self.repository.create(**values)

        self.log_operation(
            "booking_created",
            booking_id=booking.id,
            batch_id=booking.batch_id,
            student_id=booking.student_id,
        )
        return booking

    # Stage two

    @BaseService.measure_operation("advance_stage_two")
    def advance_stage_two(self, booking_id: str, frequency: str, accept_tnc: bool) -> Booking:
        """Record frequency and terms acceptance. Never touches seats or coupons."""
        with self.transaction():
            booking = self.get_booking(booking_id)
            if booking.is_cancelled:
                raise InvalidBookingTransitionException(
                    booking_id, booking.status, "stage-two"
                )
            booking.frequency = frequency
            booking.accept_tnc = accept_tnc
            self.db.flush()

        self.log_operation("booking_stage_two", booking_id=booking_id, frequency=frequency)
        return booking

    # Stage three

    @BaseService.measure_operation("advance_stage_three")
    def advance_stage_three(
        self,
        booking_id: str,
        payment_details: Optional[Dict[str, Any]],
        status: Optional[BookingStatus] = None,
        coupon_code: Optional[str] = None,
    ) -> Booking:
        """
        Record payment details and move the booking to ``status``.

        Moving to ``paid`` takes a seat (BatchFull / BatchInactive leave the
        booking untouched) and redeems ``coupon_code`` when given. Paying an
        already paid booking only updates its payment details.
        """
        booking = self.get_booking(booking_id)
        current = BookingStatus(booking.status)
        target = BookingStatus(status) if status is not None else current

        if not can_transition(current, target):
            raise InvalidBookingTransitionException(booking_id, current.value, target.value)
        if coupon_code and target != BookingStatus.PAID:
            raise ValidationException(
                "A coupon can only be redeemed when the booking is paid",
                code="COUPON_REQUIRES_PAYMENT",
                details={"booking_id": booking_id, "status": target.value},
            )

        if target == BookingStatus.CANCELLED:
            booking = self.cancel_booking(booking_id)
            if payment_details is not None:
                with self.transaction():
                    booking.payment_details = payment_details
                    self.db.flush()
            return booking

        if target == BookingStatus.PAID and current != BookingStatus.PAID:
            return self._pay(booking, payment_details, coupon_code)

        with self.transaction():
            if target != current:
                if not self.repository.transition_status(booking_id, {current}, target):
                    fresh = self.repository.get_fresh(booking_id)
                    raise InvalidBookingTransitionException(
                        booking_id, fresh.status if fresh else current.value, target.value
                    )
                booking = self.get_booking(booking_id)
            if payment_details is not None:
                booking.payment_details = payment_details
            self.db.flush()

        self.log_operation(
            "booking_stage_three", booking_id=booking_id, status=target.value
        )
        return booking

    def _pay(
        self,
        booking: Booking,
        payment_details: Optional[Dict[str, Any]],
        coupon_code: Optional[str],
    ) -> Booking:
        booking_id = booking.id
        batch_id = booking.batch_id
        now = datetime.now(timezone.utc)

        with self.transaction():
            if not self.repository.transition_status(
                booking_id, PAYABLE_STATUSES, BookingStatus.PAID, paid_at=now
            ):
                # Another request moved the booking first
                fresh = self.repository.get_fresh(booking_id)
                if fresh is not None and fresh.is_paid:
                    logger.info(
                        "Booking already paid by a concurrent request",
                        extra={"booking_id": booking_id},
                    )
                    return fresh
                raise InvalidBookingTransitionException(
                    booking_id,
                    fresh.status if fresh else "unknown",
                    BookingStatus.PAID.value,
                )

            self.capacity_ledger.reserve_seat(batch_id)

            booking = self.get_booking(booking_id)
            fees = to_money(booking.fees)
            discount = to_money(0)
            if coupon_code:
                batch = self.batch_repository.get_by_id(batch_id)
                criteria = CouponCriteria.build(
                    subjects=booking.subjects,
                    boards=batch.boards if batch else None,
                    classes=batch.classes if batch else None,
                    teachers=[booking.teacher_id],
                    batches=[batch_id],
                )
                application = self.coupon_service.apply(
                    coupon_code,
                    user_id=booking.parent_id,
                    order_id=booking_id,
                    order_amount=fees,
                    criteria=criteria,
                )
                booking.coupon_code = application.coupon.code
                discount = application.discount_amount or discount

            booking.discount_amount = discount
            booking.amount_payable = to_money(fees - discount)
            if payment_details is not None:
                booking.payment_details = payment_details
            self.db.flush()

        self.log_operation(
            "booking_paid",
            booking_id=booking_id,
            batch_id=batch_id,
            coupon_code=booking.coupon_code,
            amount_payable=str(booking.amount_payable),
        )
        return booking

    # Cancellation

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(self, booking_id: str) -> Booking:
        """
        Cancel a booking, giving back its seat if it was paid.

        Idempotent: cancelling a cancelled booking changes nothing, and the
        seat is released only by the call that performed paid -> cancelled.
        """
        with self.transaction():
            booking = self.get_booking(booking_id)
            for _ in range(_CANCEL_ATTEMPTS):
                prior = BookingStatus(booking.status)
                if prior == BookingStatus.CANCELLED:
                    return booking
                if self.repository.transition_status(
                    booking_id,
                    {prior},
                    BookingStatus.CANCELLED,
                    cancelled_at=datetime.now(timezone.utc),
                    is_active=False,
                ):
                    self.reconciliation.release_for_cancellation(booking, prior)
                    break
                booking = self.repository.get_fresh(booking_id)
            else:
                raise InvalidBookingTransitionException(
                    booking_id, booking.status, BookingStatus.CANCELLED.value
                )
            booking = self.get_booking(booking_id)

        self.log_operation(
            "booking_cancelled", booking_id=booking_id, prior_status=prior.value
        )
        return booking

    @BaseService.measure_operation("delete_booking")
    def delete_booking(self, booking_id: str) -> Booking:
        """DELETE keeps the row and stores the booking as cancelled."""
        return self.cancel_booking(booking_id)
