import pytest

from tutorhub.core.exceptions import BatchNotFoundException
from tutorhub.models.booking import BookingStatus
from tutorhub.models.coupon import CouponUsage
from tutorhub.services.booking_service import BookingService
from tutorhub.services.enrollment_reconciliation import EnrollmentReconciliationService


def test_release_only_for_paid_bookings(db, make_batch, make_booking):
    batch = make_batch(current_students=1)
    booking = make_booking(batch, status=BookingStatus.CANCELLED.value)
    service = EnrollmentReconciliationService(db)

    assert service.release_for_cancellation(booking, BookingStatus.CONFIRMED) is False
    assert service.release_for_cancellation(booking, BookingStatus.PAID) is True

    db.refresh(batch)
    assert batch.current_students == 0


def test_release_on_empty_batch_is_floored(db, batch, make_booking):
    booking = make_booking(batch, status=BookingStatus.CANCELLED.value)

    released = EnrollmentReconciliationService(db).release_for_cancellation(
        booking, BookingStatus.PAID
    )

    assert released is False
    db.refresh(batch)
    assert batch.current_students == 0


def test_reconcile_resets_drifted_counter(db, make_batch, make_booking):
    batch = make_batch(current_students=2)
    make_booking(batch, status=BookingStatus.PAID.value)
    make_booking(batch, status=BookingStatus.CONFIRMED.value)

    result = EnrollmentReconciliationService(db).reconcile_batch(batch.id)

    assert result.previous_students == 2
    assert result.paid_bookings == 1
    assert result.current_students == 1
    assert result.changed is True
    assert result.over_capacity is False


def test_reconcile_reports_over_capacity(db, make_batch, make_booking, caplog):
    batch = make_batch(maximum_students=1)
    make_booking(batch, status=BookingStatus.PAID.value)
    make_booking(batch, status=BookingStatus.PAID.value)

    with caplog.at_level("ERROR"):
        result = EnrollmentReconciliationService(db).reconcile_batch(batch.id)

    assert result.current_students == 1
    assert result.over_capacity is True
    assert "more paid bookings than seats" in caplog.text


def test_reconcile_unknown_batch(db):
    with pytest.raises(BatchNotFoundException):
        EnrollmentReconciliationService(db).reconcile_batch("01HZZZZZZZZZZZZZZZZZZZZZZZ")


def test_sweep_covers_active_batches_only(db, make_batch):
    active = make_batch(current_students=1)
    inactive = make_batch(current_students=1, is_active=False)

    results = EnrollmentReconciliationService(db).reconcile_all()

    assert [r.batch_id for r in results] == [active.id]
    db.refresh(active)
    db.refresh(inactive)
    assert active.current_students == 0
    assert inactive.current_students == 1


class TestCouponOnCancel:
    def _pay_with_coupon(self, service, booking):
        return service.advance_stage_three(
            booking.id, None, status=BookingStatus.PAID, coupon_code="WELCOME10"
        )

    def test_redemption_is_kept_by_default(self, db, batch, make_booking, make_coupon):
        coupon = make_coupon()
        booking = make_booking(batch)
        service = BookingService(db)
        self._pay_with_coupon(service, booking)

        service.cancel_booking(booking.id)

        db.refresh(coupon)
        assert coupon.usage_count == 1
        assert db.query(CouponUsage).count() == 1

    def test_redemption_released_when_enabled(self, db, batch, make_booking, make_coupon):
        coupon = make_coupon()
        booking = make_booking(batch)
        service = BookingService(
            db, reconciliation=EnrollmentReconciliationService(db, release_coupon_on_cancel=True)
        )
        self._pay_with_coupon(service, booking)

        service.cancel_booking(booking.id)

        db.refresh(coupon)
        db.refresh(batch)
        assert coupon.usage_count == 0
        assert db.query(CouponUsage).count() == 0
        assert batch.current_students == 0
