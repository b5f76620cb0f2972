from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from tutorhub.core.exceptions import (
    CouponAlreadyAppliedException,
    CouponNotFoundException,
    CouponRejectedException,
    DuplicateCouponCodeException,
    RepositoryException,
    ValidationException,
)
from tutorhub.models.coupon import CouponUsage
from tutorhub.services.coupon_service import (
    COUPON_EXPIRED,
    COUPON_INACTIVE,
    COUPON_NOT_FOUND,
    NOT_APPLICABLE,
    ORDER_TOO_SMALL,
    PER_USER_LIMIT_REACHED,
    USAGE_LIMIT_REACHED,
    CouponCriteria,
    CouponService,
)

NOW = datetime.now(timezone.utc)
NOT_STARTED = {"start_date": NOW + timedelta(days=2), "end_date": NOW + timedelta(days=9)}
ENDED = {"start_date": NOW - timedelta(days=9), "end_date": NOW - timedelta(days=1)}


class TestValidate:
    def test_valid_coupon_quotes_discount(self, db, make_coupon):
        make_coupon(max_discount_amount=Decimal("75"))

        result = CouponService(db).validate("welcome10", "U1", Decimal("1000"))

        assert result.valid is True
        assert result.discount_amount == Decimal("75.00")
        assert result.final_amount == Decimal("925.00")

    def test_validation_records_nothing(self, db, make_coupon):
        coupon = make_coupon(usage_limit=1)

        CouponService(db).validate("WELCOME10", "U1", 500)
        CouponService(db).validate("WELCOME10", "U1", 500)

        db.refresh(coupon)
        assert coupon.usage_count == 0
        assert db.query(CouponUsage).count() == 0

    def test_unknown_code(self, db):
        result = CouponService(db).validate("NOPE", "U1", 500)

        assert result.valid is False
        assert result.reason == COUPON_NOT_FOUND
        with pytest.raises(CouponNotFoundException):
            result.raise_for_reason()

    @pytest.mark.parametrize(
        "overrides,reason",
        [
            ({"is_active": False}, COUPON_INACTIVE),
            (NOT_STARTED, COUPON_INACTIVE),
            (ENDED, COUPON_EXPIRED),
            ({"usage_limit": 3, "usage_count": 3}, USAGE_LIMIT_REACHED),
            ({"min_order_amount": Decimal("600")}, ORDER_TOO_SMALL),
            ({"applies_to_boards": ["ICSE"]}, NOT_APPLICABLE),
        ],
    )
    def test_rejection_reasons(self, db, make_coupon, overrides, reason):
        make_coupon(**overrides)
        criteria = CouponCriteria.build(subjects=["Maths"], boards=["CBSE"])

        result = CouponService(db).validate("WELCOME10", "U1", 500, criteria=criteria)

        assert result.valid is False
        assert result.reason == reason
        with pytest.raises(CouponRejectedException) as exc_info:
            result.raise_for_reason()
        assert exc_info.value.code == reason

    def test_per_user_limit(self, db, make_coupon):
        coupon = make_coupon(per_user_limit=1)
        db.add(CouponUsage(coupon_id=coupon.id, user_id="U1", order_id="O1"))
        db.commit()
        service = CouponService(db)

        assert service.validate("WELCOME10", "U1", 500).reason == PER_USER_LIMIT_REACHED
        assert service.validate("WELCOME10", "U2", 500).valid is True

    def test_first_failing_check_wins(self, db, make_coupon):
        make_coupon(
            start_date=NOW - timedelta(days=9),
            end_date=NOW - timedelta(days=1),
            usage_limit=1,
            usage_count=1,
            min_order_amount=Decimal("10000"),
            applies_to_subjects=["Physics"],
        )

        result = CouponService(db).validate(
            "WELCOME10", "U1", 500, criteria=CouponCriteria.build(subjects=["Maths"])
        )

        assert result.reason == COUPON_EXPIRED

    def test_usage_limit_checked_before_order_minimum(self, db, make_coupon):
        make_coupon(usage_limit=1, usage_count=1, min_order_amount=Decimal("10000"))
        assert CouponService(db).validate("WELCOME10", "U1", 500).reason == USAGE_LIMIT_REACHED

    def test_non_positive_order_amount(self, db, make_coupon):
        make_coupon()
        with pytest.raises(ValidationException):
            CouponService(db).validate("WELCOME10", "U1", 0)


class TestApply:
    def test_apply_records_usage(self, db, make_coupon):
        coupon = make_coupon(code="FLAT200", discount_type="FLAT", discount_value=Decimal("200"))

        application = CouponService(db).apply("flat200", "U1", "O1", order_amount=Decimal("150"))

        assert application.discount_amount == Decimal("150.00")
        assert application.final_amount == Decimal("0.00")
        assert application.usage.order_id == "O1"
        db.refresh(coupon)
        assert coupon.usage_count == 1

    def test_apply_without_amount(self, db, make_coupon):
        make_coupon()

        application = CouponService(db).apply("WELCOME10", "U1", "O1")

        assert application.discount_amount is None
        assert application.final_amount is None
        assert application.coupon.usage_count == 1

    def test_same_order_twice(self, db, make_coupon):
        coupon = make_coupon()
        service = CouponService(db)
        service.apply("WELCOME10", "U1", "O1", order_amount=500)

        with pytest.raises(CouponAlreadyAppliedException):
            service.apply("WELCOME10", "U1", "O1", order_amount=500)

        db.refresh(coupon)
        assert coupon.usage_count == 1

    def test_usage_limit_stops_redemption(self, db, make_coupon):
        coupon = make_coupon(usage_limit=1)
        service = CouponService(db)
        service.apply("WELCOME10", "U1", "O1")

        with pytest.raises(CouponRejectedException) as exc_info:
            service.apply("WELCOME10", "U2", "O2")

        assert exc_info.value.code == USAGE_LIMIT_REACHED
        db.refresh(coupon)
        assert coupon.usage_count == 1

    def test_per_user_rejection_rolls_back_increment(self, db, make_coupon):
        coupon = make_coupon(per_user_limit=1)
        service = CouponService(db)
        service.apply("WELCOME10", "U1", "O1")

        with pytest.raises(CouponRejectedException) as exc_info:
            service.apply("WELCOME10", "U1", "O2")

        assert exc_info.value.code == PER_USER_LIMIT_REACHED
        db.refresh(coupon)
        assert coupon.usage_count == 1

    def test_checks_run_in_validation_order(self, db, make_coupon):
        make_coupon(usage_limit=1, usage_count=1, min_order_amount=Decimal("10000"))
        service = CouponService(db)

        with pytest.raises(CouponRejectedException) as exc_info:
            service.apply("WELCOME10", "U1", "O1", order_amount=500)

        assert exc_info.value.code == USAGE_LIMIT_REACHED
        assert service.validate("WELCOME10", "U1", 500).reason == USAGE_LIMIT_REACHED

    def test_order_already_recorded_at_insert(self, db, make_coupon, monkeypatch):
        coupon = make_coupon()
        service = CouponService(db)
        service.apply("WELCOME10", "U1", "O1")
        # Another apply for the same order committed after the lookup
        monkeypatch.setattr(service.usage_repository, "get_for_order", lambda *args: None)

        with pytest.raises(CouponAlreadyAppliedException) as exc_info:
            service.apply("WELCOME10", "U1", "O1")

        assert isinstance(exc_info.value.__cause__, RepositoryException)
        db.refresh(coupon)
        assert coupon.usage_count == 1

    def test_other_insert_failures_propagate(self, db, make_coupon, monkeypatch):
        coupon = make_coupon()
        service = CouponService(db)

        def _fail(**kwargs):
            raise RepositoryException("value too long for type character varying(26)")

        monkeypatch.setattr(service.usage_repository, "create", _fail)

        with pytest.raises(RepositoryException):
            service.apply("WELCOME10", "U1", "O1")

        db.refresh(coupon)
        assert coupon.usage_count == 0

    def test_unknown_code(self, db):
        with pytest.raises(CouponNotFoundException):
            CouponService(db).apply("NOPE", "U1", "O1")

    def test_release_usage(self, db, make_coupon):
        coupon = make_coupon()
        service = CouponService(db)
        service.apply("WELCOME10", "U1", "O1")

        assert service.release_usage("WELCOME10", "O1") is True
        assert service.release_usage("WELCOME10", "O1") is False

        db.refresh(coupon)
        assert coupon.usage_count == 0


def _coupon_payload(**overrides):
    data = {
        "code": " summer25 ",
        "name": "Summer",
        "discount_type": "PERCENTAGE",
        "discount_value": Decimal("25"),
        "min_order_amount": Decimal("0"),
        "start_date": NOW,
        "end_date": NOW + timedelta(days=60),
        "is_active": True,
        "usage_limit": 100,
        "applies_to": {"subjects": ["Maths"], "boards": []},
    }
    data.update(overrides)
    return data


class TestAdmin:
    def test_create_normalizes_code_and_applies_to(self, db):
        coupon = CouponService(db).create_coupon(_coupon_payload(), created_by="ADMIN")

        assert coupon.code == "SUMMER25"
        assert coupon.created_by == "ADMIN"
        assert coupon.applies_to["subjects"] == ["Maths"]
        assert coupon.usage_count == 0

    def test_duplicate_code(self, db, make_coupon):
        make_coupon(code="SUMMER25")
        with pytest.raises(DuplicateCouponCodeException):
            CouponService(db).create_coupon(_coupon_payload())

    def test_duplicate_code_detected_at_insert(self, db, make_coupon, monkeypatch):
        make_coupon(code="SUMMER25")
        service = CouponService(db)
        # Another create took the code after the lookup
        monkeypatch.setattr(service.coupon_repository, "get_by_code", lambda code: None)

        with pytest.raises(DuplicateCouponCodeException):
            service.create_coupon(_coupon_payload())

    def test_percentage_over_100_rejected(self, db):
        with pytest.raises(ValidationException) as exc_info:
            CouponService(db).create_coupon(_coupon_payload(discount_value=Decimal("120")))
        assert exc_info.value.code == "INVALID_DISCOUNT_VALUE"

    def test_start_after_end(self, db):
        with pytest.raises(ValidationException) as exc_info:
            CouponService(db).create_coupon(
                _coupon_payload(start_date=NOW, end_date=NOW - timedelta(days=1))
            )
        assert exc_info.value.code == "INVALID_DATE_RANGE"

    def test_update_is_partial_and_keeps_usage(self, db, make_coupon):
        coupon = make_coupon(usage_count=4)

        updated = CouponService(db).update_coupon(
            coupon.id, {"name": "Renamed", "usage_count": 0}
        )

        assert updated.name == "Renamed"
        assert updated.code == "WELCOME10"
        assert updated.usage_count == 4

    def test_update_rechecks_dates(self, db, make_coupon):
        coupon = make_coupon()
        with pytest.raises(ValidationException):
            CouponService(db).update_coupon(
                coupon.id, {"end_date": NOW - timedelta(days=5)}
            )

    def test_update_checks_percentage_against_stored_type(self, db, make_coupon):
        percentage = make_coupon()
        flat = make_coupon(code="FLAT250", discount_type="FLAT", discount_value=Decimal("250"))
        service = CouponService(db)

        with pytest.raises(ValidationException) as exc_info:
            service.update_coupon(percentage.id, {"discount_value": Decimal("250")})
        assert exc_info.value.code == "INVALID_DISCOUNT_VALUE"

        with pytest.raises(ValidationException):
            service.update_coupon(flat.id, {"discount_type": "PERCENTAGE"})

        updated = service.update_coupon(flat.id, {"discount_value": Decimal("300")})
        assert updated.discount_value == 300
        db.refresh(percentage)
        assert percentage.discount_value == 10

    def test_toggle_and_delete(self, db, make_coupon):
        coupon = make_coupon()
        service = CouponService(db)

        assert service.toggle_active(coupon.id).is_active is False
        assert service.toggle_active(coupon.id).is_active is True

        service.delete_coupon(coupon.id)
        with pytest.raises(CouponNotFoundException):
            service.get_coupon(coupon.id)
        with pytest.raises(CouponNotFoundException):
            service.delete_coupon(coupon.id)
