from tutorhub.repositories.coupon_repository import CouponRepository, CouponUsageRepository


def test_get_by_code_is_case_insensitive(db, make_coupon):
    coupon = make_coupon(code="WELCOME10")
    assert CouponRepository(db).get_by_code(" welcome10 ").id == coupon.id


def test_increment_respects_usage_limit(db, make_coupon):
    coupon = make_coupon(usage_limit=2)
    repo = CouponRepository(db)

    assert repo.increment_usage_if_available(coupon.id) is True
    assert repo.increment_usage_if_available(coupon.id) is True
    assert repo.increment_usage_if_available(coupon.id) is False
    db.commit()

    assert coupon.usage_count == 2


def test_unlimited_coupon_always_increments(db, make_coupon):
    coupon = make_coupon(usage_limit=None, usage_count=500)
    assert CouponRepository(db).increment_usage_if_available(coupon.id) is True
    assert coupon.usage_count == 501


def test_decrement_floors_at_zero(db, make_coupon):
    coupon = make_coupon(usage_count=1)
    repo = CouponRepository(db)

    assert repo.decrement_usage(coupon.id) is True
    assert repo.decrement_usage(coupon.id) is False
    assert coupon.usage_count == 0


def test_usage_lookups(db, make_coupon):
    coupon = make_coupon()
    usages = CouponUsageRepository(db)
    usages.create(coupon_id=coupon.id, user_id="U1", order_id="O1")
    usages.create(coupon_id=coupon.id, user_id="U1", order_id="O2")
    db.commit()

    assert usages.count_for_user(coupon.id, "U1") == 2
    assert usages.count_for_user(coupon.id, "U2") == 0
    assert usages.get_for_order(coupon.id, "O2") is not None
    assert usages.delete_for_order(coupon.id, "O2") == 1
    assert usages.get_for_order(coupon.id, "O2") is None
