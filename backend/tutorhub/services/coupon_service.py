# backend/tutorhub/services/coupon_service.py
"""
Coupon Engine.

``validate`` answers whether a coupon can be used for an order and what it
would take off, without touching any counter, so it is safe for price
previews. ``apply`` is the only operation that records a redemption.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import Any, Dict, FrozenSet, Iterable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.constants import MONEY_PLACES
from ..core.exceptions import (
    CouponAlreadyAppliedException,
    CouponNotFoundException,
    CouponRejectedException,
    DuplicateCouponCodeException,
    RepositoryException,
    ValidationException,
)
from ..models.coupon import APPLIES_TO_FIELDS, Coupon, CouponUsage, DiscountType
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

_CENT = Decimal(1).scaleb(-MONEY_PLACES)

COUPON_NOT_FOUND = "COUPON_NOT_FOUND"
COUPON_INACTIVE = "COUPON_INACTIVE"
COUPON_EXPIRED = "COUPON_EXPIRED"
USAGE_LIMIT_REACHED = "USAGE_LIMIT_REACHED"
PER_USER_LIMIT_REACHED = "PER_USER_LIMIT_REACHED"
ORDER_TOO_SMALL = "ORDER_TOO_SMALL"
NOT_APPLICABLE = "NOT_APPLICABLE"

REJECTION_MESSAGES: Dict[str, str] = {
    COUPON_NOT_FOUND: "Invalid coupon code",
    COUPON_INACTIVE: "Coupon is not active",
    COUPON_EXPIRED: "Coupon has expired",
    USAGE_LIMIT_REACHED: "Coupon usage limit reached",
    PER_USER_LIMIT_REACHED: "You have already used this coupon the maximum number of times",
    ORDER_TOO_SMALL: "Order amount is below the minimum for this coupon",
    NOT_APPLICABLE: "Coupon is not applicable to this order",
}


def to_money(value: Any) -> Decimal:
    """Coerce to a Decimal rounded half-up to whole cents."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


# PostgreSQL names the violated index; SQLite only names its columns
_COUPON_CODE_UNIQUE = ("ix_coupons_code", "coupons.code")
_ORDER_USAGE_UNIQUE = ("uq_coupon_usages_order", "coupon_usages.order_id")


def _violates(exc: RepositoryException, markers: Iterable[str]) -> bool:
    """Whether a repository error wraps a unique violation on one of ``markers``."""
    integrity_error = exc.__cause__
    if not isinstance(integrity_error, IntegrityError):
        return False
    orig = getattr(integrity_error, "orig", None)
    diag = getattr(orig, "diag", None)
    constraint_name = getattr(diag, "constraint_name", "") or ""
    text = f"{constraint_name} {orig}"
    return any(marker in text for marker in markers)


def _as_aware(moment: datetime) -> datetime:
    # SQLite hands back naive datetimes; they were stored as UTC
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


@dataclass(frozen=True)
class CouponCriteria:
    """
    Order attributes a coupon's ``appliesTo`` sets are matched against.

    Each dimension may hold several values (a booking can cover more than
    one subject); an empty dimension means the order did not say.
    """

    subjects: FrozenSet[str] = frozenset()
    boards: FrozenSet[str] = frozenset()
    classes: FrozenSet[str] = frozenset()
    teachers: FrozenSet[str] = frozenset()
    batches: FrozenSet[str] = frozenset()

    @classmethod
    def build(
        cls,
        subjects: Optional[Iterable[str]] = None,
        boards: Optional[Iterable[str]] = None,
        classes: Optional[Iterable[str]] = None,
        teachers: Optional[Iterable[str]] = None,
        batches: Optional[Iterable[str]] = None,
    ) -> "CouponCriteria":
        def _values(items: Optional[Iterable[str]]) -> FrozenSet[str]:
            if items is None:
                return frozenset()
            if isinstance(items, str):
                items = [items]
            return frozenset(str(item) for item in items if item is not None and str(item) != "")

        return cls(
            subjects=_values(subjects),
            boards=_values(boards),
            classes=_values(classes),
            teachers=_values(teachers),
            batches=_values(batches),
        )


@dataclass
class CouponValidation:
    valid: bool
    reason: Optional[str] = None
    message: Optional[str] = None
    coupon: Optional[Coupon] = None
    order_amount: Optional[Decimal] = None
    discount_amount: Decimal = field(default_factory=lambda: Decimal("0.00"))
    final_amount: Optional[Decimal] = None

    def raise_for_reason(self) -> None:
        if self.valid:
            return
        if self.reason == COUPON_NOT_FOUND:
            raise CouponNotFoundException(code=self.coupon.code if self.coupon else None)
        raise CouponRejectedException(
            reason=self.reason or NOT_APPLICABLE,
            message=self.message or REJECTION_MESSAGES[NOT_APPLICABLE],
            details={"code": self.coupon.code} if self.coupon else None,
        )


@dataclass
class CouponApplication:
    coupon: Coupon
    usage: CouponUsage
    discount_amount: Optional[Decimal]
    final_amount: Optional[Decimal]


def calculate_discount(order_amount: Any, coupon: Coupon) -> Decimal:
    """
    Discount for an order.

    PERCENTAGE takes ``discount_value`` percent of the order, capped at
    ``max_discount_amount`` when set; FLAT takes ``discount_value``. The
    result is never negative and never more than the order itself.
    """
    amount = to_money(order_amount)
    value = Decimal(str(coupon.discount_value))

    if coupon.discount_type == DiscountType.PERCENTAGE.value:
        discount = amount * value / Decimal(100)
        if coupon.max_discount_amount is not None:
            discount = min(discount, Decimal(str(coupon.max_discount_amount)))
    else:
        discount = value

    discount = max(discount, Decimal(0))
    discount = min(discount, amount)
    return to_money(discount)


def is_applicable(coupon: Coupon, criteria: CouponCriteria) -> bool:
    """Every populated ``appliesTo`` set must share a value with the order."""
    for dimension, column in APPLIES_TO_FIELDS.items():
        allowed = set(getattr(coupon, column) or [])
        if not allowed:
            continue
        if not allowed.intersection(getattr(criteria, dimension)):
            return False
    return True


class CouponService(BaseService):
    """Coupon validation, redemption and admin management."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.coupon_repository = RepositoryFactory.create_coupon_repository(db)
        self.usage_repository = RepositoryFactory.create_coupon_usage_repository(db)

    # Validation

    def _check_window(self, coupon: Coupon, now: datetime) -> Optional[str]:
        if not coupon.is_active:
            return COUPON_INACTIVE
        if now < _as_aware(coupon.start_date):
            return COUPON_INACTIVE
        if now > _as_aware(coupon.end_date):
            return COUPON_EXPIRED
        return None

    def _first_rejection(
        self,
        coupon: Coupon,
        user_id: str,
        amount: Optional[Decimal],
        criteria: Optional[CouponCriteria],
        now: datetime,
    ) -> Optional[str]:
        """
        Eligibility checks in their fixed order: active window, usage limit,
        per-user limit, minimum order, applicability.

        Without an amount the minimum order and applicability checks are
        skipped; without criteria only applicability is.
        """
        reason = self._check_window(coupon, now)
        if reason:
            return reason

        if coupon.usage_limit is not None and coupon.usage_count >= coupon.usage_limit:
            return USAGE_LIMIT_REACHED

        if coupon.per_user_limit is not None:
            used = self.usage_repository.count_for_user(coupon.id, user_id)
            if used >= coupon.per_user_limit:
                return PER_USER_LIMIT_REACHED

        if amount is None:
            return None
        if amount < to_money(coupon.min_order_amount or 0):
            return ORDER_TOO_SMALL
        if criteria is not None and not is_applicable(coupon, criteria):
            return NOT_APPLICABLE
        return None

    def _reject(
        self, reason: str, coupon: Optional[Coupon], order_amount: Optional[Decimal]
    ) -> CouponValidation:
        prometheus_metrics.inc_coupon_redemption(reason)
        logger.warning(
            "Coupon rejected",
            extra={"reason": reason, "coupon_code": coupon.code if coupon else None},
        )
        return CouponValidation(
            valid=False,
            reason=reason,
            message=REJECTION_MESSAGES[reason],
            coupon=coupon,
            order_amount=order_amount,
        )

    @BaseService.measure_operation("validate_coupon")
    def validate(
        self,
        code: str,
        user_id: str,
        order_amount: Any,
        criteria: Optional[CouponCriteria] = None,
        now: Optional[datetime] = None,
    ) -> CouponValidation:
        """
        Check a coupon against an order without recording anything.

        Checks run in a fixed order and stop at the first failure:
        existence, active window, usage limit, per-user limit, minimum
        order, applicability.
        """
        amount = to_money(order_amount)
        if amount <= 0:
            raise ValidationException(
                "Order amount must be greater than zero", code="INVALID_ORDER_AMOUNT"
            )
        criteria = criteria or CouponCriteria()
        now = now or datetime.now(timezone.utc)

        coupon = self.coupon_repository.get_by_code(code)
        if coupon is None:
            return CouponValidation(
                valid=False,
                reason=COUPON_NOT_FOUND,
                message=REJECTION_MESSAGES[COUPON_NOT_FOUND],
                order_amount=amount,
            )

        reason = self._first_rejection(coupon, user_id, amount, criteria, now)
        if reason:
            return self._reject(reason, coupon, amount)

        discount = calculate_discount(amount, coupon)
        return CouponValidation(
            valid=True,
            coupon=coupon,
            order_amount=amount,
            discount_amount=discount,
            final_amount=to_money(amount - discount),
        )

    # Redemption

    @BaseService.measure_operation("apply_coupon")
    def apply(
        self,
        code: str,
        user_id: str,
        order_id: str,
        order_amount: Any = None,
        criteria: Optional[CouponCriteria] = None,
        now: Optional[datetime] = None,
    ) -> CouponApplication:
        """
        Record one redemption of a coupon for an order.

        An order that already redeemed the coupon is a conflict. Otherwise
        the checks run in the same order as ``validate``. The usage counter
        is then bumped with a guarded increment; that statement holds the
        coupon row until commit, so the limits re-checked afterwards cannot
        be raced by another apply. Any refusal after the increment rolls the
        whole redemption back.
        """
        now = now or datetime.now(timezone.utc)
        amount = to_money(order_amount) if order_amount is not None else None

        with self.transaction():
            coupon = self.coupon_repository.get_by_code(code)
            if coupon is None:
                raise CouponNotFoundException(code=code.strip().upper())
            coupon_id = coupon.id

            if self.usage_repository.get_for_order(coupon_id, order_id) is not None:
                raise CouponAlreadyAppliedException(coupon.code, order_id)

            reason = self._first_rejection(coupon, user_id, amount, criteria, now)
            if reason:
                self._reject(reason, coupon, amount).raise_for_reason()

            if not self.coupon_repository.increment_usage_if_available(coupon_id):
                self._reject(USAGE_LIMIT_REACHED, coupon, amount).raise_for_reason()

            # Re-read after the increment so limits reflect committed redemptions
            coupon = self.coupon_repository.get_by_id(coupon_id)
            if coupon.per_user_limit is not None:
                used = self.usage_repository.count_for_user(coupon_id, user_id)
                if used >= coupon.per_user_limit:
                    self._reject(PER_USER_LIMIT_REACHED, coupon, amount).raise_for_reason()

            discount = calculate_discount(amount, coupon) if amount is not None else None
            try:
                usage = self.usage_repository.create(
                    coupon_id=coupon_id,
                    user_id=user_id,
                    order_id=order_id,
                    discount_amount=discount,
                    used_at=now,
                )
            except RepositoryException as exc:
                if _violates(exc, _ORDER_USAGE_UNIQUE):
                    raise CouponAlreadyAppliedException(coupon.code, order_id) from exc
                raise

        prometheus_metrics.inc_coupon_redemption("applied")
        self.log_operation(
            "coupon_applied",
            coupon_code=coupon.code,
            user_id=user_id,
            order_id=order_id,
            usage_count=coupon.usage_count,
        )
        final_amount = None
        if amount is not None and discount is not None:
            final_amount = to_money(amount - discount)
        return CouponApplication(
            coupon=coupon, usage=usage, discount_amount=discount, final_amount=final_amount
        )

    @BaseService.measure_operation("release_coupon_usage")
    def release_usage(self, code: str, order_id: str) -> bool:
        """
        Undo the redemption recorded for an order.

        Only used when cancelled bookings are configured to give their
        coupon back; returns False when the order never redeemed it.
        """
        with self.transaction():
            coupon = self.coupon_repository.get_by_code(code)
            if coupon is None:
                return False
            removed = self.usage_repository.delete_for_order(coupon.id, order_id)
            if removed:
                self.coupon_repository.decrement_usage(coupon.id)

        if removed:
            prometheus_metrics.inc_coupon_redemption("released")
            self.log_operation("coupon_released", coupon_code=coupon.code, order_id=order_id)
        return bool(removed)

    # Admin management

    def _normalize_payload(self, data: Dict[str, Any]) -> Dict[str, Any]:
        values = dict(data)
        if "code" in values and values["code"] is not None:
            values["code"] = values["code"].strip().upper()
        applies_to = values.pop("applies_to", None)
        if applies_to is not None:
            for dimension, column in APPLIES_TO_FIELDS.items():
                if dimension in applies_to and applies_to[dimension] is not None:
                    values[column] = list(applies_to[dimension])
        return values

    @staticmethod
    def _check_dates(start: Optional[datetime], end: Optional[datetime]) -> None:
        if start is not None and end is not None and _as_aware(start) > _as_aware(end):
            raise ValidationException(
                "Start date cannot be after end date",
                code="INVALID_DATE_RANGE",
                details={"start_date": start.isoformat(), "end_date": end.isoformat()},
            )

    @staticmethod
    def _check_discount(discount_type: Any, discount_value: Any) -> None:
        if discount_type == DiscountType.PERCENTAGE.value and Decimal(str(discount_value)) > 100:
            raise ValidationException(
                "Percentage discount cannot exceed 100",
                code="INVALID_DISCOUNT_VALUE",
                details={"discount_value": str(discount_value)},
            )

    @BaseService.measure_operation("get_coupon")
    def get_coupon(self, coupon_id: str) -> Coupon:
        coupon = self.coupon_repository.get_by_id(coupon_id)
        if coupon is None:
            raise CouponNotFoundException(coupon_id=coupon_id)
        return coupon

    @BaseService.measure_operation("create_coupon")
    def create_coupon(self, data: Dict[str, Any], created_by: Optional[str] = None) -> Coupon:
        values = self._normalize_payload(data)
        self._check_dates(values.get("start_date"), values.get("end_date"))
        self._check_discount(values.get("discount_type"), values.get("discount_value", 0))

        with self.transaction():
            if self.coupon_repository.get_by_code(values["code"]) is not None:
                raise DuplicateCouponCodeException(values["code"])
            if created_by is not None:
                values["created_by"] = created_by
            try:
                coupon = self.coupon_repository.create(**values)
            except RepositoryException as exc:
                # A concurrent create took the code after the lookup above
                if _violates(exc, _COUPON_CODE_UNIQUE):
                    raise DuplicateCouponCodeException(values["code"]) from exc
                raise

        self.log_operation("coupon_created", coupon_id=coupon.id, coupon_code=coupon.code)
        return coupon

    @BaseService.measure_operation("update_coupon")
    def update_coupon(self, coupon_id: str, data: Dict[str, Any]) -> Coupon:
        values = self._normalize_payload(data)

        with self.transaction():
            coupon = self.get_coupon(coupon_id)
            self._check_dates(
                values.get("start_date", coupon.start_date),
                values.get("end_date", coupon.end_date),
            )
            self._check_discount(
                values.get("discount_type", coupon.discount_type),
                values.get("discount_value", coupon.discount_value),
            )
            new_code = values.get("code")
            if new_code and new_code != coupon.code:
                if self.coupon_repository.get_by_code(new_code) is not None:
                    raise DuplicateCouponCodeException(new_code)
            # usage_count only moves through redemptions
            values.pop("usage_count", None)
            try:
                coupon = self.coupon_repository.update(coupon_id, **values)
            except RepositoryException as exc:
                if new_code and _violates(exc, _COUPON_CODE_UNIQUE):
                    raise DuplicateCouponCodeException(new_code) from exc
                raise

        self.log_operation("coupon_updated", coupon_id=coupon_id, fields=sorted(values))
        return coupon

    @BaseService.measure_operation("delete_coupon")
    def delete_coupon(self, coupon_id: str) -> None:
        with self.transaction():
            if not self.coupon_repository.delete(coupon_id):
                raise CouponNotFoundException(coupon_id=coupon_id)
        self.log_operation("coupon_deleted", coupon_id=coupon_id)

    @BaseService.measure_operation("toggle_coupon")
    def toggle_active(self, coupon_id: str) -> Coupon:
        with self.transaction():
            coupon = self.get_coupon(coupon_id)
            coupon.is_active = not coupon.is_active
            self.db.flush()
        self.log_operation("coupon_toggled", coupon_id=coupon_id, is_active=coupon.is_active)
        return coupon
