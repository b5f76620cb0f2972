"""Coupon request and response schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import Field, ValidationInfo, field_validator, model_validator

from ..core.constants import MAX_COUPON_CODE_LENGTH, MAX_ID_LENGTH, MAX_NAME_LENGTH
from ..models.coupon import DiscountType
from .base import CamelModel, Money, StrictRequestModel, reject_null


class CouponAppliesTo(CamelModel):
    subjects: List[str] = Field(default_factory=list)
    boards: List[str] = Field(default_factory=list)
    classes: List[str] = Field(default_factory=list)
    teachers: List[str] = Field(default_factory=list)
    batches: List[str] = Field(default_factory=list)


class CouponValidateRequest(StrictRequestModel):
    coupon_code: str = Field(..., min_length=1, max_length=MAX_COUPON_CODE_LENGTH)
    user_id: str = Field(..., min_length=1, max_length=MAX_ID_LENGTH)
    order_amount: Money
    subject: Optional[str] = None
    board: Optional[str] = None
    class_id: Optional[str] = None
    teacher: Optional[str] = None
    batch: Optional[str] = None


class CouponApplyRequest(StrictRequestModel):
    coupon_code: str = Field(..., min_length=1, max_length=MAX_COUPON_CODE_LENGTH)
    user_id: str = Field(..., min_length=1, max_length=MAX_ID_LENGTH)
    order_id: str = Field(..., min_length=1, max_length=MAX_ID_LENGTH)
    order_amount: Optional[Money] = None


def _non_negative(value: Optional[Decimal], name: str) -> Optional[Decimal]:
    if value is not None and value < 0:
        raise ValueError(f"{name} cannot be negative")
    return value


class CouponCreate(StrictRequestModel):
    code: str = Field(..., min_length=1, max_length=MAX_COUPON_CODE_LENGTH)
    name: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: Money
    max_discount_amount: Optional[Money] = None
    min_order_amount: Money = Decimal("0")
    start_date: datetime
    end_date: datetime
    is_active: bool = True
    usage_limit: Optional[int] = Field(default=None, ge=0)
    per_user_limit: Optional[int] = Field(default=None, ge=0)
    applies_to: CouponAppliesTo = Field(default_factory=CouponAppliesTo)
    created_by: Optional[str] = Field(default=None, max_length=MAX_ID_LENGTH)

    @field_validator("discount_value", "max_discount_amount", "min_order_amount")
    @classmethod
    def validate_amounts(cls, value: Optional[Decimal], info) -> Optional[Decimal]:
        return _non_negative(value, info.field_name)

    @model_validator(mode="after")
    def check_percentage(self) -> "CouponCreate":
        if self.discount_type == DiscountType.PERCENTAGE.value and self.discount_value > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        return self


class CouponUpdate(StrictRequestModel):
    code: Optional[str] = Field(default=None, min_length=1, max_length=MAX_COUPON_CODE_LENGTH)
    name: Optional[str] = Field(default=None, min_length=1, max_length=MAX_NAME_LENGTH)
    description: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Money] = None
    max_discount_amount: Optional[Money] = None
    min_order_amount: Optional[Money] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None
    usage_limit: Optional[int] = Field(default=None, ge=0)
    per_user_limit: Optional[int] = Field(default=None, ge=0)
    applies_to: Optional[CouponAppliesTo] = None

    @field_validator("discount_value", "max_discount_amount", "min_order_amount")
    @classmethod
    def validate_amounts(cls, value: Optional[Decimal], info) -> Optional[Decimal]:
        return _non_negative(value, info.field_name)

    @field_validator(
        "code",
        "name",
        "discount_type",
        "discount_value",
        "min_order_amount",
        "start_date",
        "end_date",
        "is_active",
        "applies_to",
    )
    @classmethod
    def validate_not_null(cls, value: Any, info: ValidationInfo) -> Any:
        return reject_null(value, info.field_name)


class CouponResponse(CamelModel):
    id: str
    code: str
    name: str
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: Money
    max_discount_amount: Optional[Money] = None
    min_order_amount: Money
    start_date: datetime
    end_date: datetime
    is_active: bool
    usage_limit: Optional[int] = None
    usage_count: int
    per_user_limit: Optional[int] = None
    applies_to: CouponAppliesTo
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CouponQuote(CamelModel):
    """Result of a successful validation: what the coupon takes off."""

    code: str
    name: str
    discount_type: DiscountType
    discount_value: Money
    order_amount: Money
    discount_amount: Money
    final_amount: Money


class CouponRedemption(CamelModel):
    code: str
    user_id: str
    order_id: str
    usage_count: int
    discount_amount: Optional[Money] = None
    final_amount: Optional[Money] = None
    used_at: Optional[datetime] = None
