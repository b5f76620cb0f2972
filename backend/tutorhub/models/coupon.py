# backend/tutorhub/models/coupon.py
"""
Coupon and coupon usage models.

``usage_count`` only moves through CouponRepository's guarded increment,
which refuses to pass ``usage_limit``. Each redemption is recorded as a
CouponUsage row; those rows are what ``per_user_limit`` is checked against.
"""

from enum import Enum
from typing import Dict, List

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base
from .types import StringArrayType


class DiscountType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FLAT = "FLAT"


# appliesTo dimension -> column holding the allowed values
APPLIES_TO_FIELDS: Dict[str, str] = {
    "subjects": "applies_to_subjects",
    "boards": "applies_to_boards",
    "classes": "applies_to_classes",
    "teachers": "applies_to_teachers",
    "batches": "applies_to_batches",
}


class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    code = Column(String(50), nullable=False, unique=True, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    discount_type = Column(String(20), nullable=False)
    discount_value = Column(Numeric(10, 2), nullable=False)
    max_discount_amount = Column(Numeric(10, 2), nullable=True)
    min_order_amount = Column(Numeric(10, 2), nullable=False, default=0)

    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    usage_limit = Column(Integer, nullable=True)
    usage_count = Column(Integer, nullable=False, default=0)
    per_user_limit = Column(Integer, nullable=True)

    # Empty list means "no restriction" for that dimension
    applies_to_subjects = Column(StringArrayType(), nullable=False, default=list)
    applies_to_boards = Column(StringArrayType(), nullable=False, default=list)
    applies_to_classes = Column(StringArrayType(), nullable=False, default=list)
    applies_to_teachers = Column(StringArrayType(), nullable=False, default=list)
    applies_to_batches = Column(StringArrayType(), nullable=False, default=list)

    created_by = Column(String(26), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    usages = relationship("CouponUsage", back_populates="coupon", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="ck_coupons_date_order"),
        CheckConstraint("usage_count >= 0", name="ck_coupons_usage_count_non_negative"),
        CheckConstraint("discount_value >= 0", name="ck_coupons_discount_value_non_negative"),
        CheckConstraint(
            "discount_type IN ('PERCENTAGE', 'FLAT')", name="ck_coupons_discount_type"
        ),
    )

    @property
    def applies_to(self) -> Dict[str, List[str]]:
        return {key: list(getattr(self, column) or []) for key, column in APPLIES_TO_FIELDS.items()}

    def __repr__(self) -> str:
        return f"<Coupon {self.code} used={self.usage_count}/{self.usage_limit}>"


class CouponUsage(Base):
    __tablename__ = "coupon_usages"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    coupon_id = Column(
        String(26), ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(String(26), nullable=False)
    order_id = Column(String(26), nullable=False)
    discount_amount = Column(Numeric(10, 2), nullable=True)
    used_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    coupon = relationship("Coupon", back_populates="usages")

    __table_args__ = (
        UniqueConstraint("coupon_id", "user_id", "order_id", name="uq_coupon_usages_order"),
        Index("ix_coupon_usages_coupon_user", "coupon_id", "user_id"),
    )
