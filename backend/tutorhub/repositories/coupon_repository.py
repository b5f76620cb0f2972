# backend/tutorhub/repositories/coupon_repository.py
"""
Coupon repositories.

``increment_usage_if_available`` is the only writer of ``usage_count`` on
redemption: the usage limit is part of the UPDATE's WHERE clause, so
concurrent applies can never push the count past the limit. The UPDATE
also holds the coupon row lock until the surrounding transaction ends,
which serialises the per-user check that follows it.
"""

import logging
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.coupon import Coupon, CouponUsage
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class CouponRepository(BaseRepository[Coupon]):
    def __init__(self, db: Session):
        super().__init__(db, Coupon)

    def get_by_code(self, code: str) -> Optional[Coupon]:
        """Look up a coupon by its code (codes are stored uppercase)."""
        try:
            return self.db.query(Coupon).filter(Coupon.code == code.strip().upper()).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting coupon by code {code}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve coupon: {str(e)}")

    def increment_usage_if_available(self, coupon_id: str) -> bool:
        """Count one redemption unless the usage limit has been reached."""
        try:
            updated = (
                self.db.query(Coupon)
                .filter(
                    Coupon.id == coupon_id,
                    or_(Coupon.usage_limit.is_(None), Coupon.usage_count < Coupon.usage_limit),
                )
                .update(
                    {Coupon.usage_count: Coupon.usage_count + 1},
                    synchronize_session=False,
                )
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error incrementing usage of coupon {coupon_id}: {str(e)}")
            raise RepositoryException(f"Failed to record coupon usage: {str(e)}")
        self._expire_cached(coupon_id)
        return updated == 1

    def decrement_usage(self, coupon_id: str) -> bool:
        """Give back one redemption, floored at zero."""
        try:
            updated = (
                self.db.query(Coupon)
                .filter(Coupon.id == coupon_id, Coupon.usage_count > 0)
                .update(
                    {Coupon.usage_count: Coupon.usage_count - 1},
                    synchronize_session=False,
                )
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error decrementing usage of coupon {coupon_id}: {str(e)}")
            raise RepositoryException(f"Failed to release coupon usage: {str(e)}")
        self._expire_cached(coupon_id)
        return updated == 1

    def _expire_cached(self, coupon_id: str) -> None:
        cached = self.db.identity_map.get(self.db.identity_key(Coupon, coupon_id))
        if cached is not None:
            self.db.expire(cached)


class CouponUsageRepository(BaseRepository[CouponUsage]):
    def __init__(self, db: Session):
        super().__init__(db, CouponUsage)

    def count_for_user(self, coupon_id: str, user_id: str) -> int:
        try:
            return (
                self.db.query(func.count(CouponUsage.id))
                .filter(CouponUsage.coupon_id == coupon_id, CouponUsage.user_id == user_id)
                .scalar()
                or 0
            )
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error counting usage of coupon {coupon_id} for user {user_id}: {str(e)}"
            )
            raise RepositoryException(f"Failed to count coupon usage: {str(e)}")

    def get_for_order(self, coupon_id: str, order_id: str) -> Optional[CouponUsage]:
        try:
            return (
                self.db.query(CouponUsage)
                .filter(CouponUsage.coupon_id == coupon_id, CouponUsage.order_id == order_id)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting usage of coupon {coupon_id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve coupon usage: {str(e)}")

    def delete_for_order(self, coupon_id: str, order_id: str) -> int:
        try:
            return (
                self.db.query(CouponUsage)
                .filter(CouponUsage.coupon_id == coupon_id, CouponUsage.order_id == order_id)
                .delete(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting usage of coupon {coupon_id}: {str(e)}")
            raise RepositoryException(f"Failed to delete coupon usage: {str(e)}")
