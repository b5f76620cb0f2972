# backend/tutorhub/repositories/factory.py
"""
Repository Factory.

Centralizes creation of repository instances so services never
construct repositories with ad hoc arguments.
"""

from sqlalchemy.orm import Session

from .booking_repository import BookingRepository
from .class_batch_repository import ClassBatchRepository
from .coupon_repository import CouponRepository, CouponUsageRepository
from .profile_repository import ParentRepository, StudentRepository, TeacherRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_class_batch_repository(db: Session) -> ClassBatchRepository:
        return ClassBatchRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> BookingRepository:
        return BookingRepository(db)

    @staticmethod
    def create_coupon_repository(db: Session) -> CouponRepository:
        return CouponRepository(db)

    @staticmethod
    def create_coupon_usage_repository(db: Session) -> CouponUsageRepository:
        return CouponUsageRepository(db)

    @staticmethod
    def create_teacher_repository(db: Session) -> TeacherRepository:
        return TeacherRepository(db)

    @staticmethod
    def create_student_repository(db: Session) -> StudentRepository:
        return StudentRepository(db)

    @staticmethod
    def create_parent_repository(db: Session) -> ParentRepository:
        return ParentRepository(db)
