# backend/tutorhub/repositories/__init__.py
"""
Repository layer for data access.

Key Components:
- BaseRepository: generic CRUD foundation
- RepositoryFactory: creates repository instances for services
- ClassBatchRepository: batch queries and the seat counter primitives
- BookingRepository: booking queries and status compare-and-set
- CouponRepository / CouponUsageRepository: coupons and redemptions
- Teacher/Student/ParentRepository: participant profile lookups
"""

from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .class_batch_repository import ClassBatchRepository
from .coupon_repository import CouponRepository, CouponUsageRepository
from .factory import RepositoryFactory
from .profile_repository import ParentRepository, StudentRepository, TeacherRepository

__all__ = [
    "BaseRepository",
    "BookingRepository",
    "ClassBatchRepository",
    "CouponRepository",
    "CouponUsageRepository",
    "ParentRepository",
    "RepositoryFactory",
    "StudentRepository",
    "TeacherRepository",
]
