"""
Database models for the TutorHub booking backend.

- Participant profiles (read-only collaborators)
- Class batches and their seat capacity
- Bookings and their payment stages
- Coupons and coupon redemptions
"""

from .booking import Booking, BookingFrequency, BookingStatus, BookingType
from .class_batch import ClassBatch
from .coupon import Coupon, CouponUsage, DiscountType
from .profile import Parent, Student, Teacher

__all__ = [
    "Booking",
    "BookingFrequency",
    "BookingStatus",
    "BookingType",
    "ClassBatch",
    "Coupon",
    "CouponUsage",
    "DiscountType",
    "Parent",
    "Student",
    "Teacher",
]
