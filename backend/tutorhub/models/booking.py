# backend/tutorhub/models/booking.py
"""
Booking model.

A booking is one student's reservation in a class batch. It is created as
``pending``, collects frequency and terms acceptance in stage two, and
moves to ``paid`` in stage three, which is the only point where a seat is
taken from the batch. Cancellation is a stored terminal state; rows are
never deleted.
"""

from enum import Enum
from typing import FrozenSet

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base
from .types import StringArrayType


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PAID = "paid"
    CANCELLED = "cancelled"


class BookingFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class BookingType(str, Enum):
    CLASS_ROOM = "classRoom"
    EXAM = "exam"
    COURSE_MATERIALS = "courseMaterials"


# Statuses from which stage three may take a seat
PAYABLE_STATUSES: FrozenSet[BookingStatus] = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED}
)


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    # Participants
    teacher_id = Column(String(26), ForeignKey("teachers.id"), nullable=False, index=True)
    student_id = Column(String(26), ForeignKey("students.id"), nullable=False, index=True)
    parent_id = Column(String(26), ForeignKey("parents.id"), nullable=False, index=True)
    batch_id = Column(String(26), ForeignKey("class_batches.id"), nullable=False, index=True)

    # Class details captured at booking time
    class_days = Column(StringArrayType(), nullable=False, default=list)
    class_timings = Column(StringArrayType(), nullable=False, default=list)
    subjects = Column(StringArrayType(), nullable=False, default=list)
    starting_date = Column(Date, nullable=False)
    fees = Column(Numeric(10, 2), nullable=False)
    booking_type = Column(String(20), nullable=False, default=BookingType.CLASS_ROOM.value)

    # Stage two
    frequency = Column(String(20), nullable=False, default=BookingFrequency.MONTHLY.value)
    accept_tnc = Column(Boolean, nullable=False, default=False)

    # Stage three
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    payment_details = Column(JSON, nullable=True)
    coupon_code = Column(String(50), nullable=True)
    discount_amount = Column(Numeric(10, 2), nullable=True)
    amount_payable = Column(Numeric(10, 2), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    paid_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    batch = relationship("ClassBatch", back_populates="bookings")
    teacher = relationship("Teacher")
    student = relationship("Student")
    parent = relationship("Parent")

    __table_args__ = (Index("ix_bookings_batch_status", "batch_id", "status"),)

    @property
    def is_paid(self) -> bool:
        return self.status == BookingStatus.PAID.value

    @property
    def is_cancelled(self) -> bool:
        return self.status == BookingStatus.CANCELLED.value

    def __repr__(self) -> str:
        return f"<Booking {self.id} batch={self.batch_id} status={self.status}>"
