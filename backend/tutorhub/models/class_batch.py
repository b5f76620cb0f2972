# backend/tutorhub/models/class_batch.py
"""
Class batch model.

A batch is a recurring class slot offered by a teacher with a small fixed
number of seats. ``current_students`` is only changed through the
conditional updates in ClassBatchRepository so it can never leave the
``0..maximum_students`` range, which the check constraints also guard.
"""

from datetime import date
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.constants import (
    DEFAULT_BATCH_STUDENTS,
    MAX_BATCH_FEES,
    MAX_BATCH_STUDENTS,
    MIN_BATCH_FEES,
    MIN_BATCH_STUDENTS,
)
from ..database import Base
from .types import StringArrayType


class ClassBatch(Base):
    __tablename__ = "class_batches"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    teacher_id = Column(String(26), ForeignKey("teachers.id"), nullable=False, index=True)

    name = Column(String(200), nullable=False)
    batch_info = Column(Text, nullable=False)

    # Tags
    subjects = Column(StringArrayType(), nullable=False, default=list)
    boards = Column(StringArrayType(), nullable=False, default=list)
    classes = Column(StringArrayType(), nullable=False, default=list)

    # Weekly schedule
    days = Column(StringArrayType(), nullable=False, default=list)
    time = Column(StringArrayType(), nullable=False, default=list)

    fees = Column(Numeric(10, 2), nullable=False)

    # Capacity
    maximum_students = Column(Integer, nullable=False, default=DEFAULT_BATCH_STUDENTS)
    current_students = Column(Integer, nullable=False, default=0)

    batch_start_date = Column(Date, nullable=False)
    last_enrol_date = Column(Date, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    teacher = relationship("Teacher", back_populates="batches")
    bookings = relationship("Booking", back_populates="batch")

    __table_args__ = (
        CheckConstraint("current_students >= 0", name="ck_class_batches_current_non_negative"),
        CheckConstraint(
            "current_students <= maximum_students",
            name="ck_class_batches_current_within_maximum",
        ),
        CheckConstraint(
            f"maximum_students >= {MIN_BATCH_STUDENTS} "
            f"AND maximum_students <= {MAX_BATCH_STUDENTS}",
            name="ck_class_batches_maximum_range",
        ),
        CheckConstraint(
            f"fees >= {MIN_BATCH_FEES} AND fees <= {MAX_BATCH_FEES}",
            name="ck_class_batches_fees_range",
        ),
        Index("ix_class_batches_teacher_start", "teacher_id", "batch_start_date"),
    )

    @property
    def is_full(self) -> bool:
        return self.current_students >= self.maximum_students

    @property
    def seats_available(self) -> int:
        return max(self.maximum_students - self.current_students, 0)

    def is_enrollment_open(self, today: Optional[date] = None) -> bool:
        """Whether new students may still enrol (before the cutoff and not full)."""
        today = today or date.today()
        return bool(self.is_active) and today <= self.last_enrol_date and not self.is_full

    def __repr__(self) -> str:
        return (
            f"<ClassBatch {self.id} teacher={self.teacher_id} "
            f"{self.current_students}/{self.maximum_students}>"
        )
