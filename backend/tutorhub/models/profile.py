# backend/tutorhub/models/profile.py
"""
Participant profiles referenced by bookings and batches.

Profile management lives in other services; the booking core only reads
these rows to check that participants exist. The teacher row also holds
the day/time summary derived from the teacher's active batches.
"""

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base
from .types import StringArrayType


class Teacher(Base):
    __tablename__ = "teachers"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    name = Column(String(200), nullable=False)

    # Derived from the teacher's active batches
    days_of_week = Column(StringArrayType(), nullable=False, default=list)
    time_of_day = Column(StringArrayType(), nullable=False, default=list)
    schedule_refreshed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    batches = relationship("ClassBatch", back_populates="teacher")

    def __repr__(self) -> str:
        return f"<Teacher {self.id}>"


class Student(Base):
    __tablename__ = "students"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    name = Column(String(200), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<Student {self.id}>"


class Parent(Base):
    __tablename__ = "parents"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    name = Column(String(200), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<Parent {self.id}>"
