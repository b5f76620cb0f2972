"""Class batch request and response schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pydantic import Field, ValidationInfo, field_validator

from ..core.constants import (
    MAX_BATCH_FEES,
    MAX_BATCH_STUDENTS,
    MAX_ID_LENGTH,
    MAX_NAME_LENGTH,
    MIN_BATCH_FEES,
    MIN_BATCH_STUDENTS,
)
from .base import CamelModel, Money, StrictRequestModel, reject_null

# Day/time entries arrive either as strings or as picker objects
ScheduleEntry = Union[str, Dict[str, Any]]


def _check_fees(value: Optional[Decimal]) -> Optional[Decimal]:
    if value is not None and not (MIN_BATCH_FEES <= value <= MAX_BATCH_FEES):
        raise ValueError(f"fees must be between {MIN_BATCH_FEES} and {MAX_BATCH_FEES}")
    return value


class ClassBatchCreate(StrictRequestModel):
    teacher_id: str = Field(..., min_length=1, max_length=MAX_ID_LENGTH)
    name: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    batch_info: str = Field(..., min_length=1)
    subjects: List[str] = Field(default_factory=list)
    boards: List[str] = Field(default_factory=list)
    classes: List[str] = Field(default_factory=list)
    days: List[ScheduleEntry] = Field(default_factory=list)
    time: List[ScheduleEntry] = Field(default_factory=list)
    fees: Money
    maximum_students: int = Field(
        default=MAX_BATCH_STUDENTS, ge=MIN_BATCH_STUDENTS, le=MAX_BATCH_STUDENTS
    )
    batch_start_date: date
    last_enrol_date: date
    is_active: bool = True

    @field_validator("fees")
    @classmethod
    def validate_fees(cls, value: Decimal) -> Decimal:
        return _check_fees(value)


class ClassBatchUpdate(StrictRequestModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=MAX_NAME_LENGTH)
    batch_info: Optional[str] = Field(default=None, min_length=1)
    subjects: Optional[List[str]] = None
    boards: Optional[List[str]] = None
    classes: Optional[List[str]] = None
    days: Optional[List[ScheduleEntry]] = None
    time: Optional[List[ScheduleEntry]] = None
    fees: Optional[Money] = None
    maximum_students: Optional[int] = Field(
        default=None, ge=MIN_BATCH_STUDENTS, le=MAX_BATCH_STUDENTS
    )
    batch_start_date: Optional[date] = None
    last_enrol_date: Optional[date] = None
    is_active: Optional[bool] = None

    @field_validator("fees")
    @classmethod
    def validate_fees(cls, value: Optional[Decimal]) -> Optional[Decimal]:
        return _check_fees(value)

    @field_validator(
        "name",
        "batch_info",
        "subjects",
        "boards",
        "classes",
        "days",
        "time",
        "fees",
        "maximum_students",
        "batch_start_date",
        "last_enrol_date",
        "is_active",
    )
    @classmethod
    def validate_not_null(cls, value: Any, info: ValidationInfo) -> Any:
        return reject_null(value, info.field_name)


class ClassBatchResponse(CamelModel):
    id: str
    teacher_id: str
    name: str
    batch_info: str
    subjects: List[str]
    boards: List[str]
    classes: List[str]
    days: List[str]
    time: List[str]
    fees: Money
    maximum_students: int
    current_students: int
    batch_start_date: date
    last_enrol_date: date
    is_active: bool
    is_full: bool
    is_enrollment_open: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_batch(cls, batch: Any) -> "ClassBatchResponse":
        return cls(
            id=batch.id,
            teacher_id=batch.teacher_id,
            name=batch.name,
            batch_info=batch.batch_info,
            subjects=list(batch.subjects or []),
            boards=list(batch.boards or []),
            classes=list(batch.classes or []),
            days=list(batch.days or []),
            time=list(batch.time or []),
            fees=batch.fees,
            maximum_students=batch.maximum_students,
            current_students=batch.current_students,
            batch_start_date=batch.batch_start_date,
            last_enrol_date=batch.last_enrol_date,
            is_active=batch.is_active,
            is_full=batch.is_full,
            is_enrollment_open=batch.is_enrollment_open(),
            created_at=batch.created_at,
            updated_at=batch.updated_at,
        )


class EnrolledBookingSummary(CamelModel):
    booking_id: str
    student_id: str
    parent_id: str
    paid_at: Optional[datetime] = None


class BatchEnrollmentResponse(CamelModel):
    batch: ClassBatchResponse
    seats_available: int
    enrolled: List[EnrolledBookingSummary]


class BatchReconciliationResponse(CamelModel):
    batch_id: str
    previous_students: int
    paid_bookings: int
    current_students: int
    maximum_students: int
    changed: bool
