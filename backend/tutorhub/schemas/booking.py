"""Booking request and response schemas."""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from ..core.constants import MAX_COUPON_CODE_LENGTH
from ..models.booking import BookingFrequency, BookingStatus, BookingType
from .base import CamelModel, Money, StrictRequestModel


class BookingCreate(StrictRequestModel):
    """Stage one: booking intent against a batch."""

    batch_id: str = Field(..., min_length=1)
    student_id: str = Field(..., min_length=1)
    teacher_id: str = Field(..., min_length=1)
    parent_id: str = Field(..., min_length=1)
    class_days: List[str] = Field(default_factory=list)
    class_timings: List[str] = Field(default_factory=list)
    subjects: List[str] = Field(default_factory=list)
    starting_date: date
    fees: Optional[Money] = None
    booking_type: BookingType = BookingType.CLASS_ROOM


class BookingStageTwo(StrictRequestModel):
    frequency: BookingFrequency
    accept_tnc: bool = Field(..., alias="acceptTNC")


class BookingStageThree(StrictRequestModel):
    payment_details: Optional[Dict[str, Any]] = None
    status: Optional[BookingStatus] = None
    coupon_code: Optional[str] = Field(
        default=None, min_length=1, max_length=MAX_COUPON_CODE_LENGTH
    )


class BookingResponse(CamelModel):
    id: str
    batch_id: str
    teacher_id: str
    student_id: str
    parent_id: str
    status: BookingStatus
    is_active: bool
    class_days: List[str]
    class_timings: List[str]
    subjects: List[str]
    starting_date: date
    fees: Money
    booking_type: BookingType
    frequency: BookingFrequency
    accept_tnc: bool = Field(..., alias="acceptTNC")
    payment_details: Optional[Dict[str, Any]] = None
    coupon_code: Optional[str] = None
    discount_amount: Optional[Money] = None
    amount_payable: Optional[Money] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class ParticipantSummary(CamelModel):
    id: str
    name: str


class BookedBatchSummary(CamelModel):
    id: str
    name: str
    batch_info: str
    days: List[str]
    time: List[str]
    fees: Money
    batch_start_date: date
    is_active: bool


class BookingDetailResponse(BookingResponse):
    """Booking as returned by the single-booking lookup."""

    batch: Optional[BookedBatchSummary] = None
    teacher: Optional[ParticipantSummary] = None
    student: Optional[ParticipantSummary] = None
    parent: Optional[ParticipantSummary] = None
