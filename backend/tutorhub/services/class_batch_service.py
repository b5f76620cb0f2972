# backend/tutorhub/services/class_batch_service.py
"""
Class Batch Service.

Batch management for teachers. Seat counters are never written here:
``current_students`` belongs to the capacity ledger, and capacity changes
go through a conditional update that refuses to drop below current
enrolment. Every mutation emits a BatchChanged event after commit.
"""

from dataclasses import dataclass
import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import (
    BatchNotFoundException,
    CapacityConflictException,
    ParticipantNotFoundException,
    ValidationException,
)
from ..events.batch_events import emit_batch_changed
from ..models.booking import Booking, BookingStatus
from ..models.class_batch import ClassBatch
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

# Clients may send schedule entries as plain strings or as picker objects
_SCHEDULE_KEYS = {"days": "day_name", "time": "start_time"}


def normalize_schedule_entries(entries: Optional[Iterable[Any]], key: str) -> List[str]:
    """Flatten ``["Mon"]`` / ``[{"day_name": "Mon"}]`` style input to strings."""
    if entries is None:
        return []
    normalized: List[str] = []
    for entry in entries:
        if isinstance(entry, str):
            value = entry
        elif isinstance(entry, dict) and entry.get(key) is not None:
            value = str(entry[key])
        else:
            raise ValidationException(
                f"Invalid schedule entry, expected a string or an object with '{key}'",
                code="INVALID_SCHEDULE_ENTRY",
                details={"entry": repr(entry)},
            )
        value = value.strip()
        if value:
            normalized.append(value)
    return normalized


@dataclass
class BatchEnrollment:
    batch: ClassBatch
    paid_bookings: List[Booking]


class ClassBatchService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.repository = RepositoryFactory.create_class_batch_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.teacher_repository = RepositoryFactory.create_teacher_repository(db)

    def _normalize(self, data: Dict[str, Any]) -> Dict[str, Any]:
        values = dict(data)
        for field_name, key in _SCHEDULE_KEYS.items():
            if field_name in values:
                values[field_name] = normalize_schedule_entries(values[field_name], key)
        return values

    @BaseService.measure_operation("list_batches")
    def list_batches(self, filters: Dict[str, List[Any]]) -> List[ClassBatch]:
        return self.repository.list_filtered(filters)

    @BaseService.measure_operation("get_batch")
    def get_batch(self, batch_id: str) -> ClassBatch:
        batch = self.repository.get_by_id(batch_id)
        if batch is None:
            raise BatchNotFoundException(batch_id)
        return batch

    @BaseService.measure_operation("create_batch")
    def create_batch(self, data: Dict[str, Any]) -> ClassBatch:
        values = self._normalize(data)
        teacher_id = values["teacher_id"]
        if self.teacher_repository.get_by_id(teacher_id) is None:
            raise ParticipantNotFoundException("teacher", teacher_id)
        values["current_students"] = 0
        values.setdefault("is_active", True)

        with self.transaction():
            batch = self.repository.create(**values)

        self.log_operation("batch_created", batch_id=batch.id, teacher_id=teacher_id)
        emit_batch_changed(batch_id=batch.id, teacher_id=teacher_id, kind="created")
        return batch

    @BaseService.measure_operation("update_batch")
    def update_batch(self, batch_id: str, data: Dict[str, Any]) -> ClassBatch:
        values = self._normalize(data)
        # Seat counter and ownership are not editable through updates
        values.pop("current_students", None)
        values.pop("teacher_id", None)
        maximum = values.pop("maximum_students", None)

        with self.transaction():
            batch = self.get_batch(batch_id)
            if maximum is not None and maximum != batch.maximum_students:
                if not self.repository.set_maximum_if_fits(batch_id, maximum):
                    current = self.repository.get_capacity(batch_id)
                    raise CapacityConflictException(
                        batch_id, current.current_students if current else 0, maximum
                    )
            if values:
                batch = self.repository.update(batch_id, **values)
            else:
                batch = self.repository.get_capacity(batch_id)
            teacher_id = batch.teacher_id

        self.log_operation("batch_updated", batch_id=batch_id, fields=sorted(data))
        emit_batch_changed(batch_id=batch_id, teacher_id=teacher_id, kind="updated")
        return batch

    @BaseService.measure_operation("deactivate_batch")
    def deactivate_batch(self, batch_id: str) -> ClassBatch:
        """Batches are never hard-deleted; removal switches them off."""
        with self.transaction():
            batch = self.get_batch(batch_id)
            was_active = batch.is_active
            batch.is_active = False
            self.db.flush()
            teacher_id = batch.teacher_id

        if was_active:
            self.log_operation("batch_deactivated", batch_id=batch_id, teacher_id=teacher_id)
            emit_batch_changed(batch_id=batch_id, teacher_id=teacher_id, kind="deactivated")
        return batch

    @BaseService.measure_operation("get_teacher_enrollment")
    def get_teacher_enrollment(self, teacher_id: str) -> List[BatchEnrollment]:
        """A teacher's batches with the paid bookings occupying their seats."""
        if self.teacher_repository.get_by_id(teacher_id) is None:
            raise ParticipantNotFoundException("teacher", teacher_id)
        return [
            BatchEnrollment(
                batch=batch,
                paid_bookings=self.booking_repository.get_for_batch(
                    batch.id, status=BookingStatus.PAID
                ),
            )
            for batch in self.repository.get_by_teacher(teacher_id)
        ]
