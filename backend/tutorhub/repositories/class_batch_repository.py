# backend/tutorhub/repositories/class_batch_repository.py
"""
ClassBatch Repository.

Holds the storage-level primitives behind seat capacity. Every change to
``current_students`` is a single conditional UPDATE whose WHERE clause
carries the bound, so two callers racing for the last seat cannot both
match the row.
"""

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy import String, case, func, select, type_coerce
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.booking import Booking, BookingStatus
from ..models.class_batch import ClassBatch
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class MatchMode(str, Enum):
    EXACT = "exact"
    ANY_OF = "anyOf"


@dataclass(frozen=True)
class BatchFilterField:
    """One filterable batch attribute exposed on the list endpoint."""

    query_param: str
    attribute: str
    match_mode: MatchMode


BATCH_FILTERS: Sequence[BatchFilterField] = (
    BatchFilterField("teacherId", "teacher_id", MatchMode.EXACT),
    BatchFilterField("isActive", "is_active", MatchMode.EXACT),
    BatchFilterField("subjects", "subjects", MatchMode.ANY_OF),
    BatchFilterField("boards", "boards", MatchMode.ANY_OF),
    BatchFilterField("classes", "classes", MatchMode.ANY_OF),
)


class ClassBatchRepository(BaseRepository[ClassBatch]):
    """Repository for class batches and their seat counters."""

    def __init__(self, db: Session):
        super().__init__(db, ClassBatch)

    def _expire_cached(self, batch_id: str) -> None:
        """Drop a stale in-session copy after a bulk UPDATE bypassed the ORM."""
        cached = self.db.identity_map.get(self.db.identity_key(ClassBatch, batch_id))
        if cached is not None:
            self.db.expire(cached)

    # Capacity primitives

    def increment_if_available(self, batch_id: str) -> bool:
        """
        Take one seat if the batch is active and below capacity.

        Returns True when a row was updated.
        """
        try:
            updated = (
                self.db.query(ClassBatch)
                .filter(
                    ClassBatch.id == batch_id,
                    ClassBatch.is_active.is_(True),
                    ClassBatch.current_students < ClassBatch.maximum_students,
                )
                .update(
                    {ClassBatch.current_students: ClassBatch.current_students + 1},
                    synchronize_session=False,
                )
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error reserving seat on batch {batch_id}: {str(e)}")
            raise RepositoryException(f"Failed to reserve seat: {str(e)}")
        self._expire_cached(batch_id)
        return updated == 1

    def decrement_if_positive(self, batch_id: str) -> bool:
        """Give back one seat; never drives the counter below zero."""
        try:
            updated = (
                self.db.query(ClassBatch)
                .filter(ClassBatch.id == batch_id, ClassBatch.current_students > 0)
                .update(
                    {ClassBatch.current_students: ClassBatch.current_students - 1},
                    synchronize_session=False,
                )
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error releasing seat on batch {batch_id}: {str(e)}")
            raise RepositoryException(f"Failed to release seat: {str(e)}")
        self._expire_cached(batch_id)
        return updated == 1

    def set_maximum_if_fits(self, batch_id: str, maximum_students: int) -> bool:
        """Change capacity only if current enrolment still fits under it."""
        try:
            updated = (
                self.db.query(ClassBatch)
                .filter(
                    ClassBatch.id == batch_id,
                    ClassBatch.current_students <= maximum_students,
                )
                .update(
                    {ClassBatch.maximum_students: maximum_students},
                    synchronize_session=False,
                )
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error changing capacity of batch {batch_id}: {str(e)}")
            raise RepositoryException(f"Failed to change batch capacity: {str(e)}")
        self._expire_cached(batch_id)
        return updated == 1

    def reconcile_current_students(self, batch_id: str) -> bool:
        """
        Reset the seat counter to the number of paid bookings in one statement.

        The count is clamped to ``maximum_students`` so the row constraint
        holds even when more bookings are paid than the batch can seat.
        """
        paid_count = (
            select(func.count(Booking.id))
            .where(
                Booking.batch_id == batch_id,
                Booking.status == BookingStatus.PAID.value,
            )
            .scalar_subquery()
        )
        try:
            updated = (
                self.db.query(ClassBatch)
                .filter(ClassBatch.id == batch_id)
                .update(
                    {
                        ClassBatch.current_students: case(
                            (paid_count > ClassBatch.maximum_students, ClassBatch.maximum_students),
                            else_=paid_count,
                        )
                    },
                    synchronize_session=False,
                )
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error resetting enrolment of batch {batch_id}: {str(e)}")
            raise RepositoryException(f"Failed to reset batch enrolment: {str(e)}")
        self._expire_cached(batch_id)
        return updated == 1

    def count_paid_bookings(self, batch_id: str) -> int:
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.batch_id == batch_id,
                    Booking.status == BookingStatus.PAID.value,
                )
                .count()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting paid bookings for batch {batch_id}: {str(e)}")
            raise RepositoryException(f"Failed to count paid bookings: {str(e)}")

    # Queries

    def get_active_ids(self) -> List[str]:
        try:
            rows = self.db.query(ClassBatch.id).filter(ClassBatch.is_active.is_(True)).all()
            return [row[0] for row in rows]
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing active batches: {str(e)}")
            raise RepositoryException(f"Failed to list active batches: {str(e)}")

    def get_by_teacher(self, teacher_id: str, active_only: bool = False) -> List[ClassBatch]:
        try:
            query = self.db.query(ClassBatch).filter(ClassBatch.teacher_id == teacher_id)
            if active_only:
                query = query.filter(ClassBatch.is_active.is_(True))
            return query.order_by(ClassBatch.batch_start_date, ClassBatch.id).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting batches for teacher {teacher_id}: {str(e)}")
            raise RepositoryException(f"Failed to get teacher batches: {str(e)}")

    def list_filtered(self, filters: Dict[str, List[object]]) -> List[ClassBatch]:
        """
        List batches matching the typed filter configuration.

        ``filters`` maps a BATCH_FILTERS query_param to its requested values.
        EXACT fields match any of the values; ANY_OF fields match when the
        batch's tag list shares at least one value. On PostgreSQL tag
        overlap runs in SQL, elsewhere it is applied to the loaded rows.
        """
        try:
            query = self.db.query(ClassBatch)
            in_memory: List[tuple[str, set[str]]] = []
            use_array_ops = self.dialect_name == "postgresql"

            for field in BATCH_FILTERS:
                values = filters.get(field.query_param)
                if not values:
                    continue
                column = getattr(ClassBatch, field.attribute)
                if field.match_mode is MatchMode.EXACT:
                    query = query.filter(column.in_(values))
                elif use_array_ops:
                    query = query.filter(
                        type_coerce(column, ARRAY(String)).overlap([str(v) for v in values])
                    )
                else:
                    in_memory.append((field.attribute, {str(v) for v in values}))

            batches = query.order_by(ClassBatch.batch_start_date, ClassBatch.id).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing batches: {str(e)}")
            raise RepositoryException(f"Failed to list batches: {str(e)}")

        for attribute, wanted in in_memory:
            batches = [b for b in batches if wanted.intersection(getattr(b, attribute) or [])]
        return batches

    def get_capacity(self, batch_id: str) -> Optional[ClassBatch]:
        """Fresh read of a batch, bypassing any cached copy in the session."""
        self._expire_cached(batch_id)
        return self.get_by_id(batch_id)
