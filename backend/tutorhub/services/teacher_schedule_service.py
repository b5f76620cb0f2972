# backend/tutorhub/services/teacher_schedule_service.py
"""
Teacher schedule summary.

A teacher's ``days_of_week`` / ``time_of_day`` lists are derived from the
teacher's active batches. They are recomputed after batch mutations by a
batch event listener, in a separate session after the mutation commits,
so a failure here never undoes the batch change.
"""

import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session, sessionmaker

from ..events.batch_events import BatchChanged, BatchEvent, BatchEventListener
from ..models.profile import Teacher
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


def _dedupe(values: Iterable[str]) -> List[str]:
    seen: set[str] = set()
    ordered: List[str] = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


class TeacherScheduleService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.batch_repository = RepositoryFactory.create_class_batch_repository(db)
        self.teacher_repository = RepositoryFactory.create_teacher_repository(db)

    @BaseService.measure_operation("recompute_teacher_schedule")
    def recompute(self, teacher_id: str) -> Optional[Teacher]:
        """Rebuild a teacher's day/time summary from their active batches."""
        batches = self.batch_repository.get_by_teacher(teacher_id, active_only=True)
        days = _dedupe(day for batch in batches for day in batch.days or [])
        times = _dedupe(slot for batch in batches for slot in batch.time or [])

        with self.transaction():
            teacher = self.teacher_repository.update_schedule(teacher_id, days, times)

        if teacher is None:
            logger.warning("Schedule recompute skipped: unknown teacher %s", teacher_id)
            return None

        logger.info(
            "Teacher schedule refreshed",
            extra={"teacher_id": teacher_id, "days": days, "time_slots": times},
        )
        return teacher


def make_schedule_listener(session_factory: sessionmaker) -> BatchEventListener:
    """Build a batch event listener that refreshes the owning teacher's schedule."""

    def _on_batch_event(event: BatchEvent) -> None:
        if not isinstance(event, BatchChanged):
            return
        session = session_factory()
        try:
            TeacherScheduleService(session).recompute(event.teacher_id)
        finally:
            session.close()

    return _on_batch_event
