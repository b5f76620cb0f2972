# backend/tutorhub/repositories/profile_repository.py
"""Read access to participant profiles plus the teacher schedule summary."""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.profile import Parent, Student, Teacher
from .base_repository import BaseRepository


class TeacherRepository(BaseRepository[Teacher]):
    def __init__(self, db: Session):
        super().__init__(db, Teacher)

    def update_schedule(
        self, teacher_id: str, days_of_week: List[str], time_of_day: List[str]
    ) -> Optional[Teacher]:
        try:
            teacher = self.get_by_id(teacher_id)
            if teacher is None:
                return None
            teacher.days_of_week = days_of_week
            teacher.time_of_day = time_of_day
            teacher.schedule_refreshed_at = datetime.now(timezone.utc)
            self.db.flush()
            return teacher
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating schedule for teacher {teacher_id}: {str(e)}")
            raise RepositoryException(f"Failed to update teacher schedule: {str(e)}")


class StudentRepository(BaseRepository[Student]):
    def __init__(self, db: Session):
        super().__init__(db, Student)


class ParentRepository(BaseRepository[Parent]):
    def __init__(self, db: Session):
        super().__init__(db, Parent)
