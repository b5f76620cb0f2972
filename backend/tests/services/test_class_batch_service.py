from datetime import date, timedelta
from decimal import Decimal

import pytest

from tutorhub.core.exceptions import (
    BatchNotFoundException,
    CapacityConflictException,
    ParticipantNotFoundException,
    ValidationException,
)
from tutorhub.models.booking import BookingStatus
from tutorhub.services.class_batch_service import ClassBatchService, normalize_schedule_entries
from tutorhub.services.teacher_schedule_service import TeacherScheduleService


def _batch_payload(teacher_id, **overrides):
    today = date.today()
    data = {
        "teacher_id": teacher_id,
        "name": "Class 9 Science",
        "batch_info": "Weekend batch",
        "subjects": ["Physics", "Chemistry"],
        "boards": ["CBSE"],
        "classes": ["9"],
        "days": [{"day_name": "Sat"}, "Sun"],
        "time": [{"start_time": "10:00"}],
        "fees": Decimal("2000"),
        "maximum_students": 2,
        "batch_start_date": today + timedelta(days=10),
        "last_enrol_date": today + timedelta(days=8),
    }
    data.update(overrides)
    return data


def test_normalize_schedule_entries():
    assert normalize_schedule_entries(["Mon", {"day_name": "Tue"}, "  "], "day_name") == [
        "Mon",
        "Tue",
    ]
    assert normalize_schedule_entries(None, "day_name") == []
    with pytest.raises(ValidationException):
        normalize_schedule_entries([{"other": "Mon"}], "day_name")


class TestCreate:
    def test_create_normalizes_schedule_and_zeroes_counter(self, db, teacher):
        batch = ClassBatchService(db).create_batch(
            _batch_payload(teacher.id, current_students=2)
        )

        assert batch.days == ["Sat", "Sun"]
        assert batch.time == ["10:00"]
        assert batch.current_students == 0
        assert batch.is_active is True

    def test_unknown_teacher(self, db, teacher):
        with pytest.raises(ParticipantNotFoundException) as exc_info:
            ClassBatchService(db).create_batch(_batch_payload("01HZZZZZZZZZZZZZZZZZZZZZZZ"))
        assert exc_info.value.code == "TEACHER_NOT_FOUND"

    def test_get_unknown_batch(self, db):
        with pytest.raises(BatchNotFoundException):
            ClassBatchService(db).get_batch("01HZZZZZZZZZZZZZZZZZZZZZZZ")


class TestUpdate:
    def test_lowering_capacity_below_enrolment_conflicts(self, db, make_batch):
        batch = make_batch(maximum_students=2, current_students=2)

        with pytest.raises(CapacityConflictException) as exc_info:
            ClassBatchService(db).update_batch(batch.id, {"maximum_students": 1})

        assert exc_info.value.details["current_students"] == 2
        db.refresh(batch)
        assert batch.maximum_students == 2

    def test_capacity_change_that_fits(self, db, make_batch):
        batch = make_batch(maximum_students=2, current_students=1)

        updated = ClassBatchService(db).update_batch(
            batch.id, {"maximum_students": 1, "name": "Renamed"}
        )

        assert updated.maximum_students == 1
        assert updated.name == "Renamed"

    def test_seat_counter_is_not_editable(self, db, batch):
        updated = ClassBatchService(db).update_batch(batch.id, {"current_students": 2})
        assert updated.current_students == 0

    def test_deactivate_keeps_seats(self, db, make_batch):
        batch = make_batch(current_students=1)

        deactivated = ClassBatchService(db).deactivate_batch(batch.id)

        assert deactivated.is_active is False
        assert deactivated.current_students == 1


def test_teacher_enrollment_lists_paid_bookings(db, teacher, make_batch, make_booking):
    batch = make_batch()
    paid = make_booking(batch, status=BookingStatus.PAID.value)
    make_booking(batch, status=BookingStatus.PENDING.value)
    make_batch(name="Empty batch")

    enrollments = ClassBatchService(db).get_teacher_enrollment(teacher.id)

    assert len(enrollments) == 2
    by_batch = {e.batch.id: e for e in enrollments}
    assert [b.id for b in by_batch[batch.id].paid_bookings] == [paid.id]


class TestTeacherSchedule:
    def test_schedule_follows_active_batches(self, db, teacher):
        service = ClassBatchService(db)
        first = service.create_batch(_batch_payload(teacher.id))
        service.create_batch(
            _batch_payload(teacher.id, days=["Sun", "Mon"], time=["10:00", "18:00"])
        )

        db.refresh(teacher)
        assert teacher.days_of_week == ["Sat", "Sun", "Mon"]
        assert teacher.time_of_day == ["10:00", "18:00"]

        service.deactivate_batch(first.id)

        db.refresh(teacher)
        assert teacher.days_of_week == ["Sun", "Mon"]
        assert teacher.schedule_refreshed_at is not None

    def test_listener_failure_does_not_undo_the_batch(self, db, teacher, monkeypatch):
        def _boom(self, teacher_id):
            raise RuntimeError("schedule store unavailable")

        monkeypatch.setattr(TeacherScheduleService, "recompute", _boom)

        batch = ClassBatchService(db).create_batch(_batch_payload(teacher.id))

        assert ClassBatchService(db).get_batch(batch.id).is_active is True
