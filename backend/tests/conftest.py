# backend/tests/conftest.py
"""
Pytest configuration.

The engine is built when ``tutorhub.database`` is imported, so the test
database URL has to be in the environment BEFORE any tutorhub import.
Every test runs against a throwaway SQLite file; all rows are wiped after
each test.
"""

import os
from pathlib import Path
import tempfile

# CRITICAL: Point at the test database BEFORE any app imports!
_TEST_DB_DIR = Path(tempfile.mkdtemp(prefix="tutorhub-tests-"))
TEST_DATABASE_URL = f"sqlite:///{_TEST_DB_DIR / 'tutorhub_test.db'}"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["IS_TESTING"] = "true"
os.environ["COUPON_RELEASE_ON_CANCEL"] = "false"

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Iterator

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.orm import Session

from tutorhub.api.dependencies.database import get_db
from tutorhub.database import Base, SessionLocal, engine
from tutorhub.events.batch_events import register_listener, unregister_listener
from tutorhub.main import fastapi_app as app
from tutorhub.models import (
    Booking,
    BookingStatus,
    ClassBatch,
    Coupon,
    DiscountType,
    Parent,
    Student,
    Teacher,
)
from tutorhub.services.teacher_schedule_service import make_schedule_listener


def _validate_test_database_url(database_url: str) -> None:
    if not database_url.startswith("sqlite:///") or "tutorhub-tests-" not in database_url:
        raise RuntimeError(f"Refusing to run tests against {database_url!r}")


@pytest.fixture(scope="session", autouse=True)
def _schema() -> Iterator[None]:
    _validate_test_database_url(str(engine.url))
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(autouse=True)
def _clean_tables() -> Iterator[None]:
    yield
    # Delete in dependency order to avoid FK violations
    with engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())


@pytest.fixture(autouse=True)
def schedule_listener() -> Iterator[Callable]:
    """Same wiring as the app lifespan: batch changes refresh teacher schedules."""
    listener = make_schedule_listener(SessionLocal)
    register_listener(listener)
    yield listener
    unregister_listener(listener)


@pytest.fixture
def db() -> Iterator[Session]:
    session = SessionLocal()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def client(db: Session) -> Iterator[TestClient]:
    """Create a test client that shares the test session."""

    def override_get_db() -> Iterator[Session]:
        yield db

    app.dependency_overrides[get_db] = override_get_db
    test_client = TestClient(app)

    yield test_client

    app.dependency_overrides.clear()
    test_client.close()


# ============================================================================
# Data builders
# ============================================================================


@pytest.fixture
def teacher(db: Session) -> Teacher:
    teacher = Teacher(name="Asha Verma")
    db.add(teacher)
    db.commit()
    return teacher


@pytest.fixture
def student(db: Session) -> Student:
    student = Student(name="Rohan Mehta")
    db.add(student)
    db.commit()
    return student


@pytest.fixture
def parent(db: Session) -> Parent:
    parent = Parent(name="Kavita Mehta")
    db.add(parent)
    db.commit()
    return parent


@pytest.fixture
def make_batch(db: Session, teacher: Teacher) -> Callable[..., ClassBatch]:
    def _make(**overrides: Any) -> ClassBatch:
        today = date.today()
        values: dict[str, Any] = {
            "teacher_id": teacher.id,
            "name": "Class 10 Maths",
            "batch_info": "Weekday evening batch",
            "subjects": ["Maths"],
            "boards": ["CBSE"],
            "classes": ["10"],
            "days": ["Mon", "Wed"],
            "time": ["17:00"],
            "fees": Decimal("1500.00"),
            "maximum_students": 2,
            "current_students": 0,
            "batch_start_date": today + timedelta(days=7),
            "last_enrol_date": today + timedelta(days=5),
            "is_active": True,
        }
        values.update(overrides)
        batch = ClassBatch(**values)
        db.add(batch)
        db.commit()
        return batch

    return _make


@pytest.fixture
def batch(make_batch: Callable[..., ClassBatch]) -> ClassBatch:
    return make_batch()


@pytest.fixture
def make_student(db: Session) -> Callable[..., Student]:
    def _make(name: str = "Student") -> Student:
        student = Student(name=name)
        db.add(student)
        db.commit()
        return student

    return _make


@pytest.fixture
def make_booking(
    db: Session, student: Student, parent: Parent
) -> Callable[..., Booking]:
    def _make(batch: ClassBatch, **overrides: Any) -> Booking:
        values: dict[str, Any] = {
            "batch_id": batch.id,
            "teacher_id": batch.teacher_id,
            "student_id": student.id,
            "parent_id": parent.id,
            "class_days": list(batch.days),
            "class_timings": list(batch.time),
            "subjects": list(batch.subjects),
            "starting_date": batch.batch_start_date,
            "fees": batch.fees,
            "status": BookingStatus.PENDING.value,
        }
        values.update(overrides)
        booking = Booking(**values)
        db.add(booking)
        db.commit()
        return booking

    return _make


@pytest.fixture
def make_coupon(db: Session) -> Callable[..., Coupon]:
    def _make(**overrides: Any) -> Coupon:
        now = datetime.now(timezone.utc)
        values: dict[str, Any] = {
            "code": "WELCOME10",
            "name": "Welcome offer",
            "discount_type": DiscountType.PERCENTAGE.value,
            "discount_value": Decimal("10"),
            "min_order_amount": Decimal("0"),
            "start_date": now - timedelta(days=1),
            "end_date": now + timedelta(days=30),
            "is_active": True,
            "usage_count": 0,
        }
        values.update(overrides)
        coupon = Coupon(**values)
        db.add(coupon)
        db.commit()
        return coupon

    return _make
