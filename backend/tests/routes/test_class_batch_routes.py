from datetime import date, timedelta

import pytest

BATCHES = "/api/v1/classBatches"


def _assert_error(response, status_code: int, code: str) -> dict:
    assert response.status_code == status_code, response.text
    body = response.json()
    assert body["success"] is False
    assert body["error"] == code
    return body


@pytest.fixture
def batch_payload(teacher):
    today = date.today()
    return {
        "teacherId": teacher.id,
        "name": "Class 12 Physics",
        "batchInfo": "Board exam preparation",
        "subjects": ["Physics"],
        "boards": ["CBSE", "ICSE"],
        "classes": ["12"],
        "days": [{"day_name": "Tue"}, "Thu"],
        "time": ["18:30"],
        "fees": 2400,
        "maximumStudents": 2,
        "batchStartDate": (today + timedelta(days=14)).isoformat(),
        "lastEnrolDate": (today + timedelta(days=12)).isoformat(),
    }


class TestCreate:
    def test_create(self, client, batch_payload):
        response = client.post(BATCHES, json=batch_payload)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["days"] == ["Tue", "Thu"]
        assert data["currentStudents"] == 0
        assert data["fees"] == 2400.0
        assert data["isFull"] is False
        assert data["isEnrollmentOpen"] is True

    @pytest.mark.parametrize(
        "field,value",
        [("fees", 50), ("fees", 30000), ("maximumStudents", 3), ("maximumStudents", 0)],
    )
    def test_out_of_range_values(self, client, batch_payload, field, value):
        batch_payload[field] = value
        _assert_error(client.post(BATCHES, json=batch_payload), 422, "VALIDATION_ERROR")

    def test_bad_schedule_entry(self, client, batch_payload):
        batch_payload["days"] = [{"weekday": "Tue"}]
        response = client.post(BATCHES, json=batch_payload)
        body = _assert_error(response, 400, "INVALID_SCHEDULE_ENTRY")
        assert "entry" in body["details"]


class TestList:
    def test_filters(self, client, make_batch):
        today = date.today()
        maths = make_batch(subjects=["Maths"], batch_start_date=today + timedelta(days=9))
        physics = make_batch(
            subjects=["Physics"], boards=["ICSE"], batch_start_date=today + timedelta(days=3)
        )
        closed = make_batch(subjects=["Biology"], is_active=False)

        def ids(params):
            response = client.get(BATCHES, params=params)
            assert response.status_code == 200
            return [b["id"] for b in response.json()["data"]]

        assert ids({}) == [physics.id, closed.id, maths.id]
        assert ids({"subjects": ["Maths", "Physics"]}) == [physics.id, maths.id]
        assert ids({"boards": "ICSE"}) == [physics.id]
        assert ids({"isActive": "false"}) == [closed.id]
        assert ids({"teacherId": "01HZZZZZZZZZZZZZZZZZZZZZZZ"}) == []


def test_get_unknown_batch(client):
    _assert_error(client.get(f"{BATCHES}/01HZZZZZZZZZZZZZZZZZZZZZZZ"), 404, "BATCH_NOT_FOUND")


def test_update(client, batch):
    response = client.put(f"{BATCHES}/{batch.id}", json={"name": "Renamed", "time": ["18:00"]})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["name"] == "Renamed"
    assert data["time"] == ["18:00"]


@pytest.mark.parametrize("field", ["name", "fees", "batchStartDate", "isActive"])
def test_update_rejects_null_for_required_field(client, batch, field):
    response = client.put(f"{BATCHES}/{batch.id}", json={field: None})

    _assert_error(response, 422, "VALIDATION_ERROR")
    assert client.get(f"{BATCHES}/{batch.id}").json()["data"]["name"] == "Class 10 Maths"


def test_capacity_conflict(client, make_batch):
    batch = make_batch(maximum_students=2, current_students=2)

    response = client.put(f"{BATCHES}/{batch.id}", json={"maximumStudents": 1})

    body = _assert_error(response, 409, "CAPACITY_CONFLICT")
    assert body["details"]["requested_maximum"] == 1


def test_delete_deactivates(client, batch):
    response = client.delete(f"{BATCHES}/{batch.id}")

    assert response.status_code == 200
    assert response.json()["data"]["isActive"] is False
    assert client.get(f"{BATCHES}/{batch.id}").json()["data"]["isActive"] is False


def test_teacher_enrollment(client, teacher, batch, make_booking):
    booking = make_booking(batch)
    client.put(f"/api/v1/bookings/stage-three/{booking.id}", json={"status": "paid"})

    response = client.get(f"{BATCHES}/teacher/{teacher.id}/enrollment")

    assert response.status_code == 200
    [entry] = response.json()["data"]
    assert entry["batch"]["id"] == batch.id
    assert entry["seatsAvailable"] == 1
    assert [e["bookingId"] for e in entry["enrolled"]] == [booking.id]


def test_enrollment_for_unknown_teacher(client):
    response = client.get(f"{BATCHES}/teacher/01HZZZZZZZZZZZZZZZZZZZZZZZ/enrollment")
    _assert_error(response, 404, "TEACHER_NOT_FOUND")


def test_reconcile(client, make_batch, make_booking):
    batch = make_batch(current_students=2)
    make_booking(batch, status="paid")

    response = client.post(f"{BATCHES}/{batch.id}/reconcile")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["previousStudents"] == 2
    assert data["paidBookings"] == 1
    assert data["currentStudents"] == 1
    assert data["changed"] is True
