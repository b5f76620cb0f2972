def test_health(client):
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["checks"] == {"database": True}
    assert data["service"] == "TutorHub API"


def test_prometheus_metrics(client, batch, make_booking):
    booking = make_booking(batch)
    client.put(f"/api/v1/bookings/stage-three/{booking.id}", json={"status": "paid"})

    response = client.get("/metrics/prometheus")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    text = response.text
    assert "tutorhub_http_requests_total" in text
    assert 'endpoint="/api/v1/bookings/stage-three/:id"' in text
    assert 'tutorhub_seat_reservations_total{outcome="granted"}' in text
    assert 'operation="advance_stage_three"' in text


def test_unknown_route_uses_envelope(client):
    response = client.get("/api/v1/nothing-here")

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Not Found", "error": "NOT_FOUND"}
