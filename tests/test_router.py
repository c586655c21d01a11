import pytest
from fastapi.testclient import TestClient

from agenda.database import get_db
from agenda.main import app

APPOINTMENT_START = "2026-10-19T10:00:00"


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _book(client, unit, professional, service, start=APPOINTMENT_START, client_name="Carla"):
    return client.post(
        f"/scheduling/units/{unit.id}/appointments",
        json={
            "professional_id": professional.id,
            "service_id": service.id,
            "start_time": start,
            "client_name": client_name,
        },
    )


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_create_appointment(client, unit, professional, haircut):
    response = _book(client, unit, professional, haircut)

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "pending"
    assert body["end_time"] == "2026-10-19T10:30:00"
    assert body["total_price"] == 40.0
    assert body["cancellation_detail"] is None


def test_conflicting_booking_returns_409(client, unit, professional, haircut):
    _book(client, unit, professional, haircut, client_name="Alice")

    response = _book(client, unit, professional, haircut, start="2026-10-19T10:15:00", client_name="Bob")

    assert response.status_code == 409
    assert response.json()["error"] == "conflict"
    assert "Alice" in response.json()["detail"]


def test_unknown_appointment_returns_404(client):
    response = client.get("/scheduling/appointments/404")

    assert response.status_code == 404
    assert response.json() == {"detail": "Appointment 404 not found", "error": "not_found"}


def test_completion_without_payment_returns_400(client, unit, professional, haircut):
    appointment_id = _book(client, unit, professional, haircut).json()["id"]

    response = client.post(f"/scheduling/appointments/{appointment_id}/status", json={"status": "completed"})

    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"
    assert response.json()["field"] == "payment_method"


def test_invalid_transition_returns_409(client, unit, professional, haircut):
    appointment_id = _book(client, unit, professional, haircut).json()["id"]
    client.post(f"/scheduling/appointments/{appointment_id}/status", json={"status": "cancelled"})

    response = client.post(f"/scheduling/appointments/{appointment_id}/status", json={"status": "confirmed"})

    assert response.status_code == 409
    assert response.json()["error"] == "invalid_transition"


def test_cancel_exposes_cancellation_detail(client, unit, professional, haircut):
    appointment_id = _book(client, unit, professional, haircut).json()["id"]

    response = client.post(
        f"/scheduling/appointments/{appointment_id}/status",
        json={"status": "cancelled", "is_no_show": True},
    )

    assert response.status_code == 200
    assert response.json()["cancellation_detail"] == {"is_no_show": True, "source": "no_show"}

    history = client.get(f"/scheduling/units/{unit.id}/cancellation-history").json()
    assert history["summary"]["total_count"] == 1
    assert history["summary"]["no_show_count"] == 1
    assert history["records"][0]["client_name"] == "Carla"


def test_reschedule(client, unit, professional, haircut):
    appointment_id = _book(client, unit, professional, haircut).json()["id"]

    response = client.patch(
        f"/scheduling/appointments/{appointment_id}", json={"start_time": "2026-10-19T15:00:00"}
    )

    assert response.status_code == 200
    assert response.json()["end_time"] == "2026-10-19T15:30:00"


def test_conflict_check_endpoint(client, unit, professional_with_break):
    response = client.get(
        "/scheduling/conflicts",
        params={
            "professional_id": professional_with_break.id,
            "start": "2026-10-19T12:30:00",
            "end": "2026-10-19T13:00:00",
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["has_conflict"] is True
    assert body["is_break"] is True


def test_availability_and_holidays(client, unit):
    open_day = client.get(f"/scheduling/units/{unit.id}/availability", params={"date": "2026-10-19"})
    assert open_day.json()["is_open"] is True
    assert open_day.json()["opening"] == "10:00:00"

    created = client.post(f"/scheduling/units/{unit.id}/holidays", json={"date": "2026-10-19", "name": "Founders Day"})
    assert created.status_code == 201
    duplicate = client.post(f"/scheduling/units/{unit.id}/holidays", json={"date": "2026-10-19", "name": "Again"})
    assert duplicate.status_code == 409

    closed_day = client.get(f"/scheduling/units/{unit.id}/availability", params={"date": "2026-10-19"})
    assert closed_day.json()["is_open"] is False
    assert closed_day.json()["holiday_label"] == "Founders Day"

    removed = client.delete(f"/scheduling/units/{unit.id}/holidays/{created.json()['id']}")
    assert removed.status_code == 204


def test_business_hours_endpoints(client, unit):
    response = client.put(
        f"/scheduling/units/{unit.id}/business-hours/1",
        json={"is_open": True, "opening_time": "09:00", "closing_time": "18:00"},
    )
    assert response.status_code == 200
    assert response.json()["day_name"] == "Monday"

    week = client.get(f"/scheduling/units/{unit.id}/business-hours").json()
    assert len(week) == 7
    assert week[1]["opening_time"] == "09:00:00"

    invalid = client.put(
        f"/scheduling/units/{unit.id}/business-hours/1",
        json={"is_open": True, "opening_time": "18:00", "closing_time": "09:00"},
    )
    assert invalid.status_code == 422


def test_cancellation_policy_endpoints(client, unit):
    assert client.get(f"/scheduling/units/{unit.id}/cancellation-policy").json()["grace_period_minutes"] == 60

    saved = client.put(f"/scheduling/units/{unit.id}/cancellation-policy", json={"grace_period_minutes": 120})
    assert saved.status_code == 200
    assert saved.json()["grace_period_minutes"] == 120

    rejected = client.put(
        f"/scheduling/units/{unit.id}/cancellation-policy", json={"late_cancellation_fee_percent": 150}
    )
    assert rejected.status_code == 422


def test_delete_records_actor_from_header(client, unit, professional, haircut):
    appointment_id = _book(client, unit, professional, haircut).json()["id"]
    client.post(f"/scheduling/appointments/{appointment_id}/status", json={"status": "confirmed"})

    response = client.delete(
        f"/scheduling/appointments/{appointment_id}",
        params={"reason": "duplicate entry"},
        headers={"X-Actor-Email": "Owner@Salon.com"},
    )

    assert response.status_code == 204
    assert client.get(f"/scheduling/appointments/{appointment_id}").status_code == 404

    history = client.get(f"/scheduling/units/{unit.id}/deletion-history").json()
    assert history["summary"]["confirmed_count"] == 1
    assert history["records"][0]["deleted_by"] == "owner@salon.com"
    assert history["records"][0]["deletion_reason"] == "duplicate entry"
