from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from main import create_app

from conftest import T0

BOOKING = {
    "client_id": "USR-2026-0001",
    "lawyer_id": "LWR-003",
    "client_name": "Nimal Perera",
    "lawyer_name": "Adv. Silva",
    "consultation_type": "video",
    "case_type": "Property Dispute",
    "description": "Boundary dispute with neighbour",
    "selected_date": "2026-03-02",
    "selected_time": "10:00 AM",
    "consultation_fee": "5000",
}


@pytest.fixture
def client(engine):
    app = create_app(lifecycle=engine, run_sweeper=False)
    with TestClient(app) as test_client:
        yield test_client


def book(client, **overrides):
    response = client.post("/appointments/", json={**BOOKING, **overrides})
    assert response.status_code == 201, response.text
    return response.json()


def confirm(client, appointment_id):
    client.post(f"/appointments/{appointment_id}/approve")
    (payment,) = client.get(f"/appointments/{appointment_id}/payments").json()
    response = client.post(f"/payments/{payment['id']}/confirm")
    assert response.status_code == 200, response.text
    return payment


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy", "sweeper_running": False}


def test_booking_flow(client, clock):
    appointment = book(client)
    assert appointment["status"] == "PENDING_LAWYER_APPROVAL"
    assert appointment["deadline"]["urgency"] == "normal"

    clock.advance(hours=1)
    approved = client.post(f"/appointments/{appointment['id']}/approve").json()
    assert approved["status"] == "APPROVED_AWAITING_PAYMENT"
    assert approved["approval_deadline"] is None

    deadline = client.get(f"/appointments/{appointment['id']}/deadline").json()
    assert deadline["countdown"] == "10m 0s"

    payment = confirm(client, appointment["id"])
    assert client.get(f"/payments/{payment['id']}").json()["status"] == "SUCCESS"
    assert client.get(f"/appointments/{appointment['id']}").json()["status"] == "CONFIRMED"


def test_error_mapping(client, clock):
    assert client.get("/appointments/apt-missing").status_code == 404
    assert client.get("/appointments/apt-missing").json()["error"] == "not_found"

    appointment = book(client)
    clock.advance(hours=25)
    response = client.post(f"/appointments/{appointment['id']}/approve")
    assert response.status_code == 410
    assert response.json()["error"] == "deadline_passed"

    client.post("/admin/sweep")
    response = client.post(f"/appointments/{appointment['id']}/approve")
    assert response.status_code == 409
    assert response.json()["error"] == "invalid_transition"


def test_request_validation(client):
    response = client.post("/appointments/", json={**BOOKING, "consultation_fee": "-1"})
    assert response.status_code == 422


def test_case_flow(client):
    appointment = book(client)
    confirm(client, appointment["id"])
    client.post(f"/appointments/{appointment['id']}/complete")

    response = client.post("/cases/", json={
        "appointment_id": appointment["id"],
        "title": "Land boundary dispute",
        "estimated_fees": "100000",
    })
    assert response.status_code == 201, response.text
    case = response.json()
    assert case["status"] == "ACTIVE"
    assert case["deadline"] is None

    duplicate = client.post("/cases/", json={"appointment_id": appointment["id"], "title": "Again"})
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "duplicate_case"

    response = client.post(f"/cases/{case['id']}/payment-requests", json={"amount": "15000", "description": "Filing fee"})
    assert response.status_code == 201
    payment = response.json()

    pending = client.get(f"/cases/{case['id']}").json()
    assert pending["status"] == "PAYMENT_PENDING"
    assert pending["deadline"]["total_duration"] is not None

    client.post(f"/payments/{payment['id']}/confirm")
    settled = client.get(f"/cases/{case['id']}").json()
    assert settled["status"] == "ACTIVE"
    assert float(settled["outstanding_fees"]) == 100000

    document = client.post(f"/cases/{case['id']}/documents", json={"name": "Deed.pdf"}).json()
    message = client.post(f"/cases/{case['id']}/messages", json={"text": "Deed uploaded", "sender": "client"})
    assert message.status_code == 201
    assert client.delete(f"/cases/{case['id']}/documents/{document['id']}").json()["documents"] == []

    closed = client.post(f"/cases/{case['id']}/close").json()
    assert closed["status"] == "CLOSED_BY_LAWYER"
    assert client.put(f"/cases/{case['id']}/progress", json={"progress": 10}).status_code == 409


def test_dashboard(client, clock):
    today = book(client, selected_date=T0.date().isoformat())
    confirm(client, today["id"])
    book(client, selected_date=(T0 + timedelta(days=3)).date().isoformat())

    dashboard = client.get("/dashboard/lawyer/LWR-003").json()
    assert dashboard["today"] == "2026-03-02"
    assert [a["id"] for a in dashboard["todays_appointments"]] == [today["id"]]
    assert dashboard["stats"]["pending_requests"] == 1
    assert dashboard["stats"]["confirmed_appointments"] == 1
    assert float(dashboard["stats"]["total_earned"]) == 5000

    stats = client.get("/dashboard/client/USR-2026-0001/stats").json()
    assert stats["stats"]["awaiting_payment"] == 0

    bad_tz = client.get("/dashboard/client/USR-2026-0001", params={"tz": "Nowhere/Special"})
    assert bad_tz.status_code == 422


def test_admin_windows_and_notifications(client):
    response = client.put("/admin/config", json={"client_payment_minutes": 15})
    assert response.json()["client_payment_minutes"] == 15

    response = client.put("/admin/config", json={"critical_threshold": 0.5, "warning_threshold": 0.3})
    assert response.status_code == 422

    book(client)
    notifications = client.get("/admin/notifications").json()
    assert notifications[0]["title"] == "Appointment Booked"

    assert client.delete(f"/admin/notifications/{notifications[0]['id']}").status_code == 200
    assert client.delete(f"/admin/notifications/{notifications[0]['id']}").status_code == 404
