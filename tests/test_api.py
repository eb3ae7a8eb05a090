"""HTTP-level tests for the routers."""

import importlib

from clinic_app.models import STATE_PAID, STATE_UNPAID, TIER_PUBLIC_INSURER, Appointment
from clinic_app.models_invoice import Invoice
from clinic_app.webhook_security import build_signature_manifest, compute_hmac_sha256

# 2030-01-07 is a Monday, far from the real clock's "today"
FUTURE_MONDAY = "2030-01-07"

# The package re-exports the APIRouter under the same name as the module
payments_router_module = importlib.import_module("clinic_app.domain.billing.router")


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/").status_code == 200


def test_availability(client, seed):
    practitioner = seed.practitioner()
    seed.appointment_type()
    seed.template(practitioner, weekday=1, start="09:00", end="10:00")

    response = client.post("/availability", json={"specialty": "cardiology", "date": FUTURE_MONDAY})

    assert response.status_code == 200
    slots = response.json()
    assert [(s["start"], s["end"]) for s in slots] == [("09:00", "09:30"), ("09:30", "10:00")]
    assert slots[0]["practitionerName"] == "Ana Rojas"
    assert slots[0]["date"] == FUTURE_MONDAY


def test_availability_unknown_specialty(client):
    response = client.post("/availability", json={"specialty": "astrology", "date": FUTURE_MONDAY})

    assert response.status_code == 404
    assert response.json()["ok"] is False


def test_availability_validation(client):
    assert client.post("/availability", json={"specialty": "cardiology", "date": "not-a-date"}).status_code == 422


def test_schedule_crud(client, seed):
    practitioner = seed.practitioner()
    payload = {"practitionerId": practitioner.id, "weekday": "Monday", "startTime": "09:00", "endTime": "12:00"}

    created = client.post("/schedules", json=payload)
    assert created.status_code == 201
    template = created.json()
    assert template["weekday"] == 1
    assert template["weekdayName"] == "monday"

    overlap = client.post("/schedules", json={**payload, "startTime": "11:00", "endTime": "13:00"})
    assert overlap.status_code == 409
    assert overlap.json()["ok"] is False

    bad_break = client.post(
        "/schedules", json={**payload, "startTime": "14:00", "endTime": "16:00", "breakStart": "13:00", "breakEnd": "14:30"}
    )
    assert bad_break.status_code == 400

    updated = client.put(f"/schedules/{template['id']}", json={"endTime": "12:30"})
    assert updated.json()["endTime"] == "12:30"

    listing = client.get("/schedules").json()
    assert listing["total"] == 1

    assert client.delete(f"/schedules/{template['id']}").json()["ok"] is True
    assert client.get(f"/schedules/{template['id']}").status_code == 404


def test_booking_flow(client, seed):
    practitioner = seed.practitioner()
    patient = seed.patient()
    appointment_type = seed.appointment_type()
    payload = {
        "patientId": patient.id,
        "practitionerId": practitioner.id,
        "date": FUTURE_MONDAY,
        "startTime": "09:00",
        "endTime": "09:30",
        "appointmentTypeId": appointment_type.id,
        "specialty": "cardiology",
    }

    response = client.post("/appointments/patient", json=payload)

    assert response.status_code == 201
    appointment_id = response.json()["appointmentId"]
    detail = client.get(f"/appointments/{appointment_id}").json()
    assert detail["state"] == STATE_UNPAID
    assert detail["patientName"] == "Pedro Soto"
    assert detail["invoice"] is None
    assert client.get(f"/appointments/patient/{patient.id}/active").json()["hasActiveAppointment"] is False


def test_booking_missing_field(client, seed):
    patient = seed.patient()

    response = client.post("/appointments/patient", json={"patientId": patient.id})

    assert response.status_code == 400
    assert "missing" in response.json()["detail"]


def test_booking_conflict(client, seed):
    practitioner = seed.practitioner()
    patient = seed.patient()
    appointment_type = seed.appointment_type()
    seed.appointment(practitioner, patient, appointment_type, state=STATE_PAID)

    response = client.post(
        "/appointments/patient",
        json={
            "patientId": patient.id,
            "practitionerId": practitioner.id,
            "date": FUTURE_MONDAY,
            "startTime": "10:00",
            "endTime": "10:30",
            "appointmentTypeId": appointment_type.id,
            "specialty": "cardiology",
        },
    )

    assert response.status_code == 400
    assert "active appointment" in response.json()["detail"]


def test_create_order_and_webhook_settlement(client, db, seed, gateway):
    practitioner = seed.practitioner()
    patient = seed.patient(insurance_tier=TIER_PUBLIC_INSURER)
    appointment = seed.appointment(practitioner, patient, seed.appointment_type(price=10000))

    order = client.post("/payments/create-order", json={"appointmentId": appointment.id, "motive": "Checkup"})

    assert order.status_code == 200
    body = order.json()
    assert body["orderId"] == "pref-1"
    assert body["finalPrice"] == 7000
    assert body["discountPercent"] == 30
    assert body["requiresInsuranceVerification"] is True
    sent = gateway.orders[0]
    assert sent["title"] == "Checkup"
    assert sent["unit_price"] == 7000
    assert sent["external_reference"] == str(appointment.id)
    assert sent["notify_url"].endswith("/payments/webhook")

    gateway.add_payment("9001", amount=7000, reference=str(appointment.id))
    webhook = client.post("/payments/webhook", json={"type": "payment", "data": {"id": "9001"}})

    assert webhook.status_code == 200
    db.expire_all()
    assert db.get(Appointment, appointment.id).state == STATE_PAID
    assert db.query(Invoice).filter(Invoice.appointment_id == appointment.id).count() == 1

    detail = client.get(f"/appointments/{appointment.id}").json()
    assert detail["invoice"]["paymentId"] == "9001"
    assert detail["finalPrice"] == 7000

    # Paid appointments cannot be re-priced
    assert client.post("/payments/create-order", json={"appointmentId": appointment.id}).status_code == 400


def test_webhook_always_acknowledges(client, db, seed, gateway):
    practitioner = seed.practitioner()
    appointment = seed.appointment(practitioner, seed.patient(), seed.appointment_type(price=7000))

    # Retries exhausted: the payment never shows up
    assert client.post("/payments/webhook", json={"type": "payment", "data": {"id": "404"}}).status_code == 200
    assert len(gateway.lookups) == 10

    # Amount mismatch
    gateway.add_payment("5000", amount=5000, reference=str(appointment.id))
    assert client.post("/payments/webhook", json={"type": "payment", "data": {"id": "5000"}}).status_code == 200

    # Unparseable body
    assert client.post("/payments/webhook", content=b"not json").status_code == 200

    db.expire_all()
    assert db.get(Appointment, appointment.id).state == STATE_UNPAID
    assert db.query(Invoice).count() == 0


def test_webhook_signature(client, db, seed, gateway, monkeypatch):
    monkeypatch.setattr(payments_router_module, "MERCADOPAGO_WEBHOOK_SECRET", "secret")
    practitioner = seed.practitioner()
    appointment = seed.appointment(practitioner, seed.patient(), seed.appointment_type(price=7000))
    gateway.add_payment("77", amount=7000, reference=str(appointment.id))
    body = {"type": "payment", "data": {"id": "77"}}

    forged = client.post("/payments/webhook", json=body, headers={"x-signature": "ts=1,v1=deadbeef", "x-request-id": "r1"})
    assert forged.status_code == 200
    assert gateway.lookups == []

    signature = compute_hmac_sha256("secret", build_signature_manifest("77", "r1", "1").encode())
    signed = client.post("/payments/webhook", json=body, headers={"x-signature": f"ts=1,v1={signature}", "x-request-id": "r1"})
    assert signed.status_code == 200
    db.expire_all()
    assert db.get(Appointment, appointment.id).state == STATE_PAID


def test_insurance_verification_endpoint(client, db, seed):
    practitioner = seed.practitioner()
    patient = seed.patient(insurance_tier=TIER_PUBLIC_INSURER)
    appointment = seed.appointment(
        practitioner,
        patient,
        seed.appointment_type(price=10000),
        state=STATE_PAID,
        original_price=10000,
        final_price=7000,
        requires_insurance_verification=True,
    )

    response = client.post(
        f"/appointments/{appointment.id}/insurance-verification",
        json={"documentsPresented": False, "notes": "forgot card"},
    )

    assert response.status_code == 200
    assert response.json()["cashDifferencePaid"] == 3000
    assert response.json()["insuranceVerified"] is False


def test_deactivation_endpoints(client, db, seed):
    practitioner = seed.practitioner()
    appointment_type = seed.appointment_type()
    seed.template(practitioner)

    response = client.delete(f"/practitioners/{practitioner.id}")
    assert response.status_code == 200
    assert response.json()["removedTemplates"] == 1

    response = client.delete(f"/appointment-types/{appointment_type.id}")
    assert response.status_code == 200
    assert response.json()["practitionerIds"] == []

    assert client.delete("/practitioners/999").status_code == 404
