"""Tests for the HTTP surface: status codes and payload shapes."""

import pytest

from dentalcore.domain.billing import invoice_service as invoice_module


@pytest.fixture
def booked(client, practice, insured_patient):
    response = client.post(
        "/appointments",
        json={
            "client_id": practice["patient_id"],
            "professional_id": practice["professional_id"],
            "service_id": practice["service_id"],
            "start_time": "2026-11-16T10:00:00Z",
        },
    )
    assert response.status_code == 201
    return response.json()


class TestAvailabilityRoutes:
    def test_lists_slots(self, client, practice):
        response = client.get(
            "/availability",
            params={
                "professional_id": practice["professional_id"],
                "service_id": practice["service_id"],
                "date": "2026-11-16",
            },
        )
        assert response.status_code == 200
        slots = response.json()["slots"]
        assert len(slots) == 24
        assert slots[0]["start_time"] == "2026-11-16T08:00:00"

    def test_missing_parameter_is_400(self, client, practice):
        response = client.get("/availability", params={"professional_id": practice["professional_id"]})
        assert response.status_code == 400

    def test_malformed_date_is_400(self, client, practice):
        response = client.get(
            "/availability",
            params={
                "professional_id": practice["professional_id"],
                "service_id": practice["service_id"],
                "date": "16/11/2026",
            },
        )
        assert response.status_code == 400

    def test_unknown_service_is_404(self, client, practice):
        response = client.get(
            "/availability",
            params={"professional_id": practice["professional_id"], "service_id": "nope", "date": "2026-11-16"},
        )
        assert response.status_code == 404


class TestAppointmentRoutes:
    def test_booking_returns_appointment_and_payment(self, booked):
        assert booked["appointment"]["status"] == "confirmed"
        assert booked["appointment"]["start_time"] == "2026-11-16T10:00:00"
        assert booked["payment"]["status"] == "pending"

    def test_double_booking_is_409(self, client, practice, booked):
        response = client.post(
            "/appointments",
            json={
                "client_id": practice["patient_id"],
                "professional_id": practice["business_id"],
                "service_id": practice["service_id"],
                "start_time": "2026-11-16T10:00:00",
            },
        )
        assert response.status_code == 409
        assert response.json()["error"] in ("conflict", "already_claimed")

    def test_booked_slot_disappears_from_availability(self, client, practice, booked):
        response = client.get(
            "/availability",
            params={
                "professional_id": practice["professional_id"],
                "service_id": practice["service_id"],
                "date": "2026-11-16",
            },
        )
        starts = [slot["start_time"] for slot in response.json()["slots"]]
        assert "2026-11-16T10:00:00" not in starts
        assert len(starts) == 23

    def test_malformed_body_is_400(self, client, practice):
        response = client.post(
            "/appointments",
            json={
                "client_id": practice["patient_id"],
                "professional_id": practice["professional_id"],
                "service_id": practice["service_id"],
                "start_time": "tomorrow at ten",
            },
        )
        assert response.status_code == 400

    def test_unknown_patient_is_404(self, client, practice):
        response = client.post(
            "/appointments",
            json={
                "client_id": "nope",
                "professional_id": practice["professional_id"],
                "service_id": practice["service_id"],
                "start_time": "2026-11-16T10:00:00",
            },
        )
        assert response.status_code == 404

    def test_status_update(self, client, booked):
        appointment_id = booked["appointment"]["id"]
        response = client.patch(f"/appointments/{appointment_id}/status", json={"status": "cancelled"})
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

        response = client.patch(f"/appointments/{appointment_id}/status", json={"status": "confirmed"})
        assert response.status_code == 409

    def test_invalid_status_is_400(self, client, booked):
        appointment_id = booked["appointment"]["id"]
        response = client.patch(f"/appointments/{appointment_id}/status", json={"status": "lost"})
        assert response.status_code == 400

    def test_list_and_get(self, client, practice, booked):
        listed = client.get("/appointments", params={"professional_id": practice["professional_id"]})
        assert [a["id"] for a in listed.json()] == [booked["appointment"]["id"]]

        fetched = client.get(f"/appointments/{booked['appointment']['id']}")
        assert fetched.status_code == 200
        assert client.get("/appointments/nope").status_code == 404

    def test_reschedule(self, client, booked):
        appointment_id = booked["appointment"]["id"]
        response = client.post(
            f"/appointments/{appointment_id}/reschedule", json={"start_time": "2026-11-16T15:00:00"}
        )
        assert response.status_code == 200
        assert response.json()["end_time"] == "2026-11-16T15:30:00"

    def test_generate_and_list_slots(self, client, practice):
        response = client.post(
            "/slots/generate", json={"professional_id": practice["professional_id"], "date": "2026-11-16"}
        )
        assert response.status_code == 200
        assert len(response.json()) == 24

        listed = client.get("/slots", params={"professional_id": practice["professional_id"], "date": "2026-11-16"})
        assert len(listed.json()) == 24


class TestBillingRoutes:
    def test_quote(self, client, insured_patient):
        response = client.post(
            "/billing/quote",
            json={"patient_id": insured_patient, "service_date": "2026-11-16", "lines": [{"code": "CONSULT"}]},
        )
        assert response.status_code == 200
        data = response.json()
        assert (data["total_cents"], data["vat_cents"], data["mutuality_cents"], data["patient_cents"]) == (
            4000,
            240,
            3000,
            1000,
        )

    def test_finalize_is_idempotent(self, client, booked):
        appointment_id = booked["appointment"]["id"]
        body = {"lines": [{"code": "CONSULT", "quantity": 1}]}

        first = client.post(f"/appointments/{appointment_id}/finalize", json=body)
        second = client.post(f"/appointments/{appointment_id}/finalize", json=body)

        assert first.status_code == 201
        assert second.status_code == 200
        assert second.json()["id"] == first.json()["id"]

    def test_finalize_after_payment_short_circuits(self, client, booked):
        appointment_id = booked["appointment"]["id"]
        invoice = client.post(
            f"/appointments/{appointment_id}/finalize", json={"lines": [{"code": "CONSULT"}]}
        ).json()

        paid = client.post(f"/invoices/{invoice['id']}/mark-paid", json={"payment_reference": "cash"})
        assert paid.status_code == 200
        assert paid.json()["status"] == "paid"

        again = client.post(f"/appointments/{appointment_id}/finalize", json={"lines": [{"code": "CONSULT"}]})
        assert again.status_code == 200
        assert again.json()["status"] == "already_completed"
        assert again.json()["invoice_id"] == invoice["id"]

    def test_unknown_tariff_is_404(self, client, booked):
        response = client.post(
            f"/appointments/{booked['appointment']['id']}/finalize", json={"lines": [{"code": "NOPE"}]}
        )
        assert response.status_code == 404

    def test_issue_void_and_claim(self, client, booked, monkeypatch):
        class Gateway:
            async def create_payment_link(self, **kwargs):
                return {"url": "https://pay.example/x", "session_id": "cs_x"}

        async def fake_notify(patient, invoice, practice_name):
            return {"email_sent": True, "email_error": None}

        monkeypatch.setattr(invoice_module, "get_payment_gateway", lambda: Gateway())
        monkeypatch.setattr(invoice_module, "notify_invoice_issued", fake_notify)

        invoice = client.post(
            f"/appointments/{booked['appointment']['id']}/finalize", json={"lines": [{"code": "CONSULT"}]}
        ).json()

        issued = client.post(f"/invoices/{invoice['id']}/issue")
        assert issued.status_code == 200
        assert issued.json()["status"] == "issued"
        assert issued.json()["payment_link"] == "https://pay.example/x"

        claim = client.patch(f"/invoices/{invoice['id']}/claim-status", json={"claim_status": "submitted"})
        assert claim.json()["claim_status"] == "submitted"

        voided = client.post(f"/invoices/{invoice['id']}/void")
        assert voided.json()["status"] == "void"
        assert client.get(f"/invoices/{invoice['id']}").json()["status"] == "void"

    def test_tariff_lookups(self, client, practice):
        codes = [t["code"] for t in client.get("/tariffs").json()]
        assert codes == ["CONSULT", "OLDCODE", "XRAY"]
        assert client.get("/tariffs/XRAY").json()["base_tariff_cents"] == 1999
        assert client.get("/tariffs/NOPE").status_code == 404

    def test_patient_insurance_lookup(self, client, insured_patient):
        response = client.get(f"/patients/{insured_patient}/insurance", params={"date": "2026-11-16"})
        assert response.status_code == 200
        assert response.json()["profile"]["mutuality_code"] == "MUT-100"


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
