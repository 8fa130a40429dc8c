"""Tests for pricing lookups and the invoice lifecycle."""

import asyncio
from datetime import date, datetime
from types import SimpleNamespace

import pytest

from dentalcore.domain.billing import invoice_service as invoice_module
from dentalcore.domain.billing.insurance_resolver import InsuranceResolver
from dentalcore.domain.billing.invoice_service import InvoiceService
from dentalcore.domain.billing.pricing_service import PricingService
from dentalcore.domain.billing.repository import BillingRepository
from dentalcore.domain.scheduling.booking_service import BookingService
from dentalcore.models import Appointment, Payment
from dentalcore.models_invoice import Invoice, InvoiceItem
from dentalcore.models_treatment import InsuranceProfile, TreatmentLine
from dentalcore.shared.exceptions import (
    AlreadyCompleted,
    ConflictError,
    DependencyFailure,
    NotFoundError,
    ValidationError,
)

BOOKING_DAY = date(2026, 11, 16)
CONSULT = [SimpleNamespace(code="CONSULT", quantity=1, tooth_ref=None)]


class FakeGateway:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    async def create_payment_link(self, **kwargs):
        self.calls.append(kwargs)
        if self.fail:
            raise Exception("processor unavailable")
        return {"url": "https://pay.example/checkout/1", "session_id": "cs_1"}


@pytest.fixture
def sent_emails(monkeypatch):
    sent = []

    async def fake_notify(patient, invoice, practice_name):
        sent.append((patient.email, invoice.invoice_number, invoice.payment_link))
        return {"email_sent": True, "email_error": None}

    monkeypatch.setattr(invoice_module, "notify_invoice_issued", fake_notify)
    return sent


@pytest.fixture
def appointment(db, practice, insured_patient):
    appointment, _ = BookingService(db).book(
        practice["patient_id"], practice["professional_id"], practice["service_id"], datetime(2026, 11, 16, 10)
    )
    return appointment


class TestInsuranceResolver:
    def test_no_profile_warns(self, db, practice):
        profile, warnings = InsuranceResolver(db).resolve(practice["patient_id"], BOOKING_DAY)
        assert profile is None
        assert len(warnings) == 1

    def test_latest_overlapping_profile_wins(self, db, practice):
        db.add_all(
            [
                InsuranceProfile(patient_id=practice["patient_id"], mutuality_code="OLD", valid_from=date(2020, 1, 1)),
                InsuranceProfile(
                    patient_id=practice["patient_id"], mutuality_code="NEW", valid_from=date(2025, 1, 1), is_vip=True
                ),
            ]
        )
        db.commit()
        profile, warnings = InsuranceResolver(db).resolve(practice["patient_id"], BOOKING_DAY)
        assert profile.mutuality_code == "NEW"
        assert warnings == []

    def test_expired_profile_is_ignored(self, db, practice):
        db.add(
            InsuranceProfile(
                patient_id=practice["patient_id"], valid_from=date(2020, 1, 1), valid_to=date(2021, 1, 1)
            )
        )
        db.commit()
        profile, _ = InsuranceResolver(db).resolve(practice["patient_id"], BOOKING_DAY)
        assert profile is None

    def test_unknown_patient(self, db, practice):
        with pytest.raises(NotFoundError):
            InsuranceResolver(db).resolve("nope", BOOKING_DAY)


class TestQuote:
    def test_reference_scenario(self, db, practice, insured_patient):
        totals = PricingService(db).quote(insured_patient, BOOKING_DAY, CONSULT)
        assert (totals.total_cents, totals.vat_cents, totals.mutuality_cents, totals.patient_cents) == (
            4000,
            240,
            3000,
            1000,
        )
        assert totals.warnings == []
        assert db.query(Invoice).count() == 0

    def test_unknown_tariff(self, db, practice):
        lines = [SimpleNamespace(code="NOPE", quantity=1, tooth_ref=None)]
        with pytest.raises(NotFoundError):
            PricingService(db).quote(practice["patient_id"], BOOKING_DAY, lines)

    def test_expired_tariff(self, db, practice):
        lines = [SimpleNamespace(code="OLDCODE", quantity=1, tooth_ref=None)]
        with pytest.raises(ValidationError):
            PricingService(db).quote(practice["patient_id"], BOOKING_DAY, lines)

    def test_no_lines(self, db, practice):
        with pytest.raises(ValidationError):
            PricingService(db).quote(practice["patient_id"], BOOKING_DAY, [])


class TestFinalize:
    def test_creates_draft_invoice(self, db, appointment):
        lines = CONSULT + [SimpleNamespace(code="XRAY", quantity=2, tooth_ref="36")]
        invoice, created = InvoiceService(db).finalize(appointment.id, lines)

        assert created is True
        assert invoice.status == "draft"
        assert invoice.claim_status == "to_be_submitted"
        assert invoice.invoice_number.startswith("INV-")
        assert len(invoice.items) == 2
        assert invoice.total_amount_cents == 4000 + 2 * 1999
        assert invoice.patient_amount_cents + invoice.mutuality_amount_cents == invoice.total_amount_cents
        assert db.query(TreatmentLine).filter(TreatmentLine.tooth_ref == "36").count() == 1

    def test_second_finalize_returns_same_invoice(self, db, appointment):
        service = InvoiceService(db)
        first, _ = service.finalize(appointment.id, CONSULT)
        second, created = service.finalize(appointment.id, CONSULT)

        assert created is False
        assert second.id == first.id
        assert db.query(Invoice).count() == 1
        assert db.query(InvoiceItem).count() == 1
        assert db.query(TreatmentLine).count() == 1

    def test_completed_appointment_short_circuits(self, db, appointment):
        BookingService(db).update_status(appointment.id, "completed")
        with pytest.raises(AlreadyCompleted):
            InvoiceService(db).finalize(appointment.id, CONSULT)

    def test_cancelled_appointment_conflicts(self, db, appointment):
        BookingService(db).update_status(appointment.id, "cancelled")
        with pytest.raises(ConflictError):
            InvoiceService(db).finalize(appointment.id, CONSULT)

    def test_missing_insurance_is_noted_on_invoice(self, db, practice):
        appointment, _ = BookingService(db).book(
            practice["patient_id"], practice["professional_id"], practice["service_id"], datetime(2026, 11, 16, 9)
        )
        invoice, _ = InvoiceService(db).finalize(appointment.id, CONSULT)
        assert invoice.notes
        assert invoice.mutuality_amount_cents == 3000

    def test_unknown_appointment(self, db, practice):
        with pytest.raises(NotFoundError):
            InvoiceService(db).finalize("nope", CONSULT)


class TestLifecycle:
    def test_issue_creates_link_and_notifies(self, db, appointment, sent_emails):
        gateway = FakeGateway()
        service = InvoiceService(db, gateway=gateway)
        invoice, _ = service.finalize(appointment.id, CONSULT)

        issued = asyncio.run(service.issue(invoice.id))

        assert issued.status == "issued"
        assert issued.payment_link == "https://pay.example/checkout/1"
        assert gateway.calls[0]["amount_cents"] == 1000
        assert sent_emails == [("jan@example.com", invoice.invoice_number, issued.payment_link)]

    def test_issue_failure_keeps_draft(self, db, appointment, sent_emails):
        service = InvoiceService(db, gateway=FakeGateway(fail=True))
        invoice, _ = service.finalize(appointment.id, CONSULT)

        with pytest.raises(DependencyFailure):
            asyncio.run(service.issue(invoice.id))

        db.expire_all()
        assert db.get(Invoice, invoice.id).status == "draft"
        assert sent_emails == []

    def test_fully_covered_invoice_skips_payment_link(self, db, practice, sent_emails):
        db.add(InsuranceProfile(patient_id=practice["patient_id"], valid_from=date(2024, 1, 1), is_omnio=True))
        db.commit()
        appointment, _ = BookingService(db).book(
            practice["patient_id"], practice["professional_id"], practice["service_id"], datetime(2026, 11, 16, 11)
        )
        gateway = FakeGateway()
        service = InvoiceService(db, gateway=gateway)
        invoice, _ = service.finalize(appointment.id, CONSULT)

        issued = asyncio.run(service.issue(invoice.id))
        assert issued.patient_amount_cents == 0
        assert issued.payment_link is None
        assert gateway.calls == []

    def test_mark_paid_completes_appointment_once(self, db, appointment):
        service = InvoiceService(db)
        invoice, _ = service.finalize(appointment.id, CONSULT)

        paid = service.mark_paid(invoice.id, payment_reference="bank-123")
        assert paid.status == "paid"
        assert paid.payment_reference == "bank-123"

        db.expire_all()
        completed = db.get(Appointment, appointment.id)
        assert completed.status == "completed"
        assert completed.completed_at is not None
        assert db.query(Payment).filter(Payment.appointment_id == appointment.id).one().status == "paid"

        with pytest.raises(AlreadyCompleted) as exc_info:
            service.mark_paid(invoice.id)
        assert exc_info.value.invoice_id == invoice.id

        with pytest.raises(AlreadyCompleted) as exc_info:
            service.finalize(appointment.id, CONSULT)
        assert exc_info.value.invoice_id == invoice.id

    def test_void_then_pay_conflicts(self, db, appointment):
        service = InvoiceService(db)
        invoice, _ = service.finalize(appointment.id, CONSULT)
        assert service.void(invoice.id).status == "void"

        with pytest.raises(ConflictError):
            service.mark_paid(invoice.id)
        with pytest.raises(ConflictError):
            service.finalize(appointment.id, CONSULT)

    def test_claim_status_moves_forward_only(self, db, appointment):
        service = InvoiceService(db)
        invoice, _ = service.finalize(appointment.id, CONSULT)

        assert service.update_claim_status(invoice.id, "submitted").claim_status == "submitted"
        assert service.update_claim_status(invoice.id, "settled").claim_status == "settled"
        with pytest.raises(ConflictError):
            service.update_claim_status(invoice.id, "submitted")
        with pytest.raises(ValidationError):
            service.update_claim_status(invoice.id, "rejected")


class TestCancellationAndPayment:
    def test_cancelling_appointment_voids_open_invoice(self, db, appointment):
        invoice, _ = InvoiceService(db).finalize(appointment.id, CONSULT)

        BookingService(db).update_status(appointment.id, "cancelled")

        db.expire_all()
        voided = db.get(Invoice, invoice.id)
        assert voided.status == "void"
        assert voided.voided_at is not None
        with pytest.raises(ConflictError):
            InvoiceService(db).mark_paid(invoice.id)

    def test_invoice_of_cancelled_appointment_cannot_be_paid(self, db, appointment):
        invoice, _ = InvoiceService(db).finalize(appointment.id, CONSULT)
        db.query(Appointment).filter(Appointment.id == appointment.id).update(
            {Appointment.status: "cancelled"}, synchronize_session=False
        )
        db.commit()

        with pytest.raises(ConflictError):
            InvoiceService(db).mark_paid(invoice.id, payment_reference="bank-9")

        db.expire_all()
        assert db.get(Invoice, invoice.id).status == "draft"
        assert db.get(Appointment, appointment.id).status == "cancelled"


class TestIssueRetry:
    def test_failed_notification_keeps_link_and_retry_reuses_it(self, db, appointment, monkeypatch):
        outcomes = [
            {"email_sent": False, "email_error": "mail provider unavailable"},
            {"email_sent": True, "email_error": None},
        ]

        async def flaky_notify(patient, invoice, practice_name):
            return outcomes.pop(0)

        monkeypatch.setattr(invoice_module, "notify_invoice_issued", flaky_notify)
        gateway = FakeGateway()
        service = InvoiceService(db, gateway=gateway)
        invoice, _ = service.finalize(appointment.id, CONSULT)

        with pytest.raises(DependencyFailure):
            asyncio.run(service.issue(invoice.id))

        db.expire_all()
        pending = db.get(Invoice, invoice.id)
        assert pending.status == "draft"
        assert pending.payment_link == "https://pay.example/checkout/1"
        assert pending.payment_session_id == "cs_1"

        issued = asyncio.run(service.issue(invoice.id))

        assert issued.status == "issued"
        assert issued.payment_link == "https://pay.example/checkout/1"
        assert len(gateway.calls) == 1


class TestInvoiceNumbering:
    @pytest.fixture
    def second_appointment(self, db, appointment, practice):
        other, _ = BookingService(db).book(
            practice["patient_id"], practice["professional_id"], practice["service_id"], datetime(2026, 11, 16, 11)
        )
        return other

    def test_taken_number_is_reallocated_once(self, db, appointment, second_appointment, monkeypatch):
        first, _ = InvoiceService(db).finalize(appointment.id, CONSULT)
        original = BillingRepository.next_invoice_number
        calls = []

        def colliding_number(session, now=None):
            calls.append(now)
            if len(calls) == 1:
                return first.invoice_number
            return original(session, now)

        monkeypatch.setattr(BillingRepository, "next_invoice_number", staticmethod(colliding_number))

        second, created = InvoiceService(db).finalize(second_appointment.id, CONSULT)

        assert created is True
        assert len(calls) == 2
        assert second.invoice_number != first.invoice_number
        assert db.query(Invoice).count() == 2
        assert db.query(TreatmentLine).filter(TreatmentLine.appointment_id == second_appointment.id).count() == 1

    def test_repeated_collision_is_a_conflict(self, db, appointment, second_appointment, monkeypatch):
        first, _ = InvoiceService(db).finalize(appointment.id, CONSULT)
        monkeypatch.setattr(
            BillingRepository, "next_invoice_number", staticmethod(lambda session, now=None: first.invoice_number)
        )

        with pytest.raises(ConflictError):
            InvoiceService(db).finalize(second_appointment.id, CONSULT)

        assert db.query(Invoice).count() == 1
        assert db.query(TreatmentLine).filter(TreatmentLine.appointment_id == second_appointment.id).count() == 0
