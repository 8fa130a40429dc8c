"""Invoice service - builds, issues and settles the invoice of a completed treatment"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import INVOICE_DUE_DAYS
from ...database import is_contention_error
from ...models_invoice import CLAIM_STATUSES, Invoice, InvoiceItem
from ...models_treatment import TreatmentLine
from ...services.notification_service import notify_invoice_issued
from ...services.status_automation import validate_claim_transition, validate_invoice_transition
from ...shared.exceptions import (
    AlreadyCompleted,
    ConflictError,
    DentalCoreError,
    DependencyFailure,
    NotFoundError,
    ValidationError,
)
from ..scheduling.repository import SchedulingRepository
from .calculator import BillingTotals
from .payment_gateway import PaymentGateway, get_payment_gateway
from .pricing_service import PricingService
from .repository import BillingRepository

logger = logging.getLogger(__name__)

# One retry covers a concurrent finalize of another appointment taking the same number
INVOICE_NUMBER_ATTEMPTS = 2


class InvoiceService:
    """Service layer for the invoice lifecycle: draft → issued → paid, draft/issued → void"""

    def __init__(self, db: Session, gateway: Optional[PaymentGateway] = None):
        self.db = db
        self.repo = BillingRepository()
        self.pricing = PricingService(db)
        self._gateway = gateway

    @property
    def gateway(self) -> PaymentGateway:
        if self._gateway is None:
            self._gateway = get_payment_gateway()
        return self._gateway

    def _get_invoice(self, invoice_id: str, for_update: bool = False) -> Invoice:
        invoice = self.repo.get_invoice(self.db, invoice_id, for_update=for_update)
        if not invoice:
            raise NotFoundError("Invoice not found", invoice_id=invoice_id)
        return invoice

    def _commit(self, action: str):
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            if isinstance(e, OperationalError) and is_contention_error(e):
                logger.warning(f"⚠️ {action} lost a concurrent race: {e}")
                raise ConflictError(f"Concurrent update, unable to {action}, retry") from e
            logger.error(f"❌ Failed to {action}: {e}")
            raise DependencyFailure(f"Unable to {action}") from e

    def get_invoice(self, invoice_id: str) -> Invoice:
        return self._get_invoice(invoice_id)

    # ========================================================================
    # FINALIZE
    # ========================================================================

    def finalize(self, appointment_id: str, lines: Iterable) -> tuple[Invoice, bool]:
        """
        Build the invoice for an appointment's performed treatment.

        Idempotent: a second call returns the existing draft/issued invoice
        instead of creating another one.

        Returns:
            (invoice, created) where created is False for a reused invoice

        Raises:
            AlreadyCompleted: appointment completed or invoice already paid
            ConflictError: appointment cancelled or invoice voided
            NotFoundError / ValidationError: bad appointment, tariff, patient or lines
        """
        appointment = self.repo.get_appointment(self.db, appointment_id, for_update=True)
        if not appointment:
            raise NotFoundError("Appointment not found", appointment_id=appointment_id)

        existing = self.repo.get_invoice_by_appointment(self.db, appointment_id)

        if appointment.status == "completed":
            self.db.rollback()
            logger.info(f"ℹ️ Appointment {appointment_id} already completed, finalize short-circuited")
            raise AlreadyCompleted(
                "Appointment already completed",
                invoice_id=existing.id if existing else None,
                appointment_id=appointment_id,
            )
        if appointment.status == "cancelled":
            self.db.rollback()
            raise ConflictError("Cannot invoice a cancelled appointment", appointment_id=appointment_id)

        if existing:
            self.db.rollback()
            if existing.status in ("draft", "issued"):
                logger.info(f"ℹ️ Reusing invoice {existing.invoice_number} for appointment {appointment_id}")
                return existing, False
            if existing.status == "paid":
                raise AlreadyCompleted(
                    "Invoice already paid", invoice_id=existing.id, appointment_id=appointment_id
                )
            raise ConflictError(
                "Invoice for this appointment was voided", invoice_id=existing.id, appointment_id=appointment_id
            )

        try:
            totals = self.pricing.price(appointment.patient_id, appointment.start_time.date(), lines)
        except DentalCoreError:
            self.db.rollback()
            raise

        for attempt in range(1, INVOICE_NUMBER_ATTEMPTS + 1):
            try:
                invoice = self._persist(appointment, totals)
                self.db.commit()
                break
            except IntegrityError as e:
                self.db.rollback()
                winner = self.repo.get_invoice_by_appointment(self.db, appointment_id)
                if winner:
                    logger.info(f"ℹ️ Concurrent finalize for {appointment_id}, returning invoice {winner.id}")
                    return winner, False
                logger.warning(
                    f"⚠️ Invoice number collision for appointment {appointment_id} "
                    f"(attempt {attempt}/{INVOICE_NUMBER_ATTEMPTS}): {e.orig}"
                )
                if attempt == INVOICE_NUMBER_ATTEMPTS:
                    raise ConflictError(
                        "Invoice number already taken, retry", appointment_id=appointment_id
                    ) from e
                appointment = self.repo.get_appointment(self.db, appointment_id, for_update=True)
                if appointment is None or appointment.status in ("completed", "cancelled"):
                    self.db.rollback()
                    raise ConflictError(
                        "Appointment closed while invoicing", appointment_id=appointment_id
                    ) from e
            except SQLAlchemyError as e:
                self.db.rollback()
                if isinstance(e, OperationalError) and is_contention_error(e):
                    raise ConflictError("Concurrent update, retry", appointment_id=appointment_id) from e
                logger.error(f"❌ Failed to finalize appointment {appointment_id}: {e}")
                raise DependencyFailure("Unable to create invoice") from e

        self.db.refresh(invoice)
        logger.info(
            f"✅ Invoice {invoice.invoice_number} created for appointment {appointment_id} "
            f"(total={invoice.total_amount_cents}, patient={invoice.patient_amount_cents})"
        )
        return invoice, True

    def _persist(self, appointment, totals: BillingTotals) -> Invoice:
        now = datetime.utcnow()
        for line in totals.lines:
            self.db.add(
                TreatmentLine(
                    appointment_id=appointment.id,
                    code=line.code,
                    description=line.description,
                    quantity=line.quantity,
                    tooth_ref=line.tooth_ref,
                    tariff_cents=line.tariff_cents,
                    mutuality_cents=line.mutuality_cents,
                    patient_cents=line.patient_cents,
                    vat_cents=line.vat_cents,
                    mutuality_share_pct=line.mutuality_share_pct,
                    patient_share_pct=line.patient_share_pct,
                )
            )

        invoice = Invoice(
            invoice_number=self.repo.next_invoice_number(self.db, now),
            appointment_id=appointment.id,
            patient_id=appointment.patient_id,
            professional_id=appointment.professional_id,
            total_amount_cents=totals.total_cents,
            patient_amount_cents=totals.patient_cents,
            mutuality_amount_cents=totals.mutuality_cents,
            vat_amount_cents=totals.vat_cents,
            currency=totals.currency,
            status="draft",
            claim_status="to_be_submitted",
            notes="\n".join(totals.warnings) or None,
            due_date=now + timedelta(days=INVOICE_DUE_DAYS),
            items=[
                InvoiceItem(
                    code=line.code,
                    description=line.description,
                    quantity=line.quantity,
                    tariff_cents=line.tariff_cents,
                    mutuality_cents=line.mutuality_cents,
                    patient_cents=line.patient_cents,
                    vat_cents=line.vat_cents,
                )
                for line in totals.lines
            ],
        )
        self.db.add(invoice)
        self.db.flush()
        return invoice

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    async def issue(self, invoice_id: str) -> Invoice:
        """
        Create the payment link, notify the patient, then mark the invoice issued.

        The payment link is stored as soon as it exists and reused on retry, so
        a failed notification never opens a second checkout session. Any
        collaborator failure leaves the invoice in draft.
        """
        invoice = self._lock_draft_for_issue(invoice_id)
        if invoice.status == "issued":
            return invoice

        patient = self.repo.get_patient(self.db, invoice.patient_id)
        practice_name = self.repo.get_practice_name(self.db, invoice.professional_id)

        if invoice.patient_amount_cents > 0 and not (invoice.payment_link or invoice.payment_session_id):
            try:
                link = await self.gateway.create_payment_link(
                    invoice_id=invoice.id,
                    invoice_number=invoice.invoice_number,
                    amount_cents=invoice.patient_amount_cents,
                    customer_email=patient.email if patient else None,
                    customer_name=patient.display_name if patient else None,
                )
            except Exception as e:
                self.db.rollback()
                logger.error(f"❌ Failed to create payment link for invoice {invoice_id}: {e}")
                raise DependencyFailure("Unable to issue invoice", invoice_id=invoice_id) from e

            invoice.payment_link = link.get("url")
            invoice.payment_session_id = link.get("session_id")
            self._commit("store payment link")
            logger.info(f"🔗 Payment link stored for invoice {invoice_id}")

            invoice = self._lock_draft_for_issue(invoice_id)
            if invoice.status == "issued":
                return invoice
            patient = self.repo.get_patient(self.db, invoice.patient_id)
        elif invoice.payment_link:
            logger.info(f"ℹ️ Reusing payment link of invoice {invoice_id}")

        try:
            if patient:
                result = await notify_invoice_issued(patient, invoice, practice_name)
                if result.get("email_error"):
                    raise Exception(result["email_error"])
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to issue invoice {invoice_id}: {e}")
            raise DependencyFailure("Unable to issue invoice", invoice_id=invoice_id) from e

        invoice.status = "issued"
        invoice.issued_at = datetime.utcnow()
        self._commit("issue invoice")
        self.db.refresh(invoice)
        logger.info(f"📨 Invoice {invoice.invoice_number} issued")
        return invoice

    def _lock_draft_for_issue(self, invoice_id: str) -> Invoice:
        """Lock an invoice that may be issued; an already issued one is returned unlocked"""
        invoice = self._get_invoice(invoice_id, for_update=True)
        if invoice.status == "issued":
            self.db.rollback()
            return invoice
        if invoice.status != "draft":
            self.db.rollback()
            raise ConflictError(f"Cannot issue a {invoice.status} invoice", invoice_id=invoice_id)
        return invoice

    def mark_paid(self, invoice_id: str, payment_reference: Optional[str] = None) -> Invoice:
        """Settle an invoice; completes the appointment through the completion lock"""
        invoice = self._get_invoice(invoice_id, for_update=True)
        if invoice.status == "paid":
            self.db.rollback()
            raise AlreadyCompleted(
                "Invoice already paid", invoice_id=invoice.id, appointment_id=invoice.appointment_id
            )
        if not validate_invoice_transition(invoice.status, "paid"):
            self.db.rollback()
            raise ConflictError(f"Cannot pay a {invoice.status} invoice", invoice_id=invoice_id)

        appointment = self.repo.get_appointment(self.db, invoice.appointment_id, for_update=True)
        if appointment and appointment.status == "cancelled":
            appointment_id = appointment.id
            self.db.rollback()
            raise ConflictError(
                "Cannot pay the invoice of a cancelled appointment",
                invoice_id=invoice_id,
                appointment_id=appointment_id,
            )

        now = datetime.utcnow()
        invoice.status = "paid"
        invoice.paid_at = now
        if payment_reference:
            invoice.payment_reference = payment_reference

        payment = self.repo.get_payment_for_appointment(self.db, invoice.appointment_id)
        if payment and payment.status != "paid":
            payment.status = "paid"
            payment.paid_at = now

        if not SchedulingRepository.mark_completed(self.db, invoice.appointment_id, now):
            logger.info(f"ℹ️ Appointment {invoice.appointment_id} was already closed when invoice was paid")

        self._commit("mark invoice paid")
        self.db.refresh(invoice)
        logger.info(f"💰 Invoice {invoice.invoice_number} paid (ref={payment_reference})")
        return invoice

    def void(self, invoice_id: str) -> Invoice:
        invoice = self._get_invoice(invoice_id, for_update=True)
        if invoice.status == "void":
            self.db.rollback()
            return invoice
        if not validate_invoice_transition(invoice.status, "void"):
            self.db.rollback()
            raise ConflictError(f"Cannot void a {invoice.status} invoice", invoice_id=invoice_id)

        invoice.status = "void"
        invoice.voided_at = datetime.utcnow()
        self._commit("void invoice")
        self.db.refresh(invoice)
        logger.info(f"🗑️ Invoice {invoice.invoice_number} voided")
        return invoice

    def update_claim_status(self, invoice_id: str, claim_status: str) -> Invoice:
        """Advance the insurance claim (forward only)"""
        if claim_status not in CLAIM_STATUSES:
            raise ValidationError(
                f"Invalid claim status: {claim_status}. Allowed: {', '.join(CLAIM_STATUSES)}"
            )

        invoice = self._get_invoice(invoice_id, for_update=True)
        current = invoice.claim_status
        if current == claim_status:
            self.db.rollback()
            return invoice
        if not validate_claim_transition(current, claim_status):
            self.db.rollback()
            raise ConflictError(
                f"Cannot change claim status from {current} to {claim_status}", invoice_id=invoice_id
            )

        invoice.claim_status = claim_status
        self._commit("update claim status")
        self.db.refresh(invoice)
        logger.info(f"🏥 Invoice {invoice.invoice_number} claim: {current} → {claim_status}")
        return invoice
