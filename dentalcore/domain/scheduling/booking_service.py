"""Booking service - conflict-free appointment creation and lifecycle"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import DEFAULT_PAYMENT_METHOD, DEFAULT_SLOT_CADENCE_MINUTES
from ...database import is_contention_error
from ...models import APPOINTMENT_STATUSES, Appointment, AppointmentSlot, Payment, generate_public_id
from ...services.status_automation import validate_appointment_transition
from ...shared.exceptions import (
    ConflictError,
    DependencyFailure,
    NotFoundError,
    ValidationError,
)
from ...shared.validators import format_hhmm
from .availability_service import AvailabilityService
from .parties import resolve_bookable_party
from .repository import SchedulingRepository
from .slot_ledger import SlotLedger

logger = logging.getLogger(__name__)

CONFLICT_MESSAGE = "This time is no longer available, pick another"


class BookingService:
    """Service layer composing the ledger claim, the overlap re-check and the insert"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SchedulingRepository()
        self.ledger = SlotLedger(db)

    def _abort(self, exc: Exception, action: str):
        """Roll back and translate a datastore error raised mid-transaction"""
        self.db.rollback()
        if isinstance(exc, IntegrityError) or (
            isinstance(exc, OperationalError) and is_contention_error(exc)
        ):
            logger.warning(f"⚠️ {action} lost a concurrent race: {exc}")
            raise ConflictError(CONFLICT_MESSAGE) from exc
        logger.error(f"❌ {action} failed: {exc}")
        raise DependencyFailure(f"Unable to {action}") from exc

    # ========================================================================
    # BOOKING
    # ========================================================================

    def book(
        self, patient_id: str, professional_id: str, service_id: str, start_time: datetime
    ) -> tuple[Appointment, Payment]:
        """
        Book one appointment: claim first, re-check overlap, insert, commit.

        Raises:
            NotFoundError: unknown professional/business, service or patient
            ConflictError: slot claimed or overlapping booking at commit time
            DependencyFailure: datastore failure
        """
        professional = resolve_bookable_party(self.db, professional_id)

        service = self.repo.get_service(self.db, service_id)
        if not service:
            raise NotFoundError("Service not found", service_id=service_id)
        if not service.duration_minutes or service.duration_minutes <= 0:
            raise ValidationError("Service duration must be positive", service_id=service_id)

        patient = self.repo.get_patient(self.db, patient_id)
        if not patient:
            raise NotFoundError("Patient not found", client_id=patient_id)

        end_time = start_time + timedelta(minutes=service.duration_minutes)
        appointment_id = generate_public_id()

        logger.info(
            f"📅 Booking {service.name} for patient {patient.id} with {professional.id} "
            f"{start_time.isoformat()} → {end_time.isoformat()}"
        )

        try:
            self.ledger.claim_slot(
                professional.id, start_time.date(), format_hhmm(start_time), appointment_id
            )

            overlapping = self.repo.find_overlapping_appointment(
                self.db, professional.id, start_time, end_time
            )
            if overlapping:
                logger.warning(
                    f"⚠️ Booking conflict for {professional.id} at {start_time.isoformat()}: "
                    f"overlaps appointment {overlapping.id}"
                )
                raise ConflictError(
                    "Selected time overlaps with an existing appointment",
                    conflicting_appointment_id=overlapping.id,
                )

            appointment = Appointment(
                id=appointment_id,
                professional_id=professional.id,
                patient_id=patient.id,
                service_id=service.id,
                start_time=start_time,
                end_time=end_time,
                status="confirmed",
            )
            self.db.add(appointment)
            self.db.flush()

            payment = Payment(
                appointment_id=appointment.id,
                payer_id=patient.id,
                amount_cents=service.price_cents or 0,
                currency=service.currency,
                method=DEFAULT_PAYMENT_METHOD,
                status="pending",
            )
            self.db.add(payment)
            self.db.commit()
        except ConflictError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self._abort(e, "create appointment")

        self.db.refresh(appointment)
        self.db.refresh(payment)
        logger.info(f"✅ Appointment {appointment.id} booked (payment {payment.id} pending)")
        return appointment, payment

    # ========================================================================
    # READS
    # ========================================================================

    def get_appointment(self, appointment_id: str) -> Appointment:
        appointment = self.repo.get_appointment(self.db, appointment_id)
        if not appointment:
            raise NotFoundError("Appointment not found", appointment_id=appointment_id)
        return appointment

    def list_appointments(
        self,
        professional_id: Optional[str] = None,
        patient_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[Appointment]:
        if status and status not in APPOINTMENT_STATUSES:
            raise ValidationError(f"Invalid status: {status}")
        return self.repo.list_appointments(self.db, professional_id, patient_id, status)

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    def update_status(self, appointment_id: str, status: str) -> Appointment:
        """
        Apply a status transition.

        Completion goes through the completion lock (first writer wins, later
        calls see the completed appointment). Cancellation releases the ledger
        slot and the pending payment placeholder, and voids an open invoice.
        """
        if status not in APPOINTMENT_STATUSES:
            raise ValidationError(
                f"Invalid status: {status}. Allowed: {', '.join(APPOINTMENT_STATUSES)}"
            )

        appointment = self.repo.get_appointment(self.db, appointment_id, for_update=True)
        if not appointment:
            raise NotFoundError("Appointment not found", appointment_id=appointment_id)

        current = appointment.status
        if current == status:
            self.db.rollback()
            return appointment

        if not validate_appointment_transition(current, status):
            self.db.rollback()
            raise ConflictError(
                f"Cannot change appointment status from {current} to {status}",
                appointment_id=appointment_id,
            )

        now = datetime.utcnow()
        try:
            if status == "completed":
                if not self.repo.mark_completed(self.db, appointment_id, now):
                    logger.info(f"ℹ️ Appointment {appointment_id} already completed by another request")
            elif status == "cancelled":
                appointment.status = "cancelled"
                appointment.cancelled_at = now
                self.ledger.release_slot(appointment_id)
                payment = self.repo.get_payment_for_appointment(self.db, appointment_id)
                if payment and payment.status == "pending":
                    payment.status = "cancelled"
                if self.repo.void_open_invoice(self.db, appointment_id, now):
                    logger.info(f"🗑️ Open invoice of appointment {appointment_id} voided on cancellation")
            else:
                appointment.status = status
            self.db.commit()
        except SQLAlchemyError as e:
            self._abort(e, "update appointment status")

        self.db.refresh(appointment)
        logger.info(f"✅ Appointment {appointment_id} transitioned: {current} → {appointment.status}")
        return appointment

    def reschedule(self, appointment_id: str, new_start_time: datetime) -> Appointment:
        """Move an appointment under the same claim-first and overlap guards as booking"""
        appointment = self.repo.get_appointment(self.db, appointment_id, for_update=True)
        if not appointment:
            raise NotFoundError("Appointment not found", appointment_id=appointment_id)
        if appointment.status in ("completed", "cancelled"):
            self.db.rollback()
            raise ConflictError(
                f"Cannot reschedule a {appointment.status} appointment", appointment_id=appointment_id
            )
        if new_start_time == appointment.start_time:
            self.db.rollback()
            return appointment

        duration = appointment.end_time - appointment.start_time
        new_end_time = new_start_time + duration
        new_key = (new_start_time.date(), format_hhmm(new_start_time))

        try:
            self.ledger.claim_slot(appointment.professional_id, new_key[0], new_key[1], appointment.id)

            overlapping = self.repo.find_overlapping_appointment(
                self.db,
                appointment.professional_id,
                new_start_time,
                new_end_time,
                exclude_appointment_id=appointment.id,
            )
            if overlapping:
                raise ConflictError(
                    "Selected time overlaps with an existing appointment",
                    conflicting_appointment_id=overlapping.id,
                )

            self.ledger.release_slot(appointment.id, keep=new_key)
            previous_start = appointment.start_time
            appointment.start_time = new_start_time
            appointment.end_time = new_end_time
            self.db.commit()
        except ConflictError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self._abort(e, "reschedule appointment")

        self.db.refresh(appointment)
        logger.info(
            f"✅ Appointment {appointment_id} rescheduled: {previous_start.isoformat()} → "
            f"{new_start_time.isoformat()}"
        )
        return appointment

    # ========================================================================
    # LEDGER MAINTENANCE
    # ========================================================================

    def generate_daily_slots(self, professional_id: str, day: date) -> list[AppointmentSlot]:
        """Materialize the day's ledger rows from the working window (idempotent)"""
        professional = resolve_bookable_party(self.db, professional_id)
        window = AvailabilityService(self.db).get_working_window(professional, day)
        if window is None:
            return []

        cadence = professional.slot_cadence_minutes or DEFAULT_SLOT_CADENCE_MINUTES
        try:
            created = self.ledger.generate_daily_slots(professional.id, window.start, window.end, cadence)
            self.db.commit()
        except SQLAlchemyError as e:
            # A concurrent generator inserting the same keys is harmless: retry reads what it wrote
            self.db.rollback()
            if isinstance(e, IntegrityError):
                logger.info(f"ℹ️ Slots for {professional.id} on {day} generated concurrently")
                return self.ledger.list_slots(professional.id, day)
            logger.error(f"❌ Slot generation failed for {professional.id} on {day}: {e}")
            raise DependencyFailure("Unable to generate slots") from e

        logger.info(f"📅 Generated {created} slot(s) for {professional.id} on {day}")
        return self.ledger.list_slots(professional.id, day)

    def list_ledger_slots(self, professional_id: str, day: date) -> list[AppointmentSlot]:
        professional = resolve_bookable_party(self.db, professional_id)
        return self.ledger.list_slots(professional.id, day)
