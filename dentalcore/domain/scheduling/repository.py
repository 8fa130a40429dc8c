"""Scheduling repository - Database operations for appointments and calendars"""

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from ...models import (
    Appointment,
    Business,
    Patient,
    Payment,
    Professional,
    ProfessionalAvailability,
    Service,
)
from ...models_invoice import Invoice


def overlap_clause(start: datetime, end: datetime):
    """SQL form of the three-way overlap test against Appointment rows"""
    return or_(
        and_(Appointment.start_time <= start, Appointment.end_time > start),
        and_(Appointment.start_time < end, Appointment.end_time >= end),
        and_(Appointment.start_time >= start, Appointment.end_time <= end),
    )


class SchedulingRepository:
    """Repository for scheduling database operations"""

    @staticmethod
    def get_professional(db: Session, professional_id: str) -> Optional[Professional]:
        """Get an active professional by ID"""
        return (
            db.query(Professional)
            .filter(Professional.id == professional_id, Professional.is_active.is_(True))
            .first()
        )

    @staticmethod
    def get_business(db: Session, business_id: str) -> Optional[Business]:
        """Get a business by ID"""
        return db.query(Business).filter(Business.id == business_id).first()

    @staticmethod
    def get_service(db: Session, service_id: str) -> Optional[Service]:
        """Get a service by ID"""
        return db.query(Service).filter(Service.id == service_id).first()

    @staticmethod
    def get_patient(db: Session, patient_id: str) -> Optional[Patient]:
        """Get a patient by ID"""
        return db.query(Patient).filter(Patient.id == patient_id).first()

    @staticmethod
    def get_weekday_hours(
        db: Session, professional_id: str, day_of_week: int
    ) -> Optional[ProfessionalAvailability]:
        """Get the weekly availability override for a weekday, if any"""
        return (
            db.query(ProfessionalAvailability)
            .filter(
                ProfessionalAvailability.professional_id == professional_id,
                ProfessionalAvailability.day_of_week == day_of_week,
            )
            .first()
        )

    @staticmethod
    def get_busy_intervals(
        db: Session, professional_id: str, window_start: datetime, window_end: datetime
    ) -> list[tuple[datetime, datetime]]:
        """Non-cancelled appointment intervals touching [window_start, window_end)"""
        rows = (
            db.query(Appointment.start_time, Appointment.end_time)
            .filter(
                Appointment.professional_id == professional_id,
                Appointment.status != "cancelled",
                Appointment.start_time < window_end,
                Appointment.end_time > window_start,
            )
            .order_by(Appointment.start_time)
            .all()
        )
        return [(row.start_time, row.end_time) for row in rows]

    @staticmethod
    def find_overlapping_appointment(
        db: Session,
        professional_id: str,
        start: datetime,
        end: datetime,
        exclude_appointment_id: Optional[str] = None,
    ) -> Optional[Appointment]:
        """First non-cancelled appointment of the professional overlapping [start, end)"""
        query = db.query(Appointment).filter(
            Appointment.professional_id == professional_id,
            Appointment.status != "cancelled",
            overlap_clause(start, end),
        )
        if exclude_appointment_id:
            query = query.filter(Appointment.id != exclude_appointment_id)
        return query.order_by(Appointment.start_time).first()

    @staticmethod
    def get_appointment(db: Session, appointment_id: str, for_update: bool = False) -> Optional[Appointment]:
        """Get an appointment by ID, optionally locking the row"""
        query = db.query(Appointment).filter(Appointment.id == appointment_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def list_appointments(
        db: Session,
        professional_id: Optional[str] = None,
        patient_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[Appointment]:
        """List appointments ordered by start time"""
        query = db.query(Appointment)

        if professional_id:
            query = query.filter(Appointment.professional_id == professional_id)
        if patient_id:
            query = query.filter(Appointment.patient_id == patient_id)
        if status:
            query = query.filter(Appointment.status == status)

        return query.order_by(Appointment.start_time.asc()).all()

    @staticmethod
    def mark_completed(db: Session, appointment_id: str, completed_at: datetime) -> bool:
        """
        Completion lock: flip status to completed only if nobody did it first.
        Returns True for the single winning writer.
        """
        updated = (
            db.query(Appointment)
            .filter(
                Appointment.id == appointment_id,
                Appointment.status.notin_(["completed", "cancelled"]),
            )
            .update(
                {Appointment.status: "completed", Appointment.completed_at: completed_at},
                synchronize_session=False,
            )
        )
        return updated == 1

    @staticmethod
    def get_payment_for_appointment(db: Session, appointment_id: str) -> Optional[Payment]:
        """Get the booking payment placeholder"""
        return db.query(Payment).filter(Payment.appointment_id == appointment_id).first()

    @staticmethod
    def void_open_invoice(db: Session, appointment_id: str, voided_at: datetime) -> int:
        """Void the appointment's draft/issued invoice, if any. Paid invoices are left alone."""
        return (
            db.query(Invoice)
            .filter(Invoice.appointment_id == appointment_id, Invoice.status.in_(["draft", "issued"]))
            .update({Invoice.status: "void", Invoice.voided_at: voided_at}, synchronize_session=False)
        )
