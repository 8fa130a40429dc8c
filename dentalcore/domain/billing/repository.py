"""Billing repository - Database operations for tariffs, insurance and invoices"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ...models import Appointment, Business, Patient, Payment, Professional
from ...models_invoice import Invoice
from ...models_treatment import InsuranceProfile, TariffCode


class BillingRepository:
    """Repository for billing database operations"""

    @staticmethod
    def get_tariff(db: Session, code: str) -> Optional[TariffCode]:
        return db.query(TariffCode).filter(TariffCode.code == code).first()

    @staticmethod
    def list_tariffs(db: Session) -> list[TariffCode]:
        return db.query(TariffCode).order_by(TariffCode.code).all()

    @staticmethod
    def get_patient(db: Session, patient_id: str) -> Optional[Patient]:
        return db.query(Patient).filter(Patient.id == patient_id).first()

    @staticmethod
    def get_active_insurance_profiles(db: Session, patient_id: str, on_date: date) -> list[InsuranceProfile]:
        """Profiles covering a day, most recent valid_from first"""
        return (
            db.query(InsuranceProfile)
            .filter(
                InsuranceProfile.patient_id == patient_id,
                InsuranceProfile.valid_from <= on_date,
                or_(InsuranceProfile.valid_to.is_(None), InsuranceProfile.valid_to >= on_date),
            )
            .order_by(InsuranceProfile.valid_from.desc(), InsuranceProfile.created_at.desc())
            .all()
        )

    @staticmethod
    def get_appointment(db: Session, appointment_id: str, for_update: bool = False) -> Optional[Appointment]:
        query = db.query(Appointment).filter(Appointment.id == appointment_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_payment_for_appointment(db: Session, appointment_id: str) -> Optional[Payment]:
        return db.query(Payment).filter(Payment.appointment_id == appointment_id).first()

    @staticmethod
    def get_invoice(db: Session, invoice_id: str, for_update: bool = False) -> Optional[Invoice]:
        query = db.query(Invoice).filter(Invoice.id == invoice_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_invoice_by_appointment(db: Session, appointment_id: str) -> Optional[Invoice]:
        return db.query(Invoice).filter(Invoice.appointment_id == appointment_id).first()

    @staticmethod
    def next_invoice_number(db: Session, now: Optional[datetime] = None) -> str:
        """Sequential per-year number, e.g. INV-2026-00042 (the unique index rejects duplicates)"""
        year = (now or datetime.utcnow()).year
        prefix = f"INV-{year}-"
        count = db.query(func.count(Invoice.id)).filter(Invoice.invoice_number.like(f"{prefix}%")).scalar()
        return f"{prefix}{(count or 0) + 1:05d}"

    @staticmethod
    def get_practice_name(db: Session, professional_id: str) -> str:
        """Name of the professional's practice, falling back to the professional's own name"""
        business = db.query(Business).filter(Business.owner_id == professional_id).first()
        if business:
            return business.name
        professional = db.query(Professional).filter(Professional.id == professional_id).first()
        return professional.full_name if professional else "Your dental practice"
