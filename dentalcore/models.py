import uuid

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .config import DEFAULT_CURRENCY
from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


APPOINTMENT_STATUSES = ("scheduled", "confirmed", "completed", "cancelled")


class Business(Base):
    """A practice (tenant). Its id is bookable and resolves to the owning professional."""

    __tablename__ = "businesses"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    name = Column(String(255), nullable=False)
    owner_id = Column(String(36), ForeignKey("professionals.id"), nullable=True, index=True)
    created_at = Column(DateTime, server_default=func.now())

    owner = relationship("Professional", back_populates="businesses")


class Professional(Base):
    """Clinician owning a calendar"""

    __tablename__ = "professionals"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)

    # Working-hours window (HH:MM, UTC); null falls back to clinic hours from config
    working_hours_start = Column(String(5), nullable=True)
    working_hours_end = Column(String(5), nullable=True)
    slot_cadence_minutes = Column(Integer, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    businesses = relationship("Business", back_populates="owner")
    weekly_availability = relationship(
        "ProfessionalAvailability", back_populates="professional", cascade="all, delete-orphan"
    )


class ProfessionalAvailability(Base):
    """Weekly opening hours; a row for a weekday replaces the default working-hours window"""

    __tablename__ = "professional_availability"
    __table_args__ = (
        UniqueConstraint("professional_id", "day_of_week", name="uq_availability_professional_day"),
    )

    id = Column(Integer, primary_key=True, index=True)
    professional_id = Column(String(36), ForeignKey("professionals.id"), nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 0 = Monday, matches date.weekday()
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=False)  # HH:MM
    is_available = Column(Boolean, default=True, nullable=False)

    professional = relationship("Professional", back_populates="weekly_availability")


class Patient(Base):
    __tablename__ = "patients"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    @property
    def display_name(self) -> str:
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or "Patient"


class Service(Base):
    """Schedulable treatment type"""

    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    professional_id = Column(String(36), ForeignKey("professionals.id"), nullable=True)
    name = Column(String(255), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    price_cents = Column(Integer, default=0, nullable=False)
    currency = Column(String(10), default=DEFAULT_CURRENCY)
    created_at = Column(DateTime, server_default=func.now())


class Appointment(Base):
    """Scheduling record. Never deleted; cancellation is a status."""

    __tablename__ = "appointments"
    __table_args__ = (Index("ix_appointments_professional_start", "professional_id", "start_time"),)

    id = Column(String(36), primary_key=True, default=generate_public_id)
    professional_id = Column(String(36), ForeignKey("professionals.id"), nullable=False)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=False)

    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)

    # Status workflow: scheduled/confirmed → completed | cancelled (both terminal)
    status = Column(String(20), default="confirmed", nullable=False, index=True)

    cancelled_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    service = relationship("Service")
    payment = relationship("Payment", back_populates="appointment", uselist=False)


class AppointmentSlot(Base):
    """Reservation ledger row; the single point where concurrent claims are decided"""

    __tablename__ = "appointment_slots"
    __table_args__ = (
        UniqueConstraint(
            "professional_id", "slot_date", "slot_time", name="uq_slot_professional_date_time"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    professional_id = Column(String(36), ForeignKey("professionals.id"), nullable=False)
    slot_date = Column(Date, nullable=False)
    slot_time = Column(String(5), nullable=False)  # HH:MM
    is_available = Column(Boolean, default=True, nullable=False)
    # Weak back-reference, no foreign key: the claim is written before the appointment row exists
    appointment_id = Column(String(36), nullable=True, index=True)
    claimed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Payment(Base):
    """Payment placeholder opened at booking time"""

    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    appointment_id = Column(String(36), ForeignKey("appointments.id"), nullable=False, index=True)
    payer_id = Column(String(36), ForeignKey("patients.id"), nullable=False)
    amount_cents = Column(Integer, default=0, nullable=False)
    currency = Column(String(10), default=DEFAULT_CURRENCY)
    method = Column(String(50), nullable=True)
    status = Column(String(20), default="pending", nullable=False)  # pending, paid, cancelled
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    appointment = relationship("Appointment", back_populates="payment")
