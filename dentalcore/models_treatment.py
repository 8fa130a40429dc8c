"""
Tariff catalog, insurance coverage and performed-treatment models
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.sql import func

from .database import Base
from .models import generate_public_id


class TariffCode(Base):
    """Billable procedure with its statutory VAT rate and default insurance split"""

    __tablename__ = "tariff_codes"
    __table_args__ = (
        CheckConstraint("mutuality_share_pct + patient_share_pct = 100", name="ck_tariff_shares_sum"),
    )

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)

    base_tariff_cents = Column(Integer, nullable=False)
    vat_rate = Column(Numeric(5, 2), default=0, nullable=False)  # Percentage
    mutuality_share_pct = Column(Numeric(5, 2), default=0, nullable=False)
    patient_share_pct = Column(Numeric(5, 2), default=100, nullable=False)

    # Validity window; null valid_to = still in force
    valid_from = Column(Date, nullable=True)
    valid_to = Column(Date, nullable=True)

    created_at = Column(DateTime, server_default=func.now())


class InsuranceProfile(Base):
    """Patient coverage by a mutuality (health-insurance fund) over a date range"""

    __tablename__ = "insurance_profiles"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    mutuality_code = Column(String(50), nullable=True)
    mutuality_name = Column(String(255), nullable=True)

    # Preferential reimbursement statuses: both force full mutuality coverage
    is_omnio = Column(Boolean, default=False, nullable=False)
    is_vip = Column(Boolean, default=False, nullable=False)

    valid_from = Column(Date, nullable=False)
    valid_to = Column(Date, nullable=True)  # Open-ended when null

    created_at = Column(DateTime, server_default=func.now())

    @property
    def has_full_coverage(self) -> bool:
        return bool(self.is_omnio or self.is_vip)


class TreatmentLine(Base):
    """One performed billing code for a completed appointment, priced at finalize time"""

    __tablename__ = "treatment_lines"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(String(36), ForeignKey("appointments.id"), nullable=False, index=True)
    code = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)
    quantity = Column(Integer, default=1, nullable=False)
    tooth_ref = Column(String(20), nullable=True)  # FDI tooth / location reference

    tariff_cents = Column(Integer, nullable=False)
    mutuality_cents = Column(Integer, nullable=False)
    patient_cents = Column(Integer, nullable=False)
    vat_cents = Column(Integer, nullable=False)
    mutuality_share_pct = Column(Numeric(5, 2), nullable=False)
    patient_share_pct = Column(Numeric(5, 2), nullable=False)

    created_at = Column(DateTime, server_default=func.now())
