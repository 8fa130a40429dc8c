"""
Invoice Models for Appointment Billing
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .config import DEFAULT_CURRENCY
from .database import Base
from .models import generate_public_id

INVOICE_STATUSES = ("draft", "issued", "paid", "void")
CLAIM_STATUSES = ("to_be_submitted", "submitted", "settled")


class Invoice(Base):
    """Financial summary for one completed appointment"""

    __tablename__ = "invoices"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    invoice_number = Column(String(50), unique=True, nullable=False, index=True)

    # One invoice per appointment; the unique constraint settles concurrent finalize races
    appointment_id = Column(String(36), ForeignKey("appointments.id"), unique=True, nullable=False)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    professional_id = Column(String(36), ForeignKey("professionals.id"), nullable=False)

    # Amounts in minor units (cents), sums over the invoice items
    total_amount_cents = Column(Integer, default=0, nullable=False)
    patient_amount_cents = Column(Integer, default=0, nullable=False)
    mutuality_amount_cents = Column(Integer, default=0, nullable=False)
    vat_amount_cents = Column(Integer, default=0, nullable=False)
    currency = Column(String(10), default=DEFAULT_CURRENCY)

    # Status: draft → issued → paid; draft/issued → void
    status = Column(String(20), default="draft", nullable=False, index=True)
    # Insurance claim: to_be_submitted → submitted → settled
    claim_status = Column(String(20), default="to_be_submitted", nullable=False)

    # Payment hand-off
    payment_link = Column(String(500), nullable=True)
    payment_session_id = Column(String(255), nullable=True)
    payment_reference = Column(String(255), nullable=True)

    notes = Column(Text, nullable=True)

    # Dates
    due_date = Column(DateTime, nullable=True)
    issued_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    voided_at = Column(DateTime, nullable=True)

    # Audit
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    items = relationship(
        "InvoiceItem", back_populates="invoice", cascade="all, delete-orphan", order_by="InvoiceItem.id"
    )


class InvoiceItem(Base):
    """Invoice line copied from a priced treatment line"""

    __tablename__ = "invoice_items"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(String(36), ForeignKey("invoices.id"), nullable=False, index=True)
    code = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)
    quantity = Column(Integer, default=1, nullable=False)
    tariff_cents = Column(Integer, nullable=False)
    mutuality_cents = Column(Integer, nullable=False)
    patient_cents = Column(Integer, nullable=False)
    vat_cents = Column(Integer, nullable=False)

    invoice = relationship("Invoice", back_populates="items")
