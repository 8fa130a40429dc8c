"""Billing domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import parse_iso_date


class TreatmentLineInput(BaseModel):
    """One performed billing code"""

    code: str
    quantity: int = 1
    tooth_ref: Optional[str] = None

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("code is required")
        return v.strip()


class FinalizeRequest(BaseModel):
    lines: list[TreatmentLineInput]


class QuoteRequest(BaseModel):
    """Schema for a completion preview"""

    patient_id: str
    service_date: date
    lines: list[TreatmentLineInput]

    @field_validator("service_date", mode="before")
    @classmethod
    def validate_service_date(cls, v):
        if isinstance(v, date):
            return v
        return parse_iso_date(v)


class PricedLineResponse(BaseModel):
    code: str
    description: Optional[str] = None
    quantity: int
    tooth_ref: Optional[str] = None
    tariff_cents: int
    mutuality_cents: int
    patient_cents: int
    vat_cents: int
    mutuality_share_pct: Decimal
    patient_share_pct: Decimal

    class Config:
        from_attributes = True


class QuoteResponse(BaseModel):
    lines: list[PricedLineResponse]
    total_cents: int
    mutuality_cents: int
    patient_cents: int
    vat_cents: int
    currency: str
    warnings: list[str] = []

    class Config:
        from_attributes = True


class InvoiceItemResponse(BaseModel):
    code: str
    description: Optional[str] = None
    quantity: int
    tariff_cents: int
    mutuality_cents: int
    patient_cents: int
    vat_cents: int

    class Config:
        from_attributes = True


class InvoiceResponse(BaseModel):
    """Schema for invoice response"""

    id: str
    invoice_number: str
    appointment_id: str
    patient_id: str
    professional_id: str
    total_amount_cents: int
    patient_amount_cents: int
    mutuality_amount_cents: int
    vat_amount_cents: int
    currency: Optional[str] = None
    status: str
    claim_status: str
    payment_link: Optional[str] = None
    payment_reference: Optional[str] = None
    notes: Optional[str] = None
    due_date: Optional[datetime] = None
    issued_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    voided_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    items: list[InvoiceItemResponse] = []

    class Config:
        from_attributes = True


class MarkPaidRequest(BaseModel):
    payment_reference: Optional[str] = None


class ClaimStatusUpdate(BaseModel):
    claim_status: str


class TariffResponse(BaseModel):
    code: str
    description: Optional[str] = None
    base_tariff_cents: int
    vat_rate: Decimal
    mutuality_share_pct: Decimal
    patient_share_pct: Decimal
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None

    class Config:
        from_attributes = True


class InsuranceProfileResponse(BaseModel):
    id: str
    patient_id: str
    mutuality_code: Optional[str] = None
    mutuality_name: Optional[str] = None
    is_omnio: bool
    is_vip: bool
    valid_from: date
    valid_to: Optional[date] = None

    class Config:
        from_attributes = True


class InsuranceLookupResponse(BaseModel):
    patient_id: str
    date: date
    profile: Optional[InsuranceProfileResponse] = None
    warnings: list[str] = []
