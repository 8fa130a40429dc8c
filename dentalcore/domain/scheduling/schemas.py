"""Scheduling domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import parse_iso_date, parse_iso_datetime


class SlotResponse(BaseModel):
    """A bookable window offered by the availability calculator"""

    start_time: datetime
    end_time: datetime


class AvailabilityResponse(BaseModel):
    professional_id: str
    service_id: str
    date: date
    slots: list[SlotResponse]


class AppointmentCreate(BaseModel):
    """Schema for booking an appointment"""

    client_id: str  # Patient
    professional_id: str  # Professional id, or a business id resolved to its owner
    service_id: str
    start_time: datetime

    @field_validator("client_id", "professional_id", "service_id")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("start_time", mode="before")
    @classmethod
    def validate_start_time(cls, v):
        if isinstance(v, datetime):
            return parse_iso_datetime(v.isoformat())
        return parse_iso_datetime(v)


class AppointmentStatusUpdate(BaseModel):
    """Schema for changing appointment status"""

    status: str


class AppointmentReschedule(BaseModel):
    start_time: datetime

    @field_validator("start_time", mode="before")
    @classmethod
    def validate_start_time(cls, v):
        if isinstance(v, datetime):
            return parse_iso_datetime(v.isoformat())
        return parse_iso_datetime(v)


class AppointmentResponse(BaseModel):
    """Schema for appointment response"""

    id: str
    professional_id: str
    patient_id: str
    service_id: str
    start_time: datetime
    end_time: datetime
    status: str
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PaymentResponse(BaseModel):
    id: str
    appointment_id: str
    payer_id: str
    amount_cents: int
    currency: Optional[str] = None
    method: Optional[str] = None
    status: str

    class Config:
        from_attributes = True


class BookingResponse(BaseModel):
    """Schema for a successful booking: the appointment and its pending payment"""

    appointment: AppointmentResponse
    payment: PaymentResponse


class SlotGenerateRequest(BaseModel):
    """Schema for materializing a day of ledger slots"""

    professional_id: str
    date: date

    @field_validator("date", mode="before")
    @classmethod
    def validate_date(cls, v):
        if isinstance(v, date):
            return v
        return parse_iso_date(v)


class LedgerSlotResponse(BaseModel):
    id: int
    professional_id: str
    slot_date: date
    slot_time: str
    is_available: bool
    appointment_id: Optional[str] = None
    claimed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
