"""Scheduling router - FastAPI endpoints for availability and appointments"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...database import get_db
from ...shared.exceptions import ValidationError
from ...shared.validators import parse_iso_date
from .availability_service import AvailabilityService
from .booking_service import BookingService
from .schemas import (
    AppointmentCreate,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatusUpdate,
    AvailabilityResponse,
    BookingResponse,
    LedgerSlotResponse,
    SlotGenerateRequest,
    SlotResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Scheduling"])


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    """Dependency injection for AvailabilityService"""
    return AvailabilityService(db)


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


def _require(value: Optional[str], name: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{name} is required")
    return value.strip()


def _parse_day(value: Optional[str]):
    try:
        return parse_iso_date(_require(value, "date"))
    except ValueError as e:
        raise ValidationError(str(e)) from e


# ============================================================================
# AVAILABILITY
# ============================================================================


@router.get("/availability", response_model=AvailabilityResponse)
async def get_availability(
    professional_id: Optional[str] = Query(None),
    service_id: Optional[str] = Query(None),
    date: Optional[str] = Query(None),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Free slots for a service on a day (advisory snapshot, booking re-validates)"""
    professional_id = _require(professional_id, "professional_id")
    service_id = _require(service_id, "service_id")
    day = _parse_day(date)

    slots = service.compute_slots(professional_id, service_id, day)
    return AvailabilityResponse(
        professional_id=professional_id,
        service_id=service_id,
        date=day,
        slots=[SlotResponse(start_time=s.start, end_time=s.end) for s in slots],
    )


# ============================================================================
# APPOINTMENTS
# ============================================================================


@router.post("/appointments", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    data: AppointmentCreate,
    service: BookingService = Depends(get_booking_service),
):
    """Book an appointment; 409 tells the client to refresh availability"""
    appointment, payment = service.book(
        patient_id=data.client_id,
        professional_id=data.professional_id,
        service_id=data.service_id,
        start_time=data.start_time,
    )
    return {"appointment": appointment, "payment": payment}


@router.get("/appointments", response_model=list[AppointmentResponse])
async def list_appointments(
    professional_id: Optional[str] = Query(None),
    patient_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    service: BookingService = Depends(get_booking_service),
):
    return service.list_appointments(professional_id, patient_id, status)


@router.get("/appointments/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: str,
    service: BookingService = Depends(get_booking_service),
):
    return service.get_appointment(appointment_id)


@router.patch("/appointments/{appointment_id}/status", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: str,
    data: AppointmentStatusUpdate,
    service: BookingService = Depends(get_booking_service),
):
    """Change appointment status (scheduled, confirmed, completed, cancelled)"""
    return service.update_status(appointment_id, data.status)


@router.post("/appointments/{appointment_id}/reschedule", response_model=AppointmentResponse)
async def reschedule_appointment(
    appointment_id: str,
    data: AppointmentReschedule,
    service: BookingService = Depends(get_booking_service),
):
    return service.reschedule(appointment_id, data.start_time)


# ============================================================================
# SLOT LEDGER
# ============================================================================


@router.get("/slots", response_model=list[LedgerSlotResponse])
async def list_slots(
    professional_id: Optional[str] = Query(None),
    date: Optional[str] = Query(None),
    service: BookingService = Depends(get_booking_service),
):
    """Materialized ledger rows for a professional's day"""
    professional_id = _require(professional_id, "professional_id")
    return service.list_ledger_slots(professional_id, _parse_day(date))


@router.post("/slots/generate", response_model=list[LedgerSlotResponse])
async def generate_slots(
    data: SlotGenerateRequest,
    service: BookingService = Depends(get_booking_service),
):
    return service.generate_daily_slots(data.professional_id, data.date)
