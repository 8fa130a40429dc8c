"""Billing router - FastAPI endpoints for pricing and invoices"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ...database import get_db
from ...shared.exceptions import ValidationError
from ...shared.validators import parse_iso_date
from .insurance_resolver import InsuranceResolver
from .invoice_service import InvoiceService
from .pricing_service import PricingService
from .schemas import (
    ClaimStatusUpdate,
    FinalizeRequest,
    InsuranceLookupResponse,
    InvoiceResponse,
    MarkPaidRequest,
    QuoteRequest,
    QuoteResponse,
    TariffResponse,
)
from .tariff_catalog import TariffCatalog

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Billing"])


def get_invoice_service(db: Session = Depends(get_db)) -> InvoiceService:
    """Dependency injection for InvoiceService"""
    return InvoiceService(db)


def get_pricing_service(db: Session = Depends(get_db)) -> PricingService:
    return PricingService(db)


# ============================================================================
# PRICING
# ============================================================================


@router.post("/billing/quote", response_model=QuoteResponse)
async def quote(
    data: QuoteRequest,
    service: PricingService = Depends(get_pricing_service),
):
    """Price treatment lines without persisting anything"""
    totals = service.quote(data.patient_id, data.service_date, data.lines)
    return QuoteResponse.model_validate(totals)


@router.get("/tariffs", response_model=list[TariffResponse])
async def list_tariffs(db: Session = Depends(get_db)):
    return TariffCatalog(db).list()


@router.get("/tariffs/{code}", response_model=TariffResponse)
async def get_tariff(code: str, db: Session = Depends(get_db)):
    return TariffCatalog(db).get(code)


@router.get("/patients/{patient_id}/insurance", response_model=InsuranceLookupResponse)
async def get_patient_insurance(
    patient_id: str,
    date: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """Insurance profile in force on a date"""
    try:
        day = parse_iso_date(date)
    except ValueError as e:
        raise ValidationError(str(e)) from e

    profile, warnings = InsuranceResolver(db).resolve(patient_id, day)
    return {"patient_id": patient_id, "date": day, "profile": profile, "warnings": warnings}


# ============================================================================
# INVOICES
# ============================================================================


@router.post(
    "/appointments/{appointment_id}/finalize",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def finalize_appointment(
    appointment_id: str,
    data: FinalizeRequest,
    response: Response,
    service: InvoiceService = Depends(get_invoice_service),
):
    """Create the appointment's invoice; 200 when an existing invoice is returned"""
    invoice, created = service.finalize(appointment_id, data.lines)
    if not created:
        response.status_code = status.HTTP_200_OK
    return invoice


@router.get("/invoices/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: str,
    service: InvoiceService = Depends(get_invoice_service),
):
    return service.get_invoice(invoice_id)


@router.post("/invoices/{invoice_id}/issue", response_model=InvoiceResponse)
async def issue_invoice(
    invoice_id: str,
    service: InvoiceService = Depends(get_invoice_service),
):
    """Send the payment request; the invoice stays draft if it cannot be delivered"""
    return await service.issue(invoice_id)


@router.post("/invoices/{invoice_id}/mark-paid", response_model=InvoiceResponse)
async def mark_invoice_paid(
    invoice_id: str,
    data: Optional[MarkPaidRequest] = None,
    service: InvoiceService = Depends(get_invoice_service),
):
    return service.mark_paid(invoice_id, data.payment_reference if data else None)


@router.post("/invoices/{invoice_id}/void", response_model=InvoiceResponse)
async def void_invoice(
    invoice_id: str,
    service: InvoiceService = Depends(get_invoice_service),
):
    return service.void(invoice_id)


@router.patch("/invoices/{invoice_id}/claim-status", response_model=InvoiceResponse)
async def update_claim_status(
    invoice_id: str,
    data: ClaimStatusUpdate,
    service: InvoiceService = Depends(get_invoice_service),
):
    return service.update_claim_status(invoice_id, data.claim_status)
