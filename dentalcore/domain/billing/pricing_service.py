"""Pricing service - resolves tariffs and coverage, then runs the billing calculator"""

import logging
from datetime import date
from typing import Iterable

from sqlalchemy.orm import Session

from ...config import DEFAULT_CURRENCY
from ...shared.exceptions import ValidationError
from .calculator import BillingTotals, price_appointment, price_line
from .insurance_resolver import InsuranceResolver
from .tariff_catalog import TariffCatalog

logger = logging.getLogger(__name__)


class PricingService:
    def __init__(self, db: Session):
        self.db = db
        self.catalog = TariffCatalog(db)
        self.insurance = InsuranceResolver(db)

    def price(self, patient_id: str, service_date: date, lines: Iterable) -> BillingTotals:
        """
        Price treatment lines for a patient on a service date.

        ``lines`` are objects with ``code``, ``quantity`` and ``tooth_ref``.
        Nothing is persisted.
        """
        lines = list(lines)
        if not lines:
            raise ValidationError("At least one treatment line is required")

        profile, warnings = self.insurance.resolve(patient_id, service_date)
        priced = [
            price_line(
                self.catalog.resolve(line.code, service_date),
                line.quantity,
                profile,
                tooth_ref=getattr(line, "tooth_ref", None),
            )
            for line in lines
        ]
        totals = price_appointment(priced, warnings=warnings, currency=DEFAULT_CURRENCY)

        logger.info(
            f"🧾 Priced {len(priced)} line(s) for patient {patient_id}: total={totals.total_cents} "
            f"mutuality={totals.mutuality_cents} patient={totals.patient_cents} vat={totals.vat_cents}"
        )
        return totals

    def quote(self, patient_id: str, service_date: date, lines: Iterable) -> BillingTotals:
        """Completion preview: same pricing as finalize, without writing anything"""
        return self.price(patient_id, service_date, lines)
