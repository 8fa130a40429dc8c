"""Billing calculator - splits tariffs into mutuality and patient shares.

All arithmetic is on integer cents. Percentages are applied through Decimal
and rounded half-up once per line, so the patient share is always the
remainder and patient + mutuality equals the tariff exactly.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from ...config import DEFAULT_CURRENCY
from ...models_treatment import InsuranceProfile, TariffCode
from ...shared.exceptions import ValidationError

HUNDRED = Decimal(100)


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def percent_of(amount_cents: int, pct) -> int:
    """round_half_up(amount * pct / 100) in cents"""
    return round_half_up(Decimal(amount_cents) * Decimal(str(pct)) / HUNDRED)


@dataclass(frozen=True)
class PricedLine:
    code: str
    description: Optional[str]
    quantity: int
    tariff_cents: int
    mutuality_cents: int
    patient_cents: int
    vat_cents: int
    mutuality_share_pct: Decimal
    patient_share_pct: Decimal
    tooth_ref: Optional[str] = None


@dataclass
class BillingTotals:
    lines: list[PricedLine]
    total_cents: int = 0
    mutuality_cents: int = 0
    patient_cents: int = 0
    vat_cents: int = 0
    currency: str = DEFAULT_CURRENCY
    warnings: list[str] = field(default_factory=list)


def price_line(
    tariff: TariffCode,
    quantity: int,
    insurance_profile: Optional[InsuranceProfile],
    tooth_ref: Optional[str] = None,
) -> PricedLine:
    """
    Price one treatment line.

    Omnio/VIP coverage forces a 100/0 split; otherwise the tariff's default
    mutuality percentage applies (also when there is no profile at all).

    Raises:
        ValidationError: quantity is not a positive integer
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("quantity must be a positive integer", code=tariff.code)

    base = tariff.base_tariff_cents * quantity

    if insurance_profile is not None and insurance_profile.has_full_coverage:
        mutuality_pct = HUNDRED
    else:
        mutuality_pct = Decimal(str(tariff.mutuality_share_pct or 0))

    mutuality = percent_of(base, mutuality_pct)
    return PricedLine(
        code=tariff.code,
        description=tariff.description,
        quantity=quantity,
        tariff_cents=base,
        mutuality_cents=mutuality,
        patient_cents=base - mutuality,
        vat_cents=percent_of(base, tariff.vat_rate or 0),
        mutuality_share_pct=mutuality_pct,
        patient_share_pct=HUNDRED - mutuality_pct,
        tooth_ref=tooth_ref,
    )


def price_appointment(
    lines: Iterable[PricedLine],
    warnings: Optional[list[str]] = None,
    currency: str = DEFAULT_CURRENCY,
) -> BillingTotals:
    """Sum priced lines; integer addition makes the result order-independent"""
    totals = BillingTotals(lines=list(lines), currency=currency, warnings=list(warnings or []))
    for line in totals.lines:
        totals.total_cents += line.tariff_cents
        totals.mutuality_cents += line.mutuality_cents
        totals.patient_cents += line.patient_cents
        totals.vat_cents += line.vat_cents
    return totals
