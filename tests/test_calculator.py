"""Tests for the billing calculator split and rounding rules."""

import itertools
from datetime import date
from decimal import Decimal

import pytest

from dentalcore.domain.billing.calculator import percent_of, price_appointment, price_line
from dentalcore.models_treatment import InsuranceProfile, TariffCode
from dentalcore.shared.exceptions import ValidationError


def tariff(code="CONSULT", cents=4000, vat="6", mutuality="75"):
    return TariffCode(
        code=code,
        description=code.title(),
        base_tariff_cents=cents,
        vat_rate=Decimal(vat),
        mutuality_share_pct=Decimal(mutuality),
        patient_share_pct=Decimal(100) - Decimal(mutuality),
    )


def profile(omnio=False, vip=False):
    return InsuranceProfile(patient_id="p", valid_from=date(2024, 1, 1), is_omnio=omnio, is_vip=vip)


class TestPriceLine:
    def test_regular_split(self):
        """€40.00 at 6 % VAT, 75 % mutuality: VAT 2.40, mutuality 30.00, patient 10.00."""
        line = price_line(tariff(), 1, profile())
        assert line.tariff_cents == 4000
        assert line.vat_cents == 240
        assert line.mutuality_cents == 3000
        assert line.patient_cents == 1000

    def test_no_profile_uses_tariff_split(self):
        line = price_line(tariff(), 1, None)
        assert line.mutuality_cents == 3000
        assert line.patient_cents == 1000

    @pytest.mark.parametrize("flags", [{"omnio": True}, {"vip": True}])
    def test_preferential_status_is_fully_covered(self, flags):
        line = price_line(tariff(), 1, profile(**flags))
        assert line.mutuality_cents == 4000
        assert line.patient_cents == 0
        assert line.mutuality_share_pct == Decimal(100)
        assert line.patient_share_pct == Decimal(0)

    def test_quantity_multiplies_base(self):
        line = price_line(tariff(cents=1999, vat="21", mutuality="60"), 3, None)
        assert line.tariff_cents == 5997
        assert line.vat_cents == percent_of(5997, "21")
        assert line.mutuality_cents + line.patient_cents == 5997

    @pytest.mark.parametrize("cents, pct", [(1, "50"), (3, "33.33"), (1999, "60"), (12345, "87.5"), (5, "10")])
    def test_shares_always_add_up_to_tariff(self, cents, pct):
        line = price_line(tariff(cents=cents, mutuality=pct), 1, None)
        assert line.mutuality_cents + line.patient_cents == line.tariff_cents

    def test_half_cent_rounds_up(self):
        """1 cent at 50 %: half a cent rounds up to the mutuality, patient pays nothing."""
        line = price_line(tariff(cents=1, mutuality="50"), 1, None)
        assert line.mutuality_cents == 1
        assert line.patient_cents == 0

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, True])
    def test_quantity_must_be_positive_integer(self, quantity):
        with pytest.raises(ValidationError):
            price_line(tariff(), quantity, None)


class TestPriceAppointment:
    def test_totals_are_order_independent(self):
        lines = [
            price_line(tariff("CONSULT"), 1, None),
            price_line(tariff("XRAY", cents=1999, vat="21", mutuality="60"), 2, None),
            price_line(tariff("SCALING", cents=3333, vat="0", mutuality="33.33"), 1, None),
        ]
        reference = price_appointment(lines)
        for permutation in itertools.permutations(lines):
            totals = price_appointment(permutation)
            assert totals.total_cents == reference.total_cents
            assert totals.mutuality_cents == reference.mutuality_cents
            assert totals.patient_cents == reference.patient_cents
            assert totals.vat_cents == reference.vat_cents

        assert reference.mutuality_cents + reference.patient_cents == reference.total_cents

    def test_warnings_are_carried(self):
        totals = price_appointment([price_line(tariff(), 1, None)], warnings=["no insurance"])
        assert totals.warnings == ["no insurance"]

    def test_empty_appointment(self):
        totals = price_appointment([])
        assert totals.total_cents == 0
        assert totals.lines == []
