"""Tariff catalog - lookup of billable codes and their validity windows"""

import logging
from datetime import date

from sqlalchemy.orm import Session

from ...models_treatment import TariffCode
from ...shared.exceptions import NotFoundError, ValidationError
from .repository import BillingRepository

logger = logging.getLogger(__name__)


def is_valid_on(tariff: TariffCode, on_date: date) -> bool:
    if tariff.valid_from and on_date < tariff.valid_from:
        return False
    if tariff.valid_to and on_date > tariff.valid_to:
        return False
    return True


class TariffCatalog:
    def __init__(self, db: Session):
        self.db = db
        self.repo = BillingRepository()

    def get(self, code: str) -> TariffCode:
        tariff = self.repo.get_tariff(self.db, code)
        if not tariff:
            raise NotFoundError(f"Unknown tariff code: {code}", code=code)
        return tariff

    def resolve(self, code: str, on_date: date) -> TariffCode:
        """
        Tariff in force on a service date.

        Raises:
            NotFoundError: unknown code
            ValidationError: code exists but is outside its validity window
        """
        tariff = self.get(code)
        if not is_valid_on(tariff, on_date):
            logger.warning(f"⚠️ Tariff {code} not valid on {on_date}")
            raise ValidationError(f"Tariff code {code} is not valid on {on_date.isoformat()}", code=code)
        return tariff

    def list(self) -> list[TariffCode]:
        return self.repo.list_tariffs(self.db)
