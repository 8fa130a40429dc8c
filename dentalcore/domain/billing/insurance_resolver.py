"""Insurance profile resolver - the coverage in force for a patient on a day"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...models_treatment import InsuranceProfile
from ...shared.exceptions import NotFoundError
from .repository import BillingRepository

logger = logging.getLogger(__name__)

NO_INSURANCE_WARNING = "No active insurance profile; tariff default split applied"


class InsuranceResolver:
    def __init__(self, db: Session):
        self.db = db
        self.repo = BillingRepository()

    def resolve(self, patient_id: str, on_date: date) -> tuple[Optional[InsuranceProfile], list[str]]:
        """
        Active profile for a patient on a date, plus warnings for the caller.

        No profile is not an error: billing falls back to the tariff split.
        Overlapping profiles resolve to the latest valid_from.

        Raises:
            NotFoundError: unknown patient
        """
        if not self.repo.get_patient(self.db, patient_id):
            raise NotFoundError("Patient not found", patient_id=patient_id)

        profiles = self.repo.get_active_insurance_profiles(self.db, patient_id, on_date)
        if not profiles:
            logger.warning(f"⚠️ No active insurance profile for patient {patient_id} on {on_date}")
            return None, [NO_INSURANCE_WARNING]

        if len(profiles) > 1:
            logger.warning(
                f"⚠️ {len(profiles)} overlapping insurance profiles for patient {patient_id} on {on_date}, "
                f"using {profiles[0].id} (valid from {profiles[0].valid_from})"
            )
        return profiles[0], []
