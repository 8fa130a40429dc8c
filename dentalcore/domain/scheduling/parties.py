"""Bookable party resolution"""

import logging

from sqlalchemy.orm import Session

from ...models import Professional
from ...shared.exceptions import NotFoundError, ValidationError
from .repository import SchedulingRepository

logger = logging.getLogger(__name__)


def resolve_bookable_party(db: Session, party_id: str) -> Professional:
    """
    Resolve the id a caller books against to the professional owning the calendar.

    A professional id resolves to itself; a business id resolves to the
    business owner. Anything else is NotFound, there is no fallback.
    """
    if not party_id or not str(party_id).strip():
        raise ValidationError("professional_id is required")

    professional = SchedulingRepository.get_professional(db, party_id)
    if professional:
        return professional

    business = SchedulingRepository.get_business(db, party_id)
    if business and business.owner_id:
        owner = SchedulingRepository.get_professional(db, business.owner_id)
        if owner:
            logger.info(f"🏥 Business {business.id} resolved to owning professional {owner.id}")
            return owner
        logger.warning(f"⚠️ Business {business.id} owner {business.owner_id} is missing or inactive")

    raise NotFoundError("Professional not found", professional_id=party_id)
