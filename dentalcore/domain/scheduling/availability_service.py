"""Availability service - computes open treatment slots for a professional's day"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Professional
from ...shared.exceptions import NotFoundError, ValidationError
from .parties import resolve_bookable_party
from .repository import SchedulingRepository
from .time_calculator import (
    BusyTimeline,
    TimeWindow,
    iter_candidate_windows,
    resolve_working_window,
    slot_stride_minutes,
)

logger = logging.getLogger(__name__)


class AvailabilityService:
    """Read-only slot computation; the result is a snapshot, claims re-validate it"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SchedulingRepository()

    def get_working_window(self, professional: Professional, day: date) -> Optional[TimeWindow]:
        """Opening window for the professional on a given day, None when closed"""
        override = self.repo.get_weekday_hours(self.db, professional.id, day.weekday())
        weekday_hours = (
            (override.start_time, override.end_time, override.is_available) if override else None
        )
        try:
            return resolve_working_window(
                day,
                working_hours_start=professional.working_hours_start,
                working_hours_end=professional.working_hours_end,
                weekday_hours=weekday_hours,
            )
        except ValueError as e:
            logger.error(f"❌ Invalid working hours for professional {professional.id}: {e}")
            raise ValidationError(f"Invalid working hours configured: {e}") from e

    def compute_slots(self, professional_id: str, service_id: str, day: date) -> list[TimeWindow]:
        """
        Ordered free windows for a service on a day.

        An empty list means the day is fully booked (or closed), not an error.

        Raises:
            ValidationError: missing parameters
            NotFoundError: unknown professional/business or service
        """
        if not service_id:
            raise ValidationError("service_id is required")
        if day is None:
            raise ValidationError("date is required")

        professional = resolve_bookable_party(self.db, professional_id)
        service = self.repo.get_service(self.db, service_id)
        if not service:
            raise NotFoundError("Service not found", service_id=service_id)
        if not service.duration_minutes or service.duration_minutes <= 0:
            raise ValidationError("Service duration must be positive", service_id=service_id)

        window = self.get_working_window(professional, day)
        if window is None:
            logger.info(f"📅 Professional {professional.id} is closed on {day}")
            return []

        day_start = datetime.combine(day, datetime.min.time())
        busy = BusyTimeline(
            self.repo.get_busy_intervals(self.db, professional.id, day_start, day_start + timedelta(days=1))
        )
        stride = slot_stride_minutes(service.duration_minutes, professional.slot_cadence_minutes)

        slots = [
            candidate
            for candidate in iter_candidate_windows(window.start, window.end, service.duration_minutes, stride)
            if not busy.conflicts(candidate.start, candidate.end)
        ]

        logger.debug(
            f"📅 {len(slots)} slot(s) for professional {professional.id} on {day} "
            f"(duration={service.duration_minutes}m, stride={stride}m, busy={len(busy)})"
        )
        return slots
