"""Slot reservation ledger - the atomic commit point for concurrent bookings.

A ledger row keyed by (professional_id, slot_date, slot_time) is claimed with a
single conditional UPDATE guarded by ``is_available = true``. When no row exists
yet the claim inserts one already taken and the unique constraint on the key
decides between concurrent inserters. None of the methods commit: the caller
owns the transaction, so a claim and the appointment insert land together or
not at all.
"""

import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import AppointmentSlot
from ...shared.exceptions import AlreadyClaimedError
from .time_calculator import iter_candidate_windows

logger = logging.getLogger(__name__)


class SlotLedger:
    """Claims and releases ledger slots inside the caller's transaction"""

    def __init__(self, db: Session):
        self.db = db

    def _key_filter(self, professional_id: str, slot_date: date, slot_time: str):
        return (
            AppointmentSlot.professional_id == professional_id,
            AppointmentSlot.slot_date == slot_date,
            AppointmentSlot.slot_time == slot_time,
        )

    def claim_slot(
        self, professional_id: str, slot_date: date, slot_time: str, appointment_id: str
    ) -> None:
        """
        Claim one slot for one appointment.

        Raises:
            AlreadyClaimedError: another appointment holds the slot
        """
        now = datetime.utcnow()
        claimed = (
            self.db.query(AppointmentSlot)
            .filter(*self._key_filter(professional_id, slot_date, slot_time))
            .filter(AppointmentSlot.is_available.is_(True))
            .update(
                {
                    AppointmentSlot.is_available: False,
                    AppointmentSlot.appointment_id: appointment_id,
                    AppointmentSlot.claimed_at: now,
                },
                synchronize_session=False,
            )
        )
        if claimed == 1:
            logger.info(f"🔒 Slot claimed: {professional_id} {slot_date} {slot_time} → {appointment_id}")
            return

        existing = (
            self.db.query(AppointmentSlot.id)
            .filter(*self._key_filter(professional_id, slot_date, slot_time))
            .first()
        )
        if existing:
            logger.warning(f"⚠️ Slot already claimed: {professional_id} {slot_date} {slot_time}")
            raise AlreadyClaimedError(
                "This time is no longer available, pick another",
                professional_id=professional_id,
                slot_date=slot_date.isoformat(),
                slot_time=slot_time,
            )

        # Slot was never materialized: insert it already claimed
        self.db.add(
            AppointmentSlot(
                professional_id=professional_id,
                slot_date=slot_date,
                slot_time=slot_time,
                is_available=False,
                appointment_id=appointment_id,
                claimed_at=now,
            )
        )
        try:
            self.db.flush()
        except IntegrityError as e:
            logger.warning(
                f"⚠️ Lost insert race for slot {professional_id} {slot_date} {slot_time}: {e.orig}"
            )
            raise AlreadyClaimedError(
                "This time is no longer available, pick another",
                professional_id=professional_id,
                slot_date=slot_date.isoformat(),
                slot_time=slot_time,
            ) from e
        logger.info(f"🔒 Slot created and claimed: {professional_id} {slot_date} {slot_time} → {appointment_id}")

    def release_slot(self, appointment_id: str, keep: Optional[tuple[date, str]] = None) -> int:
        """
        Free every ledger row held by an appointment.

        Args:
            appointment_id: Appointment whose claims are released
            keep: Optional (slot_date, slot_time) to leave claimed (used by reschedule)

        Returns:
            Number of rows released
        """
        query = self.db.query(AppointmentSlot).filter(AppointmentSlot.appointment_id == appointment_id)
        if keep is not None:
            keep_date, keep_time = keep
            query = query.filter(
                ~((AppointmentSlot.slot_date == keep_date) & (AppointmentSlot.slot_time == keep_time))
            )
        released = query.update(
            {
                AppointmentSlot.is_available: True,
                AppointmentSlot.appointment_id: None,
                AppointmentSlot.claimed_at: None,
            },
            synchronize_session=False,
        )
        if released:
            logger.info(f"🔓 Released {released} slot(s) held by appointment {appointment_id}")
        return released

    def generate_daily_slots(
        self, professional_id: str, open_at: datetime, close_at: datetime, cadence_minutes: int
    ) -> int:
        """
        Materialize ledger rows for one day at the given cadence.
        Existing rows (claimed or not) are left untouched. Returns rows created.
        """
        slot_date = open_at.date()
        existing = {
            row.slot_time
            for row in self.db.query(AppointmentSlot.slot_time).filter(
                AppointmentSlot.professional_id == professional_id,
                AppointmentSlot.slot_date == slot_date,
            )
        }

        created = 0
        for window in iter_candidate_windows(open_at, close_at, cadence_minutes, cadence_minutes):
            slot_time = window.start.strftime("%H:%M")
            if slot_time in existing:
                continue
            self.db.add(
                AppointmentSlot(
                    professional_id=professional_id,
                    slot_date=slot_date,
                    slot_time=slot_time,
                    is_available=True,
                )
            )
            created += 1

        self.db.flush()
        return created

    def list_slots(self, professional_id: str, slot_date: date) -> list[AppointmentSlot]:
        """Ledger rows for a professional's day, in time order"""
        return (
            self.db.query(AppointmentSlot)
            .filter(
                AppointmentSlot.professional_id == professional_id,
                AppointmentSlot.slot_date == slot_date,
            )
            .order_by(AppointmentSlot.slot_time)
            .all()
        )
