"""
Conflict Detector

Checks a proposed (professional, start, end) slot against, in order:
1. The professional's recurring break window
2. The professional's other non-cancelled appointments

The first match wins. This check gives callers a fast, readable answer; the
guarantee against double booking comes from the storage layer (row lock plus
the PostgreSQL exclusion constraint), see AppointmentService._commit_booking.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from .availability import AvailabilityCalendar
from .exceptions import NotFoundError, ValidationError
from .repository import SchedulingRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Conflict:
    """What blocks a slot: another client's booking, or the professional's break"""

    label: str
    appointment_id: Optional[int] = None
    is_break: bool = False
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @property
    def message(self) -> str:
        if self.is_break:
            return f"Time slot unavailable: it overlaps the {self.label[0].lower()}{self.label[1:]}."
        return f"Time slot taken! {self.label} already has an appointment at this time."


class ConflictDetector:
    def __init__(self, db: Session):
        self.db = db
        self.repo = SchedulingRepository()

    def check_conflict(
        self,
        professional_id: int,
        start: datetime,
        end: datetime,
        exclude_appointment_id: Optional[int] = None,
    ) -> Optional[Conflict]:
        """
        Return the first thing blocking [start, end) for the professional, or None.

        Touching endpoints do not conflict. Cancelled appointments and the
        excluded appointment (the one being edited) are ignored.
        """
        if end <= start:
            raise ValidationError("End time must be after start time", field="end_time")

        professional = self.repo.get_professional(self.db, professional_id)
        if not professional:
            raise NotFoundError("Professional", professional_id)

        window = AvailabilityCalendar.resolve_professional_break(professional, start.date())
        if window and window.overlaps(start, end):
            logger.debug(f"Slot {start} - {end} blocked by break of professional {professional_id}")
            return Conflict(label=window.label, is_break=True)

        existing = self.repo.find_overlapping_appointment(
            self.db, professional_id, start, end, exclude_appointment_id
        )
        if existing:
            logger.debug(
                f"Slot {start} - {end} blocked by appointment {existing.id} "
                f"of professional {professional_id}"
            )
            return Conflict(
                label=existing.client_name,
                appointment_id=existing.id,
                start_time=existing.start_time,
                end_time=existing.end_time,
            )

        return None
