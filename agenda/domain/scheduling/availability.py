"""
Availability Calendar

Resolves whether a unit is open on a given date and between which hours,
layering three sources of truth:
- Holidays (dated overrides, always closed)
- Weekly business hours (one row per weekday, 0 = Sunday)
- The unit's legacy default opening/closing pair, then the global default

Also exposes each professional's recurring daily break and the settings
operations that maintain weekly hours and holidays.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...config import DEFAULT_CLOSING_TIME, DEFAULT_OPENING_TIME
from ...models import Holiday, Professional, Unit
from ...shared.validators import format_time_of_day, minutes_of_day, parse_time_of_day
from .exceptions import ConflictError, NotFoundError, ValidationError
from .repository import SchedulingRepository

logger = logging.getLogger(__name__)

DAY_NAMES = [
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
]

# Week written for units that ask for a starting template
DEFAULT_WEEK = [
    {"day_of_week": 0, "is_open": False, "opening_time": None, "closing_time": None},
    {"day_of_week": 1, "is_open": True, "opening_time": time(10, 0), "closing_time": time(21, 0)},
    {"day_of_week": 2, "is_open": True, "opening_time": time(10, 0), "closing_time": time(21, 0)},
    {"day_of_week": 3, "is_open": True, "opening_time": time(10, 0), "closing_time": time(21, 0)},
    {"day_of_week": 4, "is_open": True, "opening_time": time(10, 0), "closing_time": time(21, 0)},
    {"day_of_week": 5, "is_open": True, "opening_time": time(10, 0), "closing_time": time(21, 0)},
    {"day_of_week": 6, "is_open": True, "opening_time": time(10, 0), "closing_time": time(18, 0)},
]


def day_of_week(day: date) -> int:
    """Weekday index used by business hours: 0 = Sunday ... 6 = Saturday"""
    return day.isoweekday() % 7


@dataclass(frozen=True)
class AvailabilityResult:
    is_open: bool
    opening: Optional[time] = None
    closing: Optional[time] = None
    holiday_label: Optional[str] = None

    def contains(self, start: datetime, end: datetime) -> bool:
        """True when [start, end) lies inside the opening bounds of start's day"""
        if not self.is_open or self.opening is None or self.closing is None:
            return False
        start_minutes = minutes_of_day(start.time())
        end_minutes = start_minutes + int((end - start).total_seconds() // 60)
        return minutes_of_day(self.opening) <= start_minutes and end_minutes <= minutes_of_day(
            self.closing
        )


@dataclass(frozen=True)
class BreakWindow:
    start: time
    end: time

    @property
    def label(self) -> str:
        return f"Professional break ({format_time_of_day(self.start)} - {format_time_of_day(self.end)})"

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Minute-granularity, time-of-day overlap with a half-open booking interval"""
        start_minutes = minutes_of_day(start.time())
        end_minutes = start_minutes + int((end - start).total_seconds() // 60)
        return start_minutes < minutes_of_day(self.end) and end_minutes > minutes_of_day(self.start)


@dataclass(frozen=True)
class WeekdayHours:
    day_of_week: int
    day_name: str
    is_open: bool
    opening_time: Optional[time]
    closing_time: Optional[time]
    is_default: bool = False


class AvailabilityCalendar:
    """Resolves opening hours, holidays and professional breaks for a unit"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SchedulingRepository()

    def _get_unit(self, unit_id: int) -> Unit:
        unit = self.repo.get_unit(self.db, unit_id)
        if not unit:
            raise NotFoundError("Unit", unit_id)
        return unit

    @staticmethod
    def _default_bounds(unit: Unit) -> tuple[time, time]:
        if unit.opening_time and unit.closing_time:
            return unit.opening_time, unit.closing_time
        return parse_time_of_day(DEFAULT_OPENING_TIME), parse_time_of_day(DEFAULT_CLOSING_TIME)

    def resolve(self, unit_id: int, day: date) -> AvailabilityResult:
        """
        Resolve open/closed status and bounds for a unit on a date.

        Holidays win over everything. A weekly row decides next; when no row
        covers the weekday, the default week decides whether it is open (as
        get_week_configuration reports it) and the unit's default pair, or the
        global default, gives the bounds.
        """
        unit = self._get_unit(unit_id)

        holiday = self.repo.get_holiday_by_date(self.db, unit_id, day)
        if holiday:
            return AvailabilityResult(is_open=False, holiday_label=holiday.name)

        dow = day_of_week(day)
        hour = self.repo.get_business_hour(self.db, unit_id, dow)
        if hour is None and not DEFAULT_WEEK[dow]["is_open"]:
            return AvailabilityResult(is_open=False)
        if hour is not None:
            if not hour.is_open:
                return AvailabilityResult(is_open=False)
            if hour.opening_time and hour.closing_time:
                return AvailabilityResult(
                    is_open=True, opening=hour.opening_time, closing=hour.closing_time
                )

        opening, closing = self._default_bounds(unit)
        return AvailabilityResult(is_open=True, opening=opening, closing=closing)

    @staticmethod
    def resolve_professional_break(professional: Professional, day: Optional[date] = None) -> Optional[BreakWindow]:
        """The professional's break window, when enabled and fully configured.

        The break recurs every day, so the date does not change the answer.
        """
        if (
            professional.lunch_break_enabled
            and professional.lunch_break_start
            and professional.lunch_break_end
        ):
            return BreakWindow(start=professional.lunch_break_start, end=professional.lunch_break_end)
        return None

    # ------------------------------------------------------------------
    # Weekly hours settings
    # ------------------------------------------------------------------

    def get_week_configuration(self, unit_id: int) -> list[WeekdayHours]:
        """Seven entries, stored rows first and the default week for missing days"""
        self._get_unit(unit_id)
        stored = {h.day_of_week: h for h in self.repo.get_business_hours(self.db, unit_id)}

        week = []
        for default in DEFAULT_WEEK:
            dow = default["day_of_week"]
            hour = stored.get(dow)
            if hour is not None:
                week.append(
                    WeekdayHours(
                        day_of_week=dow,
                        day_name=DAY_NAMES[dow],
                        is_open=hour.is_open,
                        opening_time=hour.opening_time,
                        closing_time=hour.closing_time,
                    )
                )
            else:
                week.append(WeekdayHours(day_name=DAY_NAMES[dow], is_default=True, **default))
        return week

    def initialize_default_hours(self, unit_id: int) -> list[WeekdayHours]:
        """Write the default week for a unit that has no weekly rows yet"""
        self._get_unit(unit_id)
        if not self.repo.get_business_hours(self.db, unit_id):
            self.repo.create_business_hours(self.db, unit_id, DEFAULT_WEEK)
            logger.info(f"✅ Default business hours created for unit {unit_id}")
        return self.get_week_configuration(unit_id)

    def update_business_hour(
        self,
        unit_id: int,
        dow: int,
        is_open: bool,
        opening_time: Optional[time] = None,
        closing_time: Optional[time] = None,
    ) -> WeekdayHours:
        """Upsert one weekday; closed days drop their bounds, open days need opening < closing"""
        self._get_unit(unit_id)
        if dow < 0 or dow > 6:
            raise ValidationError("day_of_week must be between 0 (Sunday) and 6 (Saturday)", field="day_of_week")

        if is_open:
            if opening_time is None or closing_time is None:
                raise ValidationError(
                    "Opening and closing times are required for an open day", field="opening_time"
                )
            if opening_time >= closing_time:
                raise ValidationError("Opening time must be before closing time", field="closing_time")
        else:
            opening_time = None
            closing_time = None

        hour = self.repo.upsert_business_hour(
            self.db,
            unit_id,
            dow,
            is_open=is_open,
            opening_time=opening_time,
            closing_time=closing_time,
        )
        logger.info(f"🕒 Business hours for unit {unit_id} {DAY_NAMES[dow]} set (open={is_open})")
        return WeekdayHours(
            day_of_week=hour.day_of_week,
            day_name=DAY_NAMES[hour.day_of_week],
            is_open=hour.is_open,
            opening_time=hour.opening_time,
            closing_time=hour.closing_time,
        )

    # ------------------------------------------------------------------
    # Holidays
    # ------------------------------------------------------------------

    def list_holidays(self, unit_id: int) -> list[Holiday]:
        self._get_unit(unit_id)
        return self.repo.list_holidays(self.db, unit_id)

    def add_holiday(self, unit_id: int, day: date, name: str) -> Holiday:
        self._get_unit(unit_id)
        if not name or not name.strip():
            raise ValidationError("Holiday name is required", field="name")

        if self.repo.get_holiday_by_date(self.db, unit_id, day):
            raise ConflictError("A holiday already exists on this date")

        try:
            holiday = self.repo.create_holiday(self.db, unit_id, day, name.strip())
        except IntegrityError:
            # Another request added the same date between our check and the insert
            self.db.rollback()
            raise ConflictError("A holiday already exists on this date") from None

        logger.info(f"📅 Holiday '{holiday.name}' added for unit {unit_id} on {day.isoformat()}")
        return holiday

    def remove_holiday(self, unit_id: int, holiday_id: int) -> None:
        holiday = self.repo.get_holiday(self.db, unit_id, holiday_id)
        if not holiday:
            raise NotFoundError("Holiday", holiday_id)
        self.repo.delete_holiday(self.db, holiday)
        logger.info(f"🗑️ Holiday {holiday_id} removed from unit {unit_id}")
