from datetime import date, time

import pytest

from agenda.domain.scheduling.availability import AvailabilityCalendar, day_of_week
from agenda.domain.scheduling.exceptions import ConflictError, NotFoundError, ValidationError
from agenda.models import Unit

MONDAY = date(2026, 10, 19)
SUNDAY = date(2026, 10, 18)


@pytest.fixture
def calendar(db):
    return AvailabilityCalendar(db)


def test_day_of_week_starts_on_sunday():
    assert day_of_week(SUNDAY) == 0
    assert day_of_week(MONDAY) == 1
    assert day_of_week(date(2026, 10, 24)) == 6


def test_holiday_overrides_weekly_hours(calendar, unit):
    calendar.update_business_hour(unit.id, 1, True, time(9, 0), time(18, 0))
    calendar.add_holiday(unit.id, MONDAY, "Founders Day")

    result = calendar.resolve(unit.id, MONDAY)

    assert result.is_open is False
    assert result.holiday_label == "Founders Day"
    assert result.opening is None
    assert result.closing is None


def test_weekly_row_decides_when_no_holiday(calendar, unit):
    calendar.update_business_hour(unit.id, 1, True, time(9, 0), time(18, 0))

    result = calendar.resolve(unit.id, MONDAY)

    assert result.is_open is True
    assert (result.opening, result.closing) == (time(9, 0), time(18, 0))
    assert result.holiday_label is None


def test_closed_weekday(calendar, unit):
    calendar.update_business_hour(unit.id, 0, False)

    result = calendar.resolve(unit.id, SUNDAY)

    assert result.is_open is False
    assert result.holiday_label is None


def test_missing_weekday_falls_back_to_unit_default(db, calendar):
    unit = Unit(name="Uptown", opening_time=time(8, 0), closing_time=time(16, 0))
    db.add(unit)
    db.commit()

    result = calendar.resolve(unit.id, MONDAY)

    assert result.is_open is True
    assert (result.opening, result.closing) == (time(8, 0), time(16, 0))


def test_missing_weekday_without_unit_default_uses_global_default(calendar, unit):
    result = calendar.resolve(unit.id, MONDAY)

    assert result.is_open is True
    assert (result.opening, result.closing) == (time(10, 0), time(21, 0))


def test_unconfigured_sunday_is_closed(db, calendar):
    unit = Unit(name="Uptown", opening_time=time(8, 0), closing_time=time(16, 0))
    db.add(unit)
    db.commit()

    result = calendar.resolve(unit.id, SUNDAY)

    assert result.is_open is False
    assert result.holiday_label is None


def test_resolve_agrees_with_week_configuration(calendar, unit):
    calendar.update_business_hour(unit.id, 3, False)
    week = calendar.get_week_configuration(unit.id)

    for offset in range(7):
        day = date(2026, 10, 18 + offset)
        assert calendar.resolve(unit.id, day).is_open == week[day_of_week(day)].is_open


def test_resolve_unknown_unit(calendar):
    with pytest.raises(NotFoundError):
        calendar.resolve(404, MONDAY)


def test_break_window_requires_flag_and_bounds(professional, professional_with_break):
    assert AvailabilityCalendar.resolve_professional_break(professional) is None

    window = AvailabilityCalendar.resolve_professional_break(professional_with_break, MONDAY)
    assert (window.start, window.end) == (time(12, 0), time(13, 0))
    assert window.label == "Professional break (12:00 - 13:00)"


def test_disabled_break_is_ignored(db, professional_with_break):
    professional_with_break.lunch_break_enabled = False
    db.commit()

    assert AvailabilityCalendar.resolve_professional_break(professional_with_break) is None


def test_week_configuration_fills_missing_days_with_defaults(calendar, unit):
    calendar.update_business_hour(unit.id, 3, True, time(11, 0), time(19, 0))

    week = calendar.get_week_configuration(unit.id)

    assert [d.day_of_week for d in week] == list(range(7))
    assert week[3].is_default is False
    assert (week[3].opening_time, week[3].closing_time) == (time(11, 0), time(19, 0))
    assert week[0].is_default is True
    assert week[0].is_open is False
    assert week[6].closing_time == time(18, 0)


def test_initialize_default_hours_only_once(calendar, unit):
    calendar.update_business_hour(unit.id, 1, True, time(9, 0), time(18, 0))
    calendar.initialize_default_hours(unit.id)

    # The unit already had a row, so nothing was written
    assert calendar.resolve(unit.id, MONDAY).opening == time(9, 0)


def test_initialize_default_hours_on_empty_unit(calendar, unit):
    week = calendar.initialize_default_hours(unit.id)

    assert all(not d.is_default for d in week)
    assert calendar.resolve(unit.id, SUNDAY).is_open is False


def test_update_business_hour_validation(calendar, unit):
    with pytest.raises(ValidationError):
        calendar.update_business_hour(unit.id, 7, True, time(9, 0), time(18, 0))
    with pytest.raises(ValidationError):
        calendar.update_business_hour(unit.id, 1, True, time(18, 0), time(9, 0))
    with pytest.raises(ValidationError):
        calendar.update_business_hour(unit.id, 1, True, None, time(9, 0))


def test_closing_a_day_clears_its_bounds(calendar, unit):
    calendar.update_business_hour(unit.id, 1, True, time(9, 0), time(18, 0))

    hours = calendar.update_business_hour(unit.id, 1, False, time(9, 0), time(18, 0))

    assert hours.is_open is False
    assert hours.opening_time is None
    assert hours.closing_time is None


def test_duplicate_holiday_is_rejected(calendar, unit):
    calendar.add_holiday(unit.id, MONDAY, "Founders Day")

    with pytest.raises(ConflictError, match="already exists"):
        calendar.add_holiday(unit.id, MONDAY, "Another")


def test_remove_holiday_reopens_the_day(calendar, unit):
    holiday = calendar.add_holiday(unit.id, MONDAY, "Founders Day")

    calendar.remove_holiday(unit.id, holiday.id)

    assert calendar.resolve(unit.id, MONDAY).is_open is True
    assert calendar.list_holidays(unit.id) == []


def test_remove_holiday_of_another_unit(db, calendar, unit):
    other = Unit(name="Uptown")
    db.add(other)
    db.commit()
    holiday = calendar.add_holiday(other.id, MONDAY, "Local holiday")

    with pytest.raises(NotFoundError):
        calendar.remove_holiday(unit.id, holiday.id)
