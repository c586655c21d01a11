"""Scheduling router - FastAPI endpoints for availability, bookings and audit history

Domain errors raised by the services are translated to HTTP responses by the
exception handlers registered in agenda.main.
"""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ...auth import get_current_actor
from ...database import get_db
from . import policy
from .audit import AuditRecorder
from .availability import AvailabilityCalendar
from .schemas import (
    AppointmentCreate,
    AppointmentResponse,
    AppointmentUpdate,
    AvailabilityResponse,
    BusinessHourUpdate,
    CancellationHistoryResponse,
    CancellationPolicyResponse,
    CancellationPolicyUpdate,
    CancellationRecordResponse,
    CancellationSummaryResponse,
    ConflictResponse,
    DeletionHistoryResponse,
    DeletionRecordResponse,
    DeletionSummaryResponse,
    HolidayCreate,
    HolidayResponse,
    QuickServiceCreate,
    StatusTransition,
    WeekdayHoursResponse,
)
from .service import AppointmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scheduling", tags=["Scheduling"])


def get_appointment_service(db: Session = Depends(get_db)) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(db)


def get_calendar(db: Session = Depends(get_db)) -> AvailabilityCalendar:
    return AvailabilityCalendar(db)


def get_audit_recorder(db: Session = Depends(get_db)) -> AuditRecorder:
    return AuditRecorder(db)


# ============================================================================
# AVAILABILITY
# ============================================================================


@router.get("/units/{unit_id}/availability", response_model=AvailabilityResponse)
def get_availability(
    unit_id: int,
    day: date = Query(..., alias="date"),
    calendar: AvailabilityCalendar = Depends(get_calendar),
):
    """Open/closed status and opening bounds for a unit on a date"""
    result = calendar.resolve(unit_id, day)
    return AvailabilityResponse(
        date=day,
        is_open=result.is_open,
        opening=result.opening,
        closing=result.closing,
        holiday_label=result.holiday_label,
    )


@router.get("/units/{unit_id}/business-hours", response_model=list[WeekdayHoursResponse])
def get_business_hours(unit_id: int, calendar: AvailabilityCalendar = Depends(get_calendar)):
    """Week configuration, with defaults for days the unit never configured"""
    return calendar.get_week_configuration(unit_id)


@router.post("/units/{unit_id}/business-hours/defaults", response_model=list[WeekdayHoursResponse])
def initialize_business_hours(unit_id: int, calendar: AvailabilityCalendar = Depends(get_calendar)):
    return calendar.initialize_default_hours(unit_id)


@router.put("/units/{unit_id}/business-hours/{day_of_week}", response_model=WeekdayHoursResponse)
def update_business_hour(
    unit_id: int,
    day_of_week: int,
    data: BusinessHourUpdate,
    calendar: AvailabilityCalendar = Depends(get_calendar),
):
    return calendar.update_business_hour(
        unit_id, day_of_week, data.is_open, data.opening_time, data.closing_time
    )


@router.get("/units/{unit_id}/holidays", response_model=list[HolidayResponse])
def list_holidays(unit_id: int, calendar: AvailabilityCalendar = Depends(get_calendar)):
    return calendar.list_holidays(unit_id)


@router.post("/units/{unit_id}/holidays", response_model=HolidayResponse, status_code=201)
def add_holiday(
    unit_id: int,
    data: HolidayCreate,
    calendar: AvailabilityCalendar = Depends(get_calendar),
):
    return calendar.add_holiday(unit_id, data.date, data.name)


@router.delete("/units/{unit_id}/holidays/{holiday_id}", status_code=204)
def remove_holiday(
    unit_id: int,
    holiday_id: int,
    calendar: AvailabilityCalendar = Depends(get_calendar),
):
    calendar.remove_holiday(unit_id, holiday_id)
    return Response(status_code=204)


@router.get("/conflicts", response_model=ConflictResponse)
def check_conflict(
    professional_id: int,
    start: datetime,
    end: datetime,
    exclude_id: Optional[int] = None,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Pre-validate a slot before submitting a booking"""
    conflict = service.check_conflict(
        professional_id, start.replace(tzinfo=None), end.replace(tzinfo=None), exclude_id
    )
    if not conflict:
        return ConflictResponse(has_conflict=False)
    return ConflictResponse(
        has_conflict=True,
        message=conflict.message,
        label=conflict.label,
        appointment_id=conflict.appointment_id,
        is_break=conflict.is_break,
    )


# ============================================================================
# CANCELLATION POLICY
# ============================================================================


@router.get("/units/{unit_id}/cancellation-policy", response_model=CancellationPolicyResponse)
def get_cancellation_policy(unit_id: int, db: Session = Depends(get_db)):
    return policy.get_policy(db, unit_id)


@router.put("/units/{unit_id}/cancellation-policy", response_model=CancellationPolicyResponse)
def update_cancellation_policy(
    unit_id: int,
    data: CancellationPolicyUpdate,
    db: Session = Depends(get_db),
):
    return policy.update_policy(
        db,
        unit_id,
        grace_period_minutes=data.grace_period_minutes,
        late_cancellation_fee_percent=data.late_cancellation_fee_percent,
        no_show_fee_percent=data.no_show_fee_percent,
    )


# ============================================================================
# APPOINTMENTS
# ============================================================================


@router.get("/units/{unit_id}/appointments", response_model=list[AppointmentResponse])
def list_appointments(
    unit_id: int,
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    professional_id: Optional[int] = Query(None),
    service: AppointmentService = Depends(get_appointment_service),
):
    """All appointments of a unit in a range, cancelled ones included"""
    return service.list_appointments(
        unit_id,
        start.replace(tzinfo=None) if start else None,
        end.replace(tzinfo=None) if end else None,
        professional_id,
    )


@router.post("/units/{unit_id}/appointments", response_model=AppointmentResponse, status_code=201)
def create_appointment(
    unit_id: int,
    data: AppointmentCreate,
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.create_appointment(unit_id, data)


@router.post("/units/{unit_id}/quick-services", response_model=AppointmentResponse, status_code=201)
def create_quick_service(
    unit_id: int,
    data: QuickServiceCreate,
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.create_quick_service(unit_id, data)


@router.get("/appointments/{appointment_id}", response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.get_appointment(appointment_id)


@router.patch("/appointments/{appointment_id}", response_model=AppointmentResponse)
def reschedule_appointment(
    appointment_id: int,
    data: AppointmentUpdate,
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.reschedule_appointment(appointment_id, data)


@router.post("/appointments/{appointment_id}/status", response_model=AppointmentResponse)
def transition_status(
    appointment_id: int,
    data: StatusTransition,
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.transition_status(
        appointment_id,
        data.status,
        is_no_show=data.is_no_show,
        payment_method=data.payment_method,
        courtesy_reason=data.courtesy_reason,
        source=data.source,
    )


@router.delete("/appointments/{appointment_id}", status_code=204)
def delete_appointment(
    appointment_id: int,
    reason: Optional[str] = Query(None, max_length=500),
    actor: str = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    service.delete_appointment(appointment_id, actor=actor, reason=reason)
    return Response(status_code=204)


# ============================================================================
# AUDIT HISTORY
# ============================================================================


@router.get("/units/{unit_id}/cancellation-history", response_model=CancellationHistoryResponse)
def get_cancellation_history(
    unit_id: int,
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    only_late: bool = Query(False),
    only_no_show: bool = Query(False),
    recorder: AuditRecorder = Depends(get_audit_recorder),
):
    records = recorder.list_cancellations(
        unit_id,
        start.replace(tzinfo=None) if start else None,
        end.replace(tzinfo=None) if end else None,
        only_late,
        only_no_show,
    )
    return CancellationHistoryResponse(
        records=[CancellationRecordResponse.model_validate(r) for r in records],
        summary=CancellationSummaryResponse.model_validate(recorder.summarize_cancellations(records)),
    )


@router.delete("/cancellation-history/{record_id}", status_code=204)
def delete_cancellation_record(
    record_id: int,
    actor: str = Depends(get_current_actor),
    recorder: AuditRecorder = Depends(get_audit_recorder),
):
    logger.info(f"Cancellation record {record_id} purge requested by {actor}")
    recorder.delete_cancellation_record(record_id)
    return Response(status_code=204)


@router.get("/units/{unit_id}/deletion-history", response_model=DeletionHistoryResponse)
def get_deletion_history(
    unit_id: int,
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    recorder: AuditRecorder = Depends(get_audit_recorder),
):
    records = recorder.list_deletions(
        unit_id,
        start.replace(tzinfo=None) if start else None,
        end.replace(tzinfo=None) if end else None,
    )
    return DeletionHistoryResponse(
        records=[DeletionRecordResponse.model_validate(r) for r in records],
        summary=DeletionSummaryResponse.model_validate(recorder.summarize_deletions(records)),
    )
