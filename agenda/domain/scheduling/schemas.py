"""Scheduling domain schemas - Pydantic models for validation"""

from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ...models import AppointmentStatus, CancellationSource, PaymentMethod
from ...shared.validators import validate_phone


def _wall_clock(value: Optional[datetime]) -> Optional[datetime]:
    # Appointments are stored as the unit's local wall-clock time
    if value is not None and value.tzinfo is not None:
        return value.replace(tzinfo=None)
    return value


class AppointmentCreate(BaseModel):
    """Schema for booking a new appointment"""

    professional_id: int
    service_id: int
    start_time: datetime
    client_name: str = Field(min_length=1, max_length=255)
    client_phone: Optional[str] = None
    client_birth_date: Optional[date] = None
    notes: Optional[str] = None

    @field_validator("client_name")
    @classmethod
    def validate_client_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Client name is required")
        return v

    @field_validator("client_phone")
    @classmethod
    def validate_phone(cls, v):
        return validate_phone(v)

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, v):
        return _wall_clock(v)


class AppointmentUpdate(BaseModel):
    """Schema for rescheduling or editing an appointment; status is not editable here"""

    professional_id: Optional[int] = None
    service_id: Optional[int] = None
    start_time: Optional[datetime] = None
    client_name: Optional[str] = Field(default=None, max_length=255)
    client_phone: Optional[str] = None
    client_birth_date: Optional[date] = None
    notes: Optional[str] = None

    @field_validator("client_name")
    @classmethod
    def validate_client_name(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Client name cannot be blank")
        return v.strip() if v else v

    @field_validator("client_phone")
    @classmethod
    def validate_phone(cls, v):
        return validate_phone(v)

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, v):
        return _wall_clock(v)


class QuickServiceCreate(BaseModel):
    """Walk-in service registered as already completed, or scheduled for later"""

    professional_id: int
    service_id: int
    client_name: str = Field(min_length=1, max_length=255)
    client_phone: Optional[str] = None
    client_birth_date: Optional[date] = None
    total_price: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None
    schedule_later: bool = False
    scheduled_start: Optional[datetime] = None
    payment_method: Optional[PaymentMethod] = None
    courtesy_reason: Optional[str] = Field(default=None, max_length=200)

    @field_validator("client_phone")
    @classmethod
    def validate_phone(cls, v):
        return validate_phone(v)

    @field_validator("scheduled_start")
    @classmethod
    def validate_scheduled_start(cls, v):
        return _wall_clock(v)

    @model_validator(mode="after")
    def check_schedule(self):
        if self.schedule_later and self.scheduled_start is None:
            raise ValueError("scheduled_start is required when schedule_later is set")
        if not self.schedule_later:
            # Walk-ins are stored as completed, which always carries a payment method
            if self.payment_method is None:
                raise ValueError("payment_method is required for a walk-in service")
            if self.payment_method == PaymentMethod.COURTESY and not (self.courtesy_reason or "").strip():
                raise ValueError("A reason is required for courtesy services")
        return self


class StatusTransition(BaseModel):
    status: AppointmentStatus
    is_no_show: bool = False
    payment_method: Optional[PaymentMethod] = None
    courtesy_reason: Optional[str] = Field(default=None, max_length=200)
    source: CancellationSource = CancellationSource.MANUAL


class CancellationDetailResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    is_no_show: bool
    source: str


class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    unit_id: int
    professional_id: Optional[int]
    service_id: Optional[int]
    client_name: str
    client_phone: Optional[str]
    client_birth_date: Optional[date]
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus
    total_price: float
    payment_method: Optional[str]
    notes: Optional[str]
    cancellation_detail: Optional[CancellationDetailResponse] = None
    created_at: Optional[datetime] = None


class ConflictResponse(BaseModel):
    has_conflict: bool
    message: Optional[str] = None
    label: Optional[str] = None
    appointment_id: Optional[int] = None
    is_break: bool = False


class AvailabilityResponse(BaseModel):
    date: date
    is_open: bool
    opening: Optional[time] = None
    closing: Optional[time] = None
    holiday_label: Optional[str] = None


class BusinessHourUpdate(BaseModel):
    is_open: bool
    opening_time: Optional[time] = None
    closing_time: Optional[time] = None

    @model_validator(mode="after")
    def check_bounds(self):
        if self.is_open:
            if self.opening_time is None or self.closing_time is None:
                raise ValueError("Opening and closing times are required for an open day")
            if self.opening_time >= self.closing_time:
                raise ValueError("Opening time must be before closing time")
        return self


class WeekdayHoursResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day_of_week: int
    day_name: str
    is_open: bool
    opening_time: Optional[time]
    closing_time: Optional[time]
    is_default: bool = False


class HolidayCreate(BaseModel):
    date: date
    name: str = Field(min_length=1, max_length=255)


class HolidayResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    date: date
    name: str


class CancellationPolicyUpdate(BaseModel):
    grace_period_minutes: Optional[int] = Field(default=None, ge=0)
    late_cancellation_fee_percent: Optional[int] = Field(default=None, ge=0, le=100)
    no_show_fee_percent: Optional[int] = Field(default=None, ge=0, le=100)


class CancellationPolicyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    grace_period_minutes: int
    late_cancellation_fee_percent: int
    no_show_fee_percent: int


class CancellationRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    appointment_id: Optional[int]
    client_name: str
    client_phone: Optional[str]
    professional_name: str
    service_name: str
    scheduled_time: datetime
    cancelled_at: datetime
    minutes_before: int
    is_late_cancellation: bool
    is_no_show: bool
    total_price: float
    fee_amount: float
    cancellation_source: str


class CancellationSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_count: int
    late_count: int
    no_show_count: int
    total_value: float
    late_value: float
    fees_owed: float


class CancellationHistoryResponse(BaseModel):
    records: list[CancellationRecordResponse]
    summary: CancellationSummaryResponse


class DeletionRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    appointment_id: int
    client_name: str
    client_phone: Optional[str]
    professional_name: str
    service_name: str
    scheduled_time: datetime
    total_price: float
    original_status: str
    payment_method: Optional[str]
    deleted_by: str
    deletion_reason: str
    deleted_at: datetime


class DeletionSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_count: int
    confirmed_count: int
    completed_count: int
    total_value: float


class DeletionHistoryResponse(BaseModel):
    records: list[DeletionRecordResponse]
    summary: DeletionSummaryResponse
