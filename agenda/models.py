import enum
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import ExcludeConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    PIX = "pix"
    DEBIT_CARD = "debit_card"
    CREDIT_CARD = "credit_card"
    COURTESY = "courtesy"
    FIDELITY_COURTESY = "fidelity_courtesy"


class CancellationSource(str, enum.Enum):
    MANUAL = "manual"
    WHATSAPP = "whatsapp"
    NO_SHOW = "no_show"


@dataclass(frozen=True)
class CancellationDetail:
    """Why an appointment left the calendar; no-show is a flag on the cancellation, not a status"""

    is_no_show: bool
    source: str


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Unit(Base):
    __tablename__ = "units"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    # Legacy unit-wide hours, used only when no per-day row covers a weekday
    opening_time = Column(Time, nullable=True)
    closing_time = Column(Time, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    professionals = relationship("Professional", back_populates="unit")
    services = relationship("Service", back_populates="unit")
    business_hours = relationship(
        "BusinessHour", back_populates="unit", cascade="all, delete-orphan"
    )
    holidays = relationship("Holiday", back_populates="unit", cascade="all, delete-orphan")
    cancellation_policy = relationship(
        "CancellationPolicy", back_populates="unit", uselist=False, cascade="all, delete-orphan"
    )


class Professional(Base):
    __tablename__ = "professionals"

    id = Column(Integer, primary_key=True, index=True)
    unit_id = Column(Integer, ForeignKey("units.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Recurring daily break
    lunch_break_enabled = Column(Boolean, default=False, nullable=False)
    lunch_break_start = Column(Time, nullable=True)
    lunch_break_end = Column(Time, nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    unit = relationship("Unit", back_populates="professionals")
    appointments = relationship("Appointment", back_populates="professional")


class Service(Base):
    __tablename__ = "services"
    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="ck_services_duration_positive"),
        CheckConstraint("price >= 0", name="ck_services_price_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    unit_id = Column(Integer, ForeignKey("units.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Float, nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    unit = relationship("Unit", back_populates="services")


class BusinessHour(Base):
    """Weekly opening template, one row per weekday (0 = Sunday ... 6 = Saturday)"""

    __tablename__ = "business_hours"
    __table_args__ = (
        UniqueConstraint("unit_id", "day_of_week", name="uq_business_hours_unit_day"),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_business_hours_day_range"),
    )

    id = Column(Integer, primary_key=True, index=True)
    unit_id = Column(Integer, ForeignKey("units.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)
    is_open = Column(Boolean, default=True, nullable=False)
    opening_time = Column(Time, nullable=True)  # unset when closed
    closing_time = Column(Time, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    unit = relationship("Unit", back_populates="business_hours")


class Holiday(Base):
    __tablename__ = "holidays"
    __table_args__ = (UniqueConstraint("unit_id", "date", name="uq_holidays_unit_date"),)

    id = Column(Integer, primary_key=True, index=True)
    unit_id = Column(Integer, ForeignKey("units.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    unit = relationship("Unit", back_populates="holidays")


class CancellationPolicy(Base):
    __tablename__ = "cancellation_policies"
    __table_args__ = (
        CheckConstraint("grace_period_minutes >= 0", name="ck_policy_grace_non_negative"),
        CheckConstraint(
            "late_cancellation_fee_percent BETWEEN 0 AND 100", name="ck_policy_late_fee_range"
        ),
        CheckConstraint("no_show_fee_percent BETWEEN 0 AND 100", name="ck_policy_no_show_fee_range"),
    )

    id = Column(Integer, primary_key=True, index=True)
    unit_id = Column(Integer, ForeignKey("units.id"), unique=True, nullable=False)
    grace_period_minutes = Column(Integer, nullable=False)
    late_cancellation_fee_percent = Column(Integer, nullable=False)
    no_show_fee_percent = Column(Integer, nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    unit = relationship("Unit", back_populates="cancellation_policy")


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_appointments_end_after_start"),
        Index("ix_appointments_professional_start", "professional_id", "start_time"),
        Index("ix_appointments_unit_start", "unit_id", "start_time"),
    )

    id = Column(Integer, primary_key=True, index=True)
    unit_id = Column(Integer, ForeignKey("units.id"), nullable=False)
    professional_id = Column(
        Integer, ForeignKey("professionals.id", ondelete="SET NULL"), nullable=True
    )
    service_id = Column(Integer, ForeignKey("services.id", ondelete="SET NULL"), nullable=True)

    # Client display fields, copied from the CRM at booking time
    client_name = Column(String(255), nullable=False)
    client_phone = Column(String(30), nullable=True)
    client_birth_date = Column(Date, nullable=True)

    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)  # start_time + service duration

    status = Column(
        Enum(
            AppointmentStatus,
            name="appointment_status",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        default=AppointmentStatus.PENDING,
        nullable=False,
        index=True,
    )
    total_price = Column(Float, nullable=False, default=0)  # snapshot of service price
    payment_method = Column(String(30), nullable=True)  # set on completion only
    notes = Column(Text, nullable=True)

    # Cancellation detail, only set while status is cancelled
    is_no_show = Column(Boolean, nullable=True)
    cancellation_source = Column(String(30), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    unit = relationship("Unit")
    professional = relationship("Professional", back_populates="appointments")
    service = relationship("Service")

    @property
    def cancellation_detail(self) -> Optional[CancellationDetail]:
        if self.status != AppointmentStatus.CANCELLED:
            return None
        return CancellationDetail(
            is_no_show=bool(self.is_no_show),
            source=self.cancellation_source or CancellationSource.MANUAL.value,
        )


# Storage-level guarantee that a professional never holds two live bookings over
# the same instant. Only PostgreSQL can express it; other dialects rely on the
# serialised re-check performed inside the booking transaction.
Appointment.__table__.append_constraint(
    ExcludeConstraint(
        (Appointment.__table__.c.professional_id, "="),
        (
            func.tsrange(
                Appointment.__table__.c.start_time, Appointment.__table__.c.end_time, "[)"
            ),
            "&&",
        ),
        where="status <> 'cancelled'",
        using="gist",
        name="appointments_no_overlap_per_professional",
    ).ddl_if(dialect="postgresql")
)
