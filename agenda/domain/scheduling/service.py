"""
Appointment Lifecycle

State machine: pending -> confirmed -> completed, with cancelled reachable from
pending and confirmed. No-show is a flag on the cancellation, not a state.

Create and reschedule fail closed: availability and conflict checks run first
for a readable error, then the write re-validates under a row lock on the
professional and the database's own constraint has the final word.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import ENFORCE_BUSINESS_HOURS
from ...models import (
    Appointment,
    AppointmentStatus,
    CancellationSource,
    PaymentMethod,
    Professional,
    Service,
)
from ...shared.validators import format_time_of_day
from .audit import AuditRecorder
from .availability import DAY_NAMES, AvailabilityCalendar, AvailabilityResult, day_of_week
from .conflicts import Conflict, ConflictDetector
from .exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    SchedulingError,
    ValidationError,
)
from .repository import SchedulingRepository
from .schemas import AppointmentCreate, AppointmentUpdate, QuickServiceCreate

logger = logging.getLogger(__name__)

OVERLAP_CONSTRAINT_NAME = "appointments_no_overlap_per_professional"

ALLOWED_TRANSITIONS = {
    AppointmentStatus.PENDING: {
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
    },
    AppointmentStatus.CONFIRMED: {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED},
    AppointmentStatus.COMPLETED: set(),
    AppointmentStatus.CANCELLED: set(),
}

# Deleting these writes a deletion audit record first
AUDITED_ON_DELETE = {AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED}


def _with_courtesy_note(notes: Optional[str], reason: str) -> str:
    courtesy_note = f"[Courtesy] {reason.strip()}"
    return f"{notes}\n\n{courtesy_note}" if notes else courtesy_note


def _is_overlap_violation(error: IntegrityError) -> bool:
    orig = getattr(error, "orig", None)
    diag = getattr(orig, "diag", None)
    constraint_name = getattr(diag, "constraint_name", None) if diag is not None else None
    if constraint_name:
        return constraint_name == OVERLAP_CONSTRAINT_NAME
    return OVERLAP_CONSTRAINT_NAME in str(orig)


class AppointmentService:
    """Service layer for appointment booking and lifecycle"""

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = datetime.now,
        enforce_business_hours: bool = ENFORCE_BUSINESS_HOURS,
    ):
        self.db = db
        self.clock = clock
        self.enforce_business_hours = enforce_business_hours
        self.repo = SchedulingRepository()
        self.calendar = AvailabilityCalendar(db)
        self.detector = ConflictDetector(db)
        self.audit = AuditRecorder(db, clock)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.repo.get_appointment(self.db, appointment_id)
        if not appointment:
            raise NotFoundError("Appointment", appointment_id)
        return appointment

    def list_appointments(
        self,
        unit_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        professional_id: Optional[int] = None,
    ) -> list[Appointment]:
        return self.repo.list_appointments(self.db, unit_id, start, end, professional_id)

    def get_availability(self, unit_id: int, day: date) -> AvailabilityResult:
        return self.calendar.resolve(unit_id, day)

    def check_conflict(
        self,
        professional_id: int,
        start: datetime,
        end: datetime,
        exclude_appointment_id: Optional[int] = None,
    ) -> Optional[Conflict]:
        return self.detector.check_conflict(professional_id, start, end, exclude_appointment_id)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _require_unit(self, unit_id: int) -> None:
        if not self.repo.get_unit(self.db, unit_id):
            raise NotFoundError("Unit", unit_id)

    def _load_professional(self, unit_id: int, professional_id: int) -> Professional:
        professional = self.repo.get_professional(self.db, professional_id)
        if not professional or professional.unit_id != unit_id:
            raise NotFoundError("Professional", professional_id)
        if not professional.is_active:
            raise ValidationError(
                f"Professional {professional.name} is inactive and cannot take bookings",
                field="professional_id",
            )
        return professional

    def _load_service(self, unit_id: int, service_id: int) -> Service:
        service = self.repo.get_service(self.db, service_id)
        if not service or service.unit_id != unit_id:
            raise NotFoundError("Service", service_id)
        if not service.is_active:
            raise ValidationError(f"Service {service.name} is no longer offered", field="service_id")
        return service

    def _ensure_within_hours(self, unit_id: int, start: datetime, end: datetime) -> None:
        if not self.enforce_business_hours:
            return

        availability = self.calendar.resolve(unit_id, start.date())
        if not availability.is_open:
            reason = availability.holiday_label or DAY_NAMES[day_of_week(start.date())]
            raise ConflictError(f"The unit is closed on {start.date().isoformat()} ({reason})")
        if not availability.contains(start, end):
            raise ConflictError(
                "Time slot outside business hours "
                f"({format_time_of_day(availability.opening)} - {format_time_of_day(availability.closing)})"
            )

    def _ensure_slot_free(
        self,
        professional_id: int,
        start: datetime,
        end: datetime,
        exclude_appointment_id: Optional[int] = None,
    ) -> None:
        conflict = self.detector.check_conflict(professional_id, start, end, exclude_appointment_id)
        if conflict:
            logger.info(f"⛔ Booking rejected for professional {professional_id}: {conflict.label}")
            raise ConflictError.from_conflict(conflict)

    def _commit_booking(
        self,
        appointment: Appointment,
        updates: Optional[dict] = None,
        exclude_appointment_id: Optional[int] = None,
    ) -> Appointment:
        """
        Write a booking under the professional's row lock and commit.

        The overlap check is repeated after the lock so a booking committed by
        a concurrent request since the first check is caught here. A late
        overlap rejected by the database constraint surfaces as ConflictError.
        """
        values = dict(updates or {})
        professional_id = values.get("professional_id", appointment.professional_id)
        start = values.get("start_time", appointment.start_time)
        end = values.get("end_time", appointment.end_time)

        try:
            self.repo.lock_professional(self.db, professional_id)
            self._ensure_slot_free(professional_id, start, end, exclude_appointment_id)

            for key, value in values.items():
                setattr(appointment, key, value)
            if appointment.id is None:
                self.repo.add_appointment(self.db, appointment)

            self.db.commit()
        except SchedulingError:
            self.db.rollback()
            raise
        except IntegrityError as e:
            self.db.rollback()
            if _is_overlap_violation(e):
                logger.warning(f"⚠️ Storage rejected overlapping booking for professional {professional_id}")
                raise ConflictError(
                    "Time slot taken! Another appointment was just booked for this professional."
                ) from e
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to save booking for professional {professional_id}: {e}")
            raise

        self.db.refresh(appointment)
        return appointment

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_appointment(self, unit_id: int, data: AppointmentCreate) -> Appointment:
        """Book a pending appointment; end time and price come from the service"""
        logger.info(f"📥 Creating appointment for unit {unit_id}, professional {data.professional_id}")

        self._require_unit(unit_id)
        professional = self._load_professional(unit_id, data.professional_id)
        service = self._load_service(unit_id, data.service_id)

        start = data.start_time
        end = start + timedelta(minutes=service.duration_minutes)

        self._ensure_within_hours(unit_id, start, end)
        self._ensure_slot_free(professional.id, start, end)

        appointment = Appointment(
            unit_id=unit_id,
            professional_id=professional.id,
            service_id=service.id,
            client_name=data.client_name,
            client_phone=data.client_phone,
            client_birth_date=data.client_birth_date,
            start_time=start,
            end_time=end,
            status=AppointmentStatus.PENDING,
            total_price=service.price,
            notes=data.notes or None,
        )
        self._commit_booking(appointment)

        logger.info(f"✅ Appointment {appointment.id} booked {start} - {end} for {appointment.client_name}")
        return appointment

    def create_quick_service(self, unit_id: int, data: QuickServiceCreate) -> Appointment:
        """
        Register a walk-in.

        Without schedule_later the service is recorded as completed, starting
        now, with the caller's price and payment method. With schedule_later it
        is booked as a pending appointment at scheduled_start.
        """
        self._require_unit(unit_id)
        professional = self._load_professional(unit_id, data.professional_id)
        service = self._load_service(unit_id, data.service_id)

        client_name = data.client_name.strip()
        if not client_name:
            raise ValidationError("Client name is required", field="client_name")

        price = service.price if data.total_price is None else data.total_price
        payment_method = None
        notes = data.notes or None

        if data.schedule_later:
            start = data.scheduled_start
            status = AppointmentStatus.PENDING
        else:
            start = self.clock().replace(second=0, microsecond=0)
            status = AppointmentStatus.COMPLETED
            if data.payment_method is None:
                raise ValidationError(
                    "A payment method is required for a walk-in service", field="payment_method"
                )
            payment_method = data.payment_method.value
            if data.payment_method == PaymentMethod.COURTESY:
                if not (data.courtesy_reason or "").strip():
                    raise ValidationError(
                        "A reason is required for courtesy services", field="courtesy_reason"
                    )
                price = 0
                notes = _with_courtesy_note(notes, data.courtesy_reason)

        end = start + timedelta(minutes=service.duration_minutes)

        if data.schedule_later:
            self._ensure_within_hours(unit_id, start, end)
        self._ensure_slot_free(professional.id, start, end)

        appointment = Appointment(
            unit_id=unit_id,
            professional_id=professional.id,
            service_id=service.id,
            client_name=client_name,
            client_phone=data.client_phone,
            client_birth_date=data.client_birth_date,
            start_time=start,
            end_time=end,
            status=status,
            total_price=price,
            payment_method=payment_method,
            notes=notes,
        )
        self._commit_booking(appointment)

        logger.info(f"✅ Quick service {appointment.id} registered as {status.value}")
        return appointment

    # ------------------------------------------------------------------
    # Reschedule / edit
    # ------------------------------------------------------------------

    def reschedule_appointment(self, appointment_id: int, changes: AppointmentUpdate) -> Appointment:
        """
        Edit an appointment without touching its status.

        A new service resets end time and price; a new start resets the end
        time. When the slot moves, availability and conflicts are checked
        again, ignoring the appointment itself.
        """
        appointment = self.get_appointment(appointment_id)
        unit_id = appointment.unit_id
        provided = changes.model_fields_set
        updates = {}

        if changes.client_name is not None:
            updates["client_name"] = changes.client_name
        for field in ("client_phone", "client_birth_date", "notes"):
            if field in provided:
                updates[field] = getattr(changes, field)

        professional_id = appointment.professional_id
        if changes.professional_id is not None:
            professional = self._load_professional(unit_id, changes.professional_id)
            professional_id = professional.id
            updates["professional_id"] = professional.id

        service = appointment.service
        if changes.service_id is not None:
            service = self._load_service(unit_id, changes.service_id)
            updates["service_id"] = service.id
            updates["total_price"] = service.price

        timing_changed = changes.service_id is not None or changes.start_time is not None
        start = changes.start_time or appointment.start_time
        end = appointment.end_time
        if timing_changed:
            if service is None:
                raise ValidationError(
                    "The appointment's service no longer exists; choose a service to reschedule",
                    field="service_id",
                )
            end = start + timedelta(minutes=service.duration_minutes)
            updates["start_time"] = start
            updates["end_time"] = end

        slot_changed = timing_changed or "professional_id" in updates
        occupies_slot = appointment.status != AppointmentStatus.CANCELLED

        if slot_changed and occupies_slot and professional_id is not None:
            self._ensure_within_hours(unit_id, start, end)
            self._ensure_slot_free(professional_id, start, end, appointment.id)
            self._commit_booking(appointment, updates, exclude_appointment_id=appointment.id)
        else:
            try:
                for key, value in updates.items():
                    setattr(appointment, key, value)
                self.db.commit()
            except SQLAlchemyError:
                self.db.rollback()
                raise
            self.db.refresh(appointment)

        logger.info(f"✏️ Appointment {appointment.id} updated: {sorted(updates)}")
        return appointment

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def transition_status(
        self,
        appointment_id: int,
        new_status,
        is_no_show: bool = False,
        payment_method=None,
        courtesy_reason: Optional[str] = None,
        source=CancellationSource.MANUAL,
    ) -> Appointment:
        """
        Move an appointment along the lifecycle graph.

        Cancelling writes the cancellation history record in the same
        transaction; if that write fails nothing is committed. Completing
        requires a payment method, and a courtesy completion is free.
        """
        appointment = self.get_appointment(appointment_id)

        try:
            target = AppointmentStatus(new_status)
        except ValueError:
            raise ValidationError(f"Unknown status '{new_status}'", field="status") from None

        current = appointment.status
        if target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError(current.value, target.value)

        method = None
        if target == AppointmentStatus.COMPLETED:
            if not payment_method:
                raise ValidationError(
                    "A payment method is required to complete an appointment", field="payment_method"
                )
            try:
                method = PaymentMethod(payment_method)
            except ValueError:
                raise ValidationError(
                    f"Unknown payment method '{payment_method}'", field="payment_method"
                ) from None
            if method == PaymentMethod.COURTESY and not (courtesy_reason or "").strip():
                raise ValidationError(
                    "A reason is required for courtesy services", field="courtesy_reason"
                )

        if target == AppointmentStatus.CANCELLED:
            try:
                cancellation_source = CancellationSource(source)
            except ValueError:
                raise ValidationError(f"Unknown cancellation source '{source}'", field="source") from None

        try:
            if target == AppointmentStatus.CANCELLED:
                self.audit.record_cancellation(
                    appointment,
                    is_no_show=is_no_show,
                    source=cancellation_source.value,
                    cancelled_at=self.clock(),
                )
                appointment.is_no_show = is_no_show
                appointment.cancellation_source = (
                    CancellationSource.NO_SHOW.value if is_no_show else cancellation_source.value
                )
            elif target == AppointmentStatus.COMPLETED:
                appointment.payment_method = method.value
                if method == PaymentMethod.COURTESY:
                    # Courtesy completions are zero-revenue
                    appointment.total_price = 0
                    appointment.notes = _with_courtesy_note(appointment.notes, courtesy_reason)

            appointment.status = target
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(
                f"❌ Status change {current.value} -> {target.value} failed for appointment {appointment_id}: {e}"
            )
            raise

        self.db.refresh(appointment)
        logger.info(f"🔄 Appointment {appointment_id}: {current.value} -> {target.value}")
        return appointment

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_appointment(
        self,
        appointment_id: int,
        actor: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        """
        Hard-delete an appointment.

        Confirmed and completed appointments get a deletion audit record first.
        That write is best-effort: if it fails the error is logged and the
        delete still happens.
        """
        appointment = self.get_appointment(appointment_id)

        if appointment.status in AUDITED_ON_DELETE:
            self.audit.record_deletion(appointment, actor, reason)

        try:
            self.repo.delete_appointment(self.db, appointment)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to delete appointment {appointment_id}: {e}")
            raise

        logger.info(f"🗑️ Appointment {appointment_id} deleted by {actor or 'unknown'}")
