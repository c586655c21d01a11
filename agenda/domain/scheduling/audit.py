"""
Audit Recorder

Writes the append-only snapshots that outlive appointments:
- Cancellation history: part of the cancellation transaction. If it cannot be
  written the cancellation fails, since it is the only record of lateness and
  fees for billing.
- Deletion audit: best-effort. It runs in a SAVEPOINT so a failure is rolled
  back on its own and logged, and the operator's delete still goes through.

Snapshots copy every value they need from the appointment at write time and
never read it back later.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...models import Appointment, CancellationSource
from ...models_audit import AppointmentDeletion, CancellationHistory
from .exceptions import NotFoundError
from .policy import classify, compute_fee, get_policy
from .repository import SchedulingRepository

logger = logging.getLogger(__name__)

UNKNOWN_PROFESSIONAL = "Unknown"
UNKNOWN_SERVICE = "Service"
DEFAULT_DELETION_REASON = "unspecified"
UNKNOWN_ACTOR = "unknown"


@dataclass(frozen=True)
class CancellationSummary:
    total_count: int
    late_count: int
    no_show_count: int
    total_value: float
    late_value: float
    fees_owed: float


@dataclass(frozen=True)
class DeletionSummary:
    total_count: int
    confirmed_count: int
    completed_count: int
    total_value: float


def _professional_name(appointment: Appointment) -> str:
    return appointment.professional.name if appointment.professional else UNKNOWN_PROFESSIONAL


def _service_name(appointment: Appointment) -> str:
    return appointment.service.name if appointment.service else UNKNOWN_SERVICE


def _status_value(status) -> str:
    return getattr(status, "value", status)


class AuditRecorder:
    def __init__(self, db: Session, clock: Callable[[], datetime] = datetime.now):
        self.db = db
        self.clock = clock
        self.repo = SchedulingRepository()

    def record_cancellation(
        self,
        appointment: Appointment,
        is_no_show: bool = False,
        source: str = CancellationSource.MANUAL.value,
        cancelled_at: Optional[datetime] = None,
    ) -> CancellationHistory:
        """
        Add the cancellation snapshot to the current transaction.

        Does not commit. Any error propagates so the caller can roll back the
        status change together with this record.
        """
        cancelled_at = cancelled_at or self.clock()
        policy = get_policy(self.db, appointment.unit_id)
        lateness = classify(appointment.start_time, cancelled_at, policy)
        fee = compute_fee(appointment.total_price, lateness.is_late, is_no_show, policy)

        record = CancellationHistory(
            unit_id=appointment.unit_id,
            appointment_id=appointment.id,
            client_name=appointment.client_name,
            client_phone=appointment.client_phone,
            professional_name=_professional_name(appointment),
            service_name=_service_name(appointment),
            scheduled_time=appointment.start_time,
            cancelled_at=cancelled_at,
            minutes_before=lateness.minutes_before,
            is_late_cancellation=lateness.is_late,
            is_no_show=is_no_show,
            total_price=appointment.total_price or 0,
            fee_amount=fee,
            cancellation_source=CancellationSource.NO_SHOW.value if is_no_show else source,
        )
        self.repo.add_cancellation_record(self.db, record)

        logger.info(
            f"📝 Cancellation recorded for appointment {appointment.id}: "
            f"minutes_before={lateness.minutes_before}, late={lateness.is_late}, "
            f"no_show={is_no_show}, fee={fee}"
        )
        return record

    def record_deletion(
        self,
        appointment: Appointment,
        actor: str,
        reason: Optional[str] = None,
    ) -> Optional[AppointmentDeletion]:
        """
        Snapshot a confirmed/completed appointment before it is deleted.

        Returns None when the write fails; the failure is logged and the
        surrounding transaction is left intact.
        """
        try:
            with self.db.begin_nested():
                record = AppointmentDeletion(
                    unit_id=appointment.unit_id,
                    appointment_id=appointment.id,
                    client_name=appointment.client_name,
                    client_phone=appointment.client_phone,
                    professional_name=_professional_name(appointment),
                    service_name=_service_name(appointment),
                    scheduled_time=appointment.start_time,
                    total_price=appointment.total_price or 0,
                    original_status=_status_value(appointment.status),
                    payment_method=appointment.payment_method,
                    deleted_by=actor or UNKNOWN_ACTOR,
                    deletion_reason=(reason or "").strip() or DEFAULT_DELETION_REASON,
                    deleted_at=self.clock(),
                )
                self.repo.add_deletion_record(self.db, record)
        except Exception as e:
            logger.error(f"❌ Error recording deletion audit for appointment {appointment.id}: {e}")
            return None

        logger.info(f"📝 Deletion audit recorded for appointment {appointment.id} by {record.deleted_by}")
        return record

    # ------------------------------------------------------------------
    # History queries
    # ------------------------------------------------------------------

    def list_cancellations(
        self,
        unit_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        only_late: bool = False,
        only_no_show: bool = False,
    ) -> list[CancellationHistory]:
        return self.repo.list_cancellation_records(
            self.db, unit_id, start, end, only_late, only_no_show
        )

    @staticmethod
    def summarize_cancellations(records: list[CancellationHistory]) -> CancellationSummary:
        late_or_no_show = [r for r in records if r.is_late_cancellation or r.is_no_show]
        return CancellationSummary(
            total_count=len(records),
            late_count=sum(1 for r in records if r.is_late_cancellation),
            no_show_count=sum(1 for r in records if r.is_no_show),
            total_value=round(sum(r.total_price or 0 for r in records), 2),
            late_value=round(sum(r.total_price or 0 for r in late_or_no_show), 2),
            fees_owed=round(sum(r.fee_amount or 0 for r in records), 2),
        )

    def delete_cancellation_record(self, record_id: int) -> None:
        """Administrative purge; the appointment itself is not touched"""
        record = self.repo.get_cancellation_record(self.db, record_id)
        if not record:
            raise NotFoundError("Cancellation record", record_id)
        self.repo.delete_cancellation_record(self.db, record)
        logger.info(f"🗑️ Cancellation record {record_id} purged")

    def list_deletions(
        self,
        unit_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[AppointmentDeletion]:
        return self.repo.list_deletion_records(self.db, unit_id, start, end)

    @staticmethod
    def summarize_deletions(records: list[AppointmentDeletion]) -> DeletionSummary:
        return DeletionSummary(
            total_count=len(records),
            confirmed_count=sum(1 for r in records if r.original_status == "confirmed"),
            completed_count=sum(1 for r in records if r.original_status == "completed"),
            total_value=round(sum(r.total_price or 0 for r in records), 2),
        )
