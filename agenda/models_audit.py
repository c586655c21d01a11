"""
Audit trail models for destructive appointment transitions

Both tables hold denormalized snapshots: names, times and amounts are copied at
write time so a record stays readable after the appointment, professional or
service it describes has been deleted.
"""

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, event
from sqlalchemy.sql import func

from .database import Base


class AuditRecordImmutableError(RuntimeError):
    """Raised when code tries to rewrite an audit record after it was written"""


class CancellationHistory(Base):
    """Snapshot written in the same transaction that cancels an appointment"""

    __tablename__ = "cancellation_history"

    id = Column(Integer, primary_key=True, index=True)
    unit_id = Column(Integer, ForeignKey("units.id"), nullable=False, index=True)
    # Plain integer, not a foreign key: the appointment may be deleted later
    appointment_id = Column(Integer, nullable=True, index=True)

    client_name = Column(String(255), nullable=False)
    client_phone = Column(String(30), nullable=True)
    professional_name = Column(String(255), nullable=False)
    service_name = Column(String(255), nullable=False)

    scheduled_time = Column(DateTime, nullable=False)
    cancelled_at = Column(DateTime, nullable=False)
    minutes_before = Column(Integer, nullable=False)  # negative when cancelled after the start
    is_late_cancellation = Column(Boolean, default=False, nullable=False)
    is_no_show = Column(Boolean, default=False, nullable=False)

    total_price = Column(Float, nullable=False, default=0)
    fee_amount = Column(Float, nullable=False, default=0)  # amount owed under the unit policy
    cancellation_source = Column(String(30), nullable=False)  # manual, whatsapp, no_show
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())


class AppointmentDeletion(Base):
    """Snapshot of a confirmed or completed appointment taken right before it is deleted"""

    __tablename__ = "appointment_deletions"

    id = Column(Integer, primary_key=True, index=True)
    unit_id = Column(Integer, ForeignKey("units.id"), nullable=False, index=True)
    appointment_id = Column(Integer, nullable=False, index=True)

    client_name = Column(String(255), nullable=False)
    client_phone = Column(String(30), nullable=True)
    professional_name = Column(String(255), nullable=False)
    service_name = Column(String(255), nullable=False)
    scheduled_time = Column(DateTime, nullable=False)

    total_price = Column(Float, nullable=False, default=0)
    original_status = Column(String(20), nullable=False)
    payment_method = Column(String(30), nullable=True)

    deleted_by = Column(String(255), nullable=False)
    deletion_reason = Column(Text, nullable=False)
    deleted_at = Column(DateTime, nullable=False)

    created_at = Column(DateTime, server_default=func.now())


@event.listens_for(CancellationHistory, "before_update")
@event.listens_for(AppointmentDeletion, "before_update")
def _reject_audit_update(_mapper, _connection, target):
    raise AuditRecordImmutableError(
        f"{type(target).__name__} {target.id} is write-once and cannot be updated"
    )


@event.listens_for(AppointmentDeletion, "before_delete")
def _reject_deletion_audit_delete(_mapper, _connection, target):
    raise AuditRecordImmutableError(f"Deletion audit record {target.id} is append-only")
