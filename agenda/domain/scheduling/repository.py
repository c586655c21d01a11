"""Scheduling repository - Database operations for the scheduling domain

Settings writes (hours, holidays, policy) commit on their own. Appointment and
audit writes only add/flush: the lifecycle service owns those transactions so
that a cancellation and its history record commit or fail together.
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import (
    Appointment,
    AppointmentStatus,
    BusinessHour,
    CancellationPolicy,
    Holiday,
    Professional,
    Service,
    Unit,
)
from ...models_audit import AppointmentDeletion, CancellationHistory


class SchedulingRepository:
    """Repository for scheduling database operations"""

    # Reference data
    @staticmethod
    def get_unit(db: Session, unit_id: int) -> Optional[Unit]:
        return db.query(Unit).filter(Unit.id == unit_id).first()

    @staticmethod
    def get_professional(db: Session, professional_id: int) -> Optional[Professional]:
        return db.query(Professional).filter(Professional.id == professional_id).first()

    @staticmethod
    def lock_professional(db: Session, professional_id: int) -> Optional[Professional]:
        """
        Take a row lock on the professional for the rest of the transaction.

        Every booking write for a professional goes through this lock, so the
        overlap re-check that follows cannot interleave with another writer.
        """
        return (
            db.query(Professional)
            .filter(Professional.id == professional_id)
            .with_for_update()
            .first()
        )

    @staticmethod
    def get_service(db: Session, service_id: int) -> Optional[Service]:
        return db.query(Service).filter(Service.id == service_id).first()

    # Weekly hours
    @staticmethod
    def get_business_hours(db: Session, unit_id: int) -> list[BusinessHour]:
        return (
            db.query(BusinessHour)
            .filter(BusinessHour.unit_id == unit_id)
            .order_by(BusinessHour.day_of_week)
            .all()
        )

    @staticmethod
    def get_business_hour(db: Session, unit_id: int, day_of_week: int) -> Optional[BusinessHour]:
        return (
            db.query(BusinessHour)
            .filter(BusinessHour.unit_id == unit_id, BusinessHour.day_of_week == day_of_week)
            .first()
        )

    @staticmethod
    def upsert_business_hour(db: Session, unit_id: int, day_of_week: int, **values) -> BusinessHour:
        hour = SchedulingRepository.get_business_hour(db, unit_id, day_of_week)
        if hour is None:
            hour = BusinessHour(unit_id=unit_id, day_of_week=day_of_week)
            db.add(hour)
        for key, value in values.items():
            setattr(hour, key, value)
        db.commit()
        db.refresh(hour)
        return hour

    @staticmethod
    def create_business_hours(db: Session, unit_id: int, rows: list[dict]) -> list[BusinessHour]:
        hours = [BusinessHour(unit_id=unit_id, **row) for row in rows]
        db.add_all(hours)
        db.commit()
        return hours

    # Holidays
    @staticmethod
    def get_holiday_by_date(db: Session, unit_id: int, day: date) -> Optional[Holiday]:
        return db.query(Holiday).filter(Holiday.unit_id == unit_id, Holiday.date == day).first()

    @staticmethod
    def get_holiday(db: Session, unit_id: int, holiday_id: int) -> Optional[Holiday]:
        return db.query(Holiday).filter(Holiday.id == holiday_id, Holiday.unit_id == unit_id).first()

    @staticmethod
    def list_holidays(db: Session, unit_id: int) -> list[Holiday]:
        return db.query(Holiday).filter(Holiday.unit_id == unit_id).order_by(Holiday.date).all()

    @staticmethod
    def create_holiday(db: Session, unit_id: int, day: date, name: str) -> Holiday:
        holiday = Holiday(unit_id=unit_id, date=day, name=name)
        db.add(holiday)
        db.commit()
        db.refresh(holiday)
        return holiday

    @staticmethod
    def delete_holiday(db: Session, holiday: Holiday) -> None:
        db.delete(holiday)
        db.commit()

    # Cancellation policy
    @staticmethod
    def get_cancellation_policy(db: Session, unit_id: int) -> Optional[CancellationPolicy]:
        return db.query(CancellationPolicy).filter(CancellationPolicy.unit_id == unit_id).first()

    @staticmethod
    def save_cancellation_policy(db: Session, unit_id: int, **values) -> CancellationPolicy:
        policy = SchedulingRepository.get_cancellation_policy(db, unit_id)
        if policy is None:
            policy = CancellationPolicy(unit_id=unit_id)
            db.add(policy)
        for key, value in values.items():
            setattr(policy, key, value)
        db.commit()
        db.refresh(policy)
        return policy

    # Appointments
    @staticmethod
    def get_appointment(db: Session, appointment_id: int) -> Optional[Appointment]:
        return (
            db.query(Appointment)
            .options(joinedload(Appointment.professional), joinedload(Appointment.service))
            .filter(Appointment.id == appointment_id)
            .first()
        )

    @staticmethod
    def list_appointments(
        db: Session,
        unit_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        professional_id: Optional[int] = None,
    ) -> list[Appointment]:
        """Appointments of a unit ordered by start time, cancelled ones included"""
        query = db.query(Appointment).filter(Appointment.unit_id == unit_id)

        if start:
            query = query.filter(Appointment.start_time >= start)
        if end:
            query = query.filter(Appointment.start_time <= end)
        if professional_id:
            query = query.filter(Appointment.professional_id == professional_id)

        return query.order_by(Appointment.start_time).all()

    @staticmethod
    def find_overlapping_appointment(
        db: Session,
        professional_id: int,
        start: datetime,
        end: datetime,
        exclude_appointment_id: Optional[int] = None,
    ) -> Optional[Appointment]:
        """First live booking of the professional overlapping the half-open [start, end)"""
        query = db.query(Appointment).filter(
            Appointment.professional_id == professional_id,
            Appointment.status != AppointmentStatus.CANCELLED,
            Appointment.start_time < end,
            Appointment.end_time > start,
        )

        if exclude_appointment_id:
            query = query.filter(Appointment.id != exclude_appointment_id)

        return query.order_by(Appointment.start_time).first()

    @staticmethod
    def add_appointment(db: Session, appointment: Appointment) -> Appointment:
        db.add(appointment)
        db.flush()
        return appointment

    @staticmethod
    def delete_appointment(db: Session, appointment: Appointment) -> None:
        db.delete(appointment)
        db.flush()

    # Audit trail
    @staticmethod
    def add_cancellation_record(db: Session, record: CancellationHistory) -> CancellationHistory:
        db.add(record)
        db.flush()
        return record

    @staticmethod
    def get_cancellation_record(db: Session, record_id: int) -> Optional[CancellationHistory]:
        return db.query(CancellationHistory).filter(CancellationHistory.id == record_id).first()

    @staticmethod
    def list_cancellation_records(
        db: Session,
        unit_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        only_late: bool = False,
        only_no_show: bool = False,
    ) -> list[CancellationHistory]:
        query = db.query(CancellationHistory).filter(CancellationHistory.unit_id == unit_id)

        if start:
            query = query.filter(CancellationHistory.scheduled_time >= start)
        if end:
            query = query.filter(CancellationHistory.scheduled_time <= end)
        if only_late:
            query = query.filter(CancellationHistory.is_late_cancellation.is_(True))
        if only_no_show:
            query = query.filter(CancellationHistory.is_no_show.is_(True))

        return query.order_by(CancellationHistory.scheduled_time.desc()).all()

    @staticmethod
    def delete_cancellation_record(db: Session, record: CancellationHistory) -> None:
        db.delete(record)
        db.commit()

    @staticmethod
    def add_deletion_record(db: Session, record: AppointmentDeletion) -> AppointmentDeletion:
        db.add(record)
        db.flush()
        return record

    @staticmethod
    def list_deletion_records(
        db: Session,
        unit_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[AppointmentDeletion]:
        query = db.query(AppointmentDeletion).filter(AppointmentDeletion.unit_id == unit_id)

        if start:
            query = query.filter(AppointmentDeletion.deleted_at >= start)
        if end:
            query = query.filter(AppointmentDeletion.deleted_at <= end)

        return query.order_by(AppointmentDeletion.deleted_at.desc()).all()
