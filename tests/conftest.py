from datetime import datetime, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from agenda import models_audit  # noqa: F401
from agenda.database import Base, configure_sqlite_locking
from agenda.domain.scheduling.service import AppointmentService
from agenda.models import Professional, Service, Unit

# Monday
DAY = datetime(2026, 10, 19)


def at(hour: int, minute: int = 0, day: datetime = DAY) -> datetime:
    return day.replace(hour=hour, minute=minute, second=0, microsecond=0)


class FixedClock:
    """Callable clock the tests can move forward"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def engine():
    db_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite_locking(db_engine)
    Base.metadata.create_all(bind=db_engine)
    yield db_engine
    Base.metadata.drop_all(bind=db_engine)
    db_engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def unit(db):
    unit = Unit(name="Downtown")
    db.add(unit)
    db.commit()
    return unit


@pytest.fixture
def professional(db, unit):
    professional = Professional(unit_id=unit.id, name="Ana")
    db.add(professional)
    db.commit()
    return professional


@pytest.fixture
def professional_with_break(db, unit):
    professional = Professional(
        unit_id=unit.id,
        name="Bruno",
        lunch_break_enabled=True,
        lunch_break_start=time(12, 0),
        lunch_break_end=time(13, 0),
    )
    db.add(professional)
    db.commit()
    return professional


@pytest.fixture
def haircut(db, unit):
    service = Service(unit_id=unit.id, name="Haircut", duration_minutes=30, price=40.0)
    db.add(service)
    db.commit()
    return service


@pytest.fixture
def coloring(db, unit):
    service = Service(unit_id=unit.id, name="Coloring", duration_minutes=90, price=150.0)
    db.add(service)
    db.commit()
    return service


@pytest.fixture
def clock():
    return FixedClock(at(9))


@pytest.fixture
def service(db, clock):
    return AppointmentService(db, clock=clock, enforce_business_hours=True)
