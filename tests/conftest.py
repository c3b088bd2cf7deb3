import os
from datetime import date, datetime, time
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite://')

from salon_booking.auth import Actor, Role  # noqa: E402
from salon_booking.database import Base  # noqa: E402
from salon_booking.models import (  # noqa: E402
    Account,
    Appointment,
    AvailabilityException,
    Employee,
    Service,
    WeeklyAvailabilitySlot,
)

# 2030-01-07 is a Monday
MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)


def at(day: date, hhmm: str) -> datetime:
    hours, minutes = hhmm.split(':')
    return datetime.combine(day, time(int(hours), int(minutes)))


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def notify(self, db, event, appointment):
        self.events.append((event, appointment.id))


class FailingNotifier:
    def notify(self, db, event, appointment):
        raise RuntimeError('SMTP server on fire')


@pytest.fixture
def engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def seed_salon(db):
    """One employee working Mondays 09:00-17:00, two services, three accounts"""
    client = Account(name='Clara Client', email='clara@example.com', phone='+421900000001', email_verified=True)
    other_client = Account(name='Oskar Other', email='oskar@example.com', email_verified=True)
    unverified = Account(name='Una Unverified', email='una@example.com', email_verified=False)
    staff_account = Account(name='Eva Employee', email='eva@salon.example', email_verified=True)
    db.add_all([client, other_client, unverified, staff_account])
    db.flush()

    facial = Service(title='Facial', duration_minutes=60, price=45)
    massage = Service(title='Massage', duration_minutes=45, price=35)
    manicure = Service(title='Manicure', duration_minutes=30, price=20)
    db.add_all([facial, massage, manicure])
    db.flush()

    employee = Employee(name='Eva', email='eva@salon.example', account_id=staff_account.id)
    employee.services = [facial, massage]
    colleague = Employee(name='Mia', email='mia@salon.example')
    colleague.services = [facial, manicure]
    db.add_all([employee, colleague])
    db.flush()

    db.add_all([
        WeeklyAvailabilitySlot(
            employee_id=employee.id, day_of_week=0, start_time=time(9, 0), end_time=time(17, 0)
        ),
        WeeklyAvailabilitySlot(
            employee_id=colleague.id, day_of_week=0, start_time=time(9, 0), end_time=time(12, 0)
        ),
        WeeklyAvailabilitySlot(
            employee_id=colleague.id, day_of_week=0, start_time=time(13, 0), end_time=time(17, 0)
        ),
    ])
    db.commit()

    return SimpleNamespace(
        employee=employee,
        colleague=colleague,
        facial=facial,
        massage=massage,
        manicure=manicure,
        client=client,
        other_client=other_client,
        unverified=unverified,
        staff_account=staff_account,
        client_actor=Actor(user_id=client.id, role=Role.CLIENT, email=client.email),
        other_actor=Actor(user_id=other_client.id, role=Role.CLIENT, email=other_client.email),
        unverified_actor=Actor(user_id=unverified.id, role=Role.CLIENT, email=unverified.email),
        staff_actor=Actor(user_id=staff_account.id, role=Role.STAFF, email=staff_account.email),
        admin_actor=Actor(user_id=999, role=Role.ADMIN, email='admin@salon.example'),
    )


@pytest.fixture
def salon(db):
    return seed_salon(db)


def add_appointment(db, employee, service, start, end, status='confirmed', account=None):
    appointment = Appointment(
        employee_id=employee.id,
        service_id=service.id,
        account_id=account.id if account else None,
        start_time=start,
        end_time=end,
        status=status,
    )
    db.add(appointment)
    db.commit()
    return appointment


def add_exception(db, employee, day, is_available, start=None, end=None, reason=None):
    exception = AvailabilityException(
        employee_id=employee.id,
        exception_date=day,
        is_available=is_available,
        start_time=start,
        end_time=end,
        reason=reason,
    )
    db.add(exception)
    db.commit()
    return exception
