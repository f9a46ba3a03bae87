import os
from datetime import date
from itertools import count

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite://')

from docspot.database import Base  # noqa: E402
from docspot.models.appointment import Appointment, AppointmentStatus  # noqa: E402
from docspot.models.doctor import Doctor  # noqa: E402
from docspot.models.user import DOCTOR_ROLE, PATIENT_ROLE, User  # noqa: E402

_user_numbers = count(1)


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    try:
        yield testing_session_local
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    def _make_user(role: str = PATIENT_ROLE, name: str | None = None) -> User:
        number = next(_user_numbers)
        user = User(
            email=f'{role}{number}@example.com',
            name=name or f'{role.title()} {number}',
            role=role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_doctor(db, make_user):
    def _make_doctor(
        is_approved: bool = True,
        available_time_slots: list[dict] | None = None,
        specialty: str = 'Cardiology',
        consultation_fee: float = 500,
    ) -> Doctor:
        doctor = Doctor(
            user_id=make_user(DOCTOR_ROLE).id,
            specialty=specialty,
            experience=8,
            qualifications='MBBS, MD',
            bio='Sees adults and children.',
            consultation_fee=consultation_fee,
            is_approved=is_approved,
            available_time_slots=available_time_slots or [],
        )
        db.add(doctor)
        db.commit()
        db.refresh(doctor)
        return doctor

    return _make_doctor


@pytest.fixture
def make_appointment(db):
    def _make_appointment(
        patient: User,
        doctor: Doctor,
        day: date,
        slot: str,
        status: AppointmentStatus = AppointmentStatus.PENDING,
    ) -> Appointment:
        appointment = Appointment(
            patient_id=patient.id,
            doctor_id=doctor.id,
            date=day,
            slot=slot,
            status=status.value,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _make_appointment


@pytest.fixture
def patient(make_user) -> User:
    return make_user(PATIENT_ROLE, name='Patient P')


@pytest.fixture
def other_patient(make_user) -> User:
    return make_user(PATIENT_ROLE, name='Patient Q')


@pytest.fixture
def doctor(make_doctor) -> Doctor:
    return make_doctor()
