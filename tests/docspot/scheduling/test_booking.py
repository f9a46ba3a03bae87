import threading
from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from docspot.database import Base
from docspot.models.appointment import Appointment, AppointmentStatus
from docspot.models.doctor import Doctor
from docspot.models.user import DOCTOR_ROLE, User
from docspot.scheduling import booking
from docspot.scheduling.availability import slots_for_day
from docspot.scheduling.errors import DoctorNotEligibleError, InvalidSlotError, SlotConflictError

DAY = date(2025, 7, 10)


def test_create_appointment_inserts_pending_booking(db, doctor, patient) -> None:
    appointment = booking.create_appointment(db, patient.id, doctor.id, DAY, '09:00')

    assert appointment.id is not None
    assert appointment.status == AppointmentStatus.PENDING.value
    assert appointment.patient_id == patient.id
    assert appointment.doctor_id == doctor.id
    assert appointment.date == DAY
    assert appointment.slot == '09:00'
    assert appointment.documents == []


def test_create_appointment_rejects_unknown_doctor(db, patient) -> None:
    with pytest.raises(DoctorNotEligibleError):
        booking.create_appointment(db, patient.id, 999, DAY, '09:00')


def test_create_appointment_rejects_unapproved_doctor(db, make_doctor, patient) -> None:
    unapproved = make_doctor(is_approved=False)

    with pytest.raises(DoctorNotEligibleError):
        booking.create_appointment(db, patient.id, unapproved.id, DAY, '09:00')

    assert db.query(Appointment).count() == 0


@pytest.mark.parametrize('status', [AppointmentStatus.PENDING, AppointmentStatus.APPROVED])
def test_create_appointment_rejects_held_slot(db, doctor, patient, other_patient, make_appointment, status) -> None:
    make_appointment(patient, doctor, DAY, '09:00', status)

    with pytest.raises(SlotConflictError) as exception_info:
        booking.create_appointment(db, other_patient.id, doctor.id, DAY, '09:00')

    assert exception_info.value.code == 'slot_conflict'
    assert exception_info.value.status_code == 409


def test_create_appointment_reuses_slot_freed_by_rejection(db, doctor, patient, other_patient, make_appointment) -> None:
    make_appointment(patient, doctor, DAY, '09:00', AppointmentStatus.REJECTED)

    appointment = booking.create_appointment(db, other_patient.id, doctor.id, DAY, '09:00')

    assert appointment.patient_id == other_patient.id
    assert db.query(Appointment).filter(Appointment.slot == '09:00').count() == 2


def test_create_appointment_books_over_a_completed_visit(db, doctor, patient, other_patient, make_appointment) -> None:
    make_appointment(patient, doctor, DAY, '09:00', AppointmentStatus.COMPLETED)

    appointment = booking.create_appointment(db, other_patient.id, doctor.id, DAY, '09:00')

    assert appointment.status == AppointmentStatus.PENDING.value
    assert db.query(Appointment).filter(Appointment.slot == '09:00').count() == 2


def test_create_appointment_rejects_slot_outside_the_grid(db, doctor, patient) -> None:
    with pytest.raises(InvalidSlotError):
        booking.create_appointment(db, patient.id, doctor.id, DAY, '13:00')


def test_create_appointment_checks_eligibility_before_conflicts(db, make_doctor, patient, make_appointment) -> None:
    unapproved = make_doctor(is_approved=False)
    make_appointment(patient, unapproved, DAY, '09:00')

    with pytest.raises(DoctorNotEligibleError):
        booking.create_appointment(db, patient.id, unapproved.id, DAY, '09:00')


def test_create_appointment_checks_conflicts_before_grid(db, make_doctor, patient, other_patient, make_appointment) -> None:
    doctor = make_doctor(available_time_slots=[{'start': '10:00', 'end': '10:30'}])
    make_appointment(patient, doctor, DAY, '09:00')

    with pytest.raises(SlotConflictError):
        booking.create_appointment(db, other_patient.id, doctor.id, DAY, '09:00')


def test_create_appointment_honours_configured_windows(db, make_doctor, patient) -> None:
    doctor = make_doctor(available_time_slots=[{'start': '18:00', 'end': '18:30'}])

    appointment = booking.create_appointment(db, patient.id, doctor.id, DAY, '18:00')

    assert appointment.slot == '18:00'
    with pytest.raises(InvalidSlotError):
        booking.create_appointment(db, patient.id, doctor.id, DAY, '09:00')


def test_booking_removes_slot_from_day_availability(db, doctor, patient) -> None:
    booking.create_appointment(db, patient.id, doctor.id, DAY, '11:30')

    assert '11:30' not in slots_for_day(db, doctor.id, DAY)
    assert len(slots_for_day(db, doctor.id, DAY)) == 14


def test_unique_index_reports_conflict_when_precheck_is_bypassed(
    db,
    doctor,
    patient,
    other_patient,
    make_appointment,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    make_appointment(patient, doctor, DAY, '09:00')
    monkeypatch.setattr(booking, 'find_slot_holder', lambda *args: None)

    with pytest.raises(SlotConflictError):
        booking.create_appointment(db, other_patient.id, doctor.id, DAY, '09:00')

    assert db.query(Appointment).count() == 1
    # The session is still usable after the rolled back insert.
    assert booking.create_appointment(db, other_patient.id, doctor.id, DAY, '09:30').slot == '09:30'


@pytest.fixture
def file_session_factory(tmp_path):
    engine = create_engine(
        f'sqlite:///{tmp_path / "race.db"}',
        connect_args={'check_same_thread': False, 'timeout': 30},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        engine.dispose()


def _seed_race(session_factory) -> tuple[int, list[int]]:
    db = session_factory()
    try:
        doctor_user = User(email='dr.a@example.com', name='Dr. A', role=DOCTOR_ROLE)
        patients = [User(email=f'patient{index}@example.com', name=f'Patient {index}') for index in range(2)]
        db.add_all([doctor_user, *patients])
        db.commit()

        doctor = Doctor(
            user_id=doctor_user.id,
            specialty='General Practice',
            consultation_fee=300,
            is_approved=True,
        )
        db.add(doctor)
        db.commit()
        return doctor.id, [patient.id for patient in patients]
    finally:
        db.close()


@pytest.mark.parametrize('bypass_precheck', [False, True])
def test_concurrent_bookings_for_the_same_slot_admit_exactly_one(
    file_session_factory,
    monkeypatch: pytest.MonkeyPatch,
    bypass_precheck: bool,
) -> None:
    doctor_id, patient_ids = _seed_race(file_session_factory)
    if bypass_precheck:
        # Forces both requests past the read check so only the index decides.
        monkeypatch.setattr(booking, 'find_slot_holder', lambda *args: None)

    barrier = threading.Barrier(len(patient_ids))
    outcomes: list[str] = []
    outcomes_lock = threading.Lock()

    def book(patient_id: int) -> None:
        db = file_session_factory()
        try:
            barrier.wait()
            booking.create_appointment(db, patient_id, doctor_id, DAY, '09:00')
            outcome = 'booked'
        except SlotConflictError:
            outcome = 'conflict'
        finally:
            db.close()
        with outcomes_lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=book, args=(patient_id,)) for patient_id in patient_ids]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    assert sorted(outcomes) == ['booked', 'conflict']

    db = file_session_factory()
    try:
        held = db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.date == DAY,
            Appointment.slot == '09:00',
        ).all()
        assert len(held) == 1
        assert held[0].status == AppointmentStatus.PENDING.value
    finally:
        db.close()


def test_other_integrity_errors_are_not_reported_as_conflicts(db, doctor, patient, monkeypatch: pytest.MonkeyPatch) -> None:
    def fail() -> None:
        raise IntegrityError('INSERT INTO appointments', {}, Exception('FOREIGN KEY constraint failed'))

    monkeypatch.setattr(db, 'commit', fail)

    with pytest.raises(IntegrityError):
        booking.create_appointment(db, patient.id, doctor.id, DAY, '09:00')


@pytest.mark.parametrize(
    ('message', 'expected'),
    [
        (
            'UNIQUE constraint failed: appointments.doctor_id, appointments.date, appointments.slot',
            True,
        ),
        (
            'duplicate key value violates unique constraint "uq_appointments_doctor_date_slot_live"',
            True,
        ),
        ('insert or update on table "appointments" violates foreign key constraint', False),
        ('NOT NULL constraint failed: appointments.patient_id', False),
    ],
)
def test_is_slot_conflict_recognises_only_the_live_slot_index(message: str, expected: bool) -> None:
    exc = IntegrityError('INSERT INTO appointments', {}, Exception(message))

    assert booking.is_slot_conflict(exc) is expected
