"""Admission of new bookings.

The conflict check below is a fast path that gives a clean error in the
common case. Concurrent bookings for the same doctor, day and slot are
serialized by the partial unique index on ``appointments``; whichever
insert loses the race gets an ``IntegrityError`` that is reported as a
slot conflict.
"""

import logging
from datetime import date

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from docspot.database import LIVE_SLOT_INDEX_NAME
from docspot.models.appointment import Appointment, AppointmentStatus, LIVE_STATUSES
from docspot.models.doctor import Doctor
from docspot.scheduling.errors import DoctorNotEligibleError, InvalidSlotError, SlotConflictError
from docspot.scheduling.slot_grid import daily_slots

logger = logging.getLogger(__name__)

# SQLite names the columns of a violated unique index instead of the index.
_SQLITE_SLOT_VIOLATION = 'UNIQUE constraint failed: appointments.doctor_id, appointments.date, appointments.slot'


def get_eligible_doctor(db: Session, doctor_id: int) -> Doctor:
    doctor = db.query(Doctor).filter(
        Doctor.id == doctor_id,
        Doctor.is_approved.is_(True),
    ).first()
    if doctor is None:
        raise DoctorNotEligibleError()
    return doctor


def find_slot_holder(db: Session, doctor_id: int, day: date, slot: str) -> Appointment | None:
    return db.query(Appointment).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.date == day,
        Appointment.slot == slot,
        Appointment.status.in_(LIVE_STATUSES),
    ).first()


def is_slot_conflict(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return LIVE_SLOT_INDEX_NAME in message or _SQLITE_SLOT_VIOLATION in message


def create_appointment(db: Session, patient_id: int, doctor_id: int, day: date, slot: str) -> Appointment:
    doctor = get_eligible_doctor(db, doctor_id)

    if find_slot_holder(db, doctor_id, day, slot) is not None:
        logger.info('Slot %s on %s for doctor %s is already held', slot, day, doctor_id)
        raise SlotConflictError()

    if slot not in daily_slots(doctor):
        raise InvalidSlotError()

    appointment = Appointment(
        patient_id=patient_id,
        doctor_id=doctor_id,
        date=day,
        slot=slot,
        status=AppointmentStatus.PENDING.value,
    )

    try:
        db.add(appointment)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if not is_slot_conflict(exc):
            raise
        logger.warning('Concurrent booking lost the race for doctor %s on %s at %s', doctor_id, day, slot)
        raise SlotConflictError() from exc

    db.refresh(appointment)
    logger.info(
        'Booked appointment %s for patient %s with doctor %s on %s at %s',
        appointment.id, patient_id, doctor_id, day, slot,
    )
    return appointment
