"""Appointment status lifecycle and who may touch an appointment."""

import logging

from sqlalchemy.orm import Session

from docspot.models.appointment import Appointment, AppointmentDocument, AppointmentStatus
from docspot.models.doctor import Doctor
from docspot.models.user import DOCTOR_ROLE, User
from docspot.scheduling.errors import (
    AppointmentNotFoundError,
    DoctorNotFoundError,
    ForbiddenError,
    InvalidInputError,
    InvalidTransitionError,
    NoFileUploadedError,
)

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({AppointmentStatus.APPROVED, AppointmentStatus.REJECTED}),
    AppointmentStatus.APPROVED: frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.REJECTED}),
    AppointmentStatus.REJECTED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
}


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    if current == target:
        return True
    return target in ALLOWED_TRANSITIONS[current]


def is_patient(appointment: Appointment, caller: User) -> bool:
    return appointment.patient_id == caller.id


def is_assigned_doctor(appointment: Appointment, caller: User) -> bool:
    return appointment.doctor is not None and appointment.doctor.user_id == caller.id


def is_party(appointment: Appointment, caller: User) -> bool:
    return is_patient(appointment, caller) or is_assigned_doctor(appointment, caller)


def _load(db: Session, appointment_id: int) -> Appointment:
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        raise AppointmentNotFoundError()
    return appointment


def get_appointment(db: Session, appointment_id: int, caller: User) -> Appointment:
    appointment = _load(db, appointment_id)
    if not is_party(appointment, caller):
        raise ForbiddenError()
    return appointment


def list_appointments_for(db: Session, caller: User) -> list[Appointment]:
    query = db.query(Appointment)

    if caller.role == DOCTOR_ROLE:
        doctor = db.query(Doctor).filter(Doctor.user_id == caller.id).first()
        if doctor is None:
            raise DoctorNotFoundError('Doctor profile not found.')
        query = query.filter(Appointment.doctor_id == doctor.id)
    else:
        query = query.filter(Appointment.patient_id == caller.id)

    return query.order_by(Appointment.date.asc(), Appointment.slot.asc(), Appointment.id.asc()).all()


def update_appointment(
    db: Session,
    appointment_id: int,
    caller: User,
    status: AppointmentStatus | None = None,
    prescription: str | None = None,
    notes: str | None = None,
) -> Appointment:
    """Apply a status change and/or annotations on behalf of ``caller``.

    The assigned doctor and admins may change the status and write the
    prescription. The patient may only write notes.
    """
    appointment = _load(db, appointment_id)
    may_manage = is_assigned_doctor(appointment, caller) or caller.is_admin

    if not (may_manage or is_patient(appointment, caller)):
        raise ForbiddenError()

    if (status is not None or prescription is not None) and not may_manage:
        raise ForbiddenError('Only the assigned doctor can change the status or prescription.')

    if status is not None:
        current = AppointmentStatus(appointment.status)
        try:
            target = AppointmentStatus(status)
        except ValueError as exc:
            raise InvalidInputError(f'Unknown appointment status: {status!r}.') from exc
        if not can_transition(current, target):
            raise InvalidTransitionError(
                f'Cannot change an appointment from {current.value} to {target.value}.'
            )
        if current != target:
            appointment.status = target.value
            logger.info(
                'Appointment %s moved from %s to %s by user %s',
                appointment.id, current.value, target.value, caller.id,
            )

    if prescription is not None:
        appointment.prescription = prescription
    if notes is not None:
        appointment.notes = notes

    db.commit()
    db.refresh(appointment)
    return appointment


def append_document(db: Session, appointment_id: int, caller: User, url: str | None, filename: str | None) -> Appointment:
    appointment = _load(db, appointment_id)
    if not is_party(appointment, caller):
        raise ForbiddenError()

    if not url or not filename:
        raise NoFileUploadedError()

    document = AppointmentDocument(
        appointment_id=appointment.id,
        url=url,
        filename=filename,
        uploaded_by_id=caller.id,
    )
    db.add(document)
    db.commit()
    db.refresh(appointment)
    logger.info('User %s attached %s to appointment %s', caller.id, filename, appointment.id)
    return appointment
