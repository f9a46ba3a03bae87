from datetime import date, datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from docspot.auth.dependencies import get_current_user
from docspot.database import get_db
from docspot.models.appointment import AppointmentStatus
from docspot.models.user import User
from docspot.routes.common import UserSummaryResponse, database_unavailable, ensure_database_ready
from docspot.scheduling import booking, lifecycle
from docspot.scheduling.clock import to_canonical_date
from docspot.scheduling.slot_grid import is_valid_slot

router = APIRouter(tags=['appointments'])

MAX_APPOINTMENT_NOTES_LENGTH = 2000
MAX_FILENAME_LENGTH = 255
MAX_URL_LENGTH = 2048


def _normalize_text(value: str | None, max_length: int) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if len(normalized) > max_length:
        raise ValueError(f'Must be {max_length} characters or fewer.')

    return normalized


class CreateAppointmentRequest(BaseModel):
    doctor_id: int
    date: date
    slot: str

    @field_validator('date', mode='before')
    @classmethod
    def validate_date(cls, value):
        return to_canonical_date(value)

    @field_validator('slot')
    @classmethod
    def validate_slot(cls, value: str) -> str:
        normalized = value.strip()
        if not is_valid_slot(normalized):
            raise ValueError('Time must use the HH:MM 24-hour format.')
        return normalized


class UpdateAppointmentRequest(BaseModel):
    status: AppointmentStatus | None = None
    prescription: str | None = None
    notes: str | None = None

    @field_validator('prescription', 'notes')
    @classmethod
    def validate_annotation(cls, value: str | None) -> str | None:
        return _normalize_text(value, MAX_APPOINTMENT_NOTES_LENGTH)


class AppendDocumentRequest(BaseModel):
    url: str | None = None
    filename: str | None = None

    @field_validator('url')
    @classmethod
    def validate_url(cls, value: str | None) -> str | None:
        return _normalize_text(value, MAX_URL_LENGTH) or None

    @field_validator('filename')
    @classmethod
    def validate_filename(cls, value: str | None) -> str | None:
        return _normalize_text(value, MAX_FILENAME_LENGTH) or None


class DoctorSummaryResponse(BaseModel):
    id: int
    specialty: str
    consultation_fee: float
    user: UserSummaryResponse

    class Config:
        from_attributes = True


class DocumentResponse(BaseModel):
    id: int
    url: str
    filename: str
    uploaded_by: UserSummaryResponse
    uploaded_at: datetime | None = None

    class Config:
        from_attributes = True


class AppointmentResponse(BaseModel):
    id: int
    date: date
    slot: str
    status: AppointmentStatus
    prescription: str | None = None
    notes: str | None = None
    patient: UserSummaryResponse
    doctor: DoctorSummaryResponse
    documents: list[DocumentResponse] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = booking.create_appointment(db, user.id, data.doctor_id, data.date, data.slot)
        return AppointmentResponse.model_validate(appointment)
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc


@router.get('', response_model=list[AppointmentResponse])
def list_my_appointments(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointments = lifecycle.list_appointments_for(db, user)
        return [AppointmentResponse.model_validate(appointment) for appointment in appointments]
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return AppointmentResponse.model_validate(lifecycle.get_appointment(db, appointment_id, user))
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc


@router.put('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    data: UpdateAppointmentRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = lifecycle.update_appointment(
            db,
            appointment_id,
            user,
            status=data.status,
            prescription=data.prescription,
            notes=data.notes,
        )
        return AppointmentResponse.model_validate(appointment)
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc


@router.post('/{appointment_id}/documents', response_model=AppointmentResponse)
def append_document(
    appointment_id: int,
    data: AppendDocumentRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = lifecycle.append_document(db, appointment_id, user, data.url, data.filename)
        return AppointmentResponse.model_validate(appointment)
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc
