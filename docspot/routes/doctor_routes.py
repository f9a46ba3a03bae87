import logging
from datetime import date

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ValidationError, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from docspot.auth.dependencies import get_current_user, require_admin, require_doctor
from docspot.database import get_db
from docspot.models.doctor import Doctor
from docspot.models.user import User
from docspot.routes.common import UserSummaryResponse, database_unavailable, ensure_database_ready
from docspot.scheduling import availability
from docspot.scheduling.clock import MAX_MONTH, MIN_MONTH, to_canonical_date
from docspot.scheduling.slot_grid import is_valid_slot, slot_sort_key

logger = logging.getLogger(__name__)

router = APIRouter(tags=['doctors'])

MAX_BIO_LENGTH = 2000


class TimeWindow(BaseModel):
    start: str
    end: str

    @field_validator('start', 'end')
    @classmethod
    def validate_time(cls, value: str) -> str:
        normalized = value.strip()
        if not is_valid_slot(normalized):
            raise ValueError('Times must use the HH:MM 24-hour format.')
        return normalized

    @model_validator(mode='after')
    def validate_order(self) -> 'TimeWindow':
        if slot_sort_key(self.start) >= slot_sort_key(self.end):
            raise ValueError('A time window must end after it starts.')
        return self


class DoctorProfileRequest(BaseModel):
    specialty: str
    experience: int
    qualifications: str
    bio: str
    consultation_fee: float
    available_time_slots: list[TimeWindow] = []

    @field_validator('specialty', 'qualifications', 'bio')
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('This field is required.')
        if len(normalized) > MAX_BIO_LENGTH:
            raise ValueError(f'Must be {MAX_BIO_LENGTH} characters or fewer.')
        return normalized

    @field_validator('experience', 'consultation_fee')
    @classmethod
    def validate_non_negative(cls, value):
        if value < 0:
            raise ValueError('Must not be negative.')
        return value


class DoctorApprovalRequest(BaseModel):
    is_approved: bool


class DoctorResponse(BaseModel):
    id: int
    user: UserSummaryResponse
    specialty: str
    experience: int
    qualifications: str
    bio: str
    consultation_fee: float
    is_approved: bool
    available_time_slots: list[TimeWindow]

    class Config:
        from_attributes = True

    @field_validator('available_time_slots', mode='before')
    @classmethod
    def drop_malformed_windows(cls, value) -> list[TimeWindow]:
        if not isinstance(value, list):
            return []

        windows = []
        for window in value:
            try:
                windows.append(TimeWindow.model_validate(window))
            except ValidationError:
                logger.warning('Hiding malformed stored time window %r', window)
        return windows


@router.get('', response_model=list[DoctorResponse])
def list_doctors(db: Session = Depends(get_db)):
    try:
        doctors = db.query(Doctor).filter(Doctor.is_approved.is_(True)).order_by(Doctor.id.asc()).all()
        return [DoctorResponse.model_validate(doctor) for doctor in doctors]
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc


@router.get('/filter', response_model=list[DoctorResponse])
def filter_doctors(
    specialty: str | None = Query(default=None),
    min_fee: float | None = Query(default=None, ge=0),
    max_fee: float | None = Query(default=None, ge=0),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(Doctor).filter(Doctor.is_approved.is_(True))

        if specialty and specialty.strip():
            query = query.filter(Doctor.specialty.ilike(specialty.strip()))
        if min_fee is not None:
            query = query.filter(Doctor.consultation_fee >= min_fee)
        if max_fee is not None:
            query = query.filter(Doctor.consultation_fee <= max_fee)

        doctors = query.order_by(Doctor.consultation_fee.asc(), Doctor.id.asc()).all()
        return [DoctorResponse.model_validate(doctor) for doctor in doctors]
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc


@router.post('', response_model=DoctorResponse)
def upsert_doctor_profile(
    data: DoctorProfileRequest,
    user: User = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    try:
        doctor = db.query(Doctor).filter(Doctor.user_id == user.id).first()
        if doctor is None:
            doctor = Doctor(user_id=user.id, is_approved=False)
            db.add(doctor)

        doctor.specialty = data.specialty
        doctor.experience = data.experience
        doctor.qualifications = data.qualifications
        doctor.bio = data.bio
        doctor.consultation_fee = data.consultation_fee
        doctor.available_time_slots = [window.model_dump() for window in data.available_time_slots]

        db.commit()
        db.refresh(doctor)
        return DoctorResponse.model_validate(doctor)
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc


@router.get('/{doctor_id}', response_model=DoctorResponse)
def get_doctor(doctor_id: int, db: Session = Depends(get_db)):
    try:
        return DoctorResponse.model_validate(availability.get_doctor_or_404(db, doctor_id))
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc


@router.put('/{doctor_id}/approval', response_model=DoctorResponse)
def set_doctor_approval(
    doctor_id: int,
    data: DoctorApprovalRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    del admin

    try:
        doctor = availability.get_doctor_or_404(db, doctor_id)
        doctor.is_approved = data.is_approved
        db.commit()
        db.refresh(doctor)
        return DoctorResponse.model_validate(doctor)
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc


@router.get('/{doctor_id}/slots', response_model=list[str])
def get_day_slots(
    doctor_id: int,
    day: str = Query(..., alias='date'),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    del user
    slot_date = to_canonical_date(day)
    ensure_database_ready()

    try:
        return availability.slots_for_day(db, doctor_id, slot_date)
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc


@router.get('/{doctor_id}/availability', response_model=dict[date, int])
def get_month_availability(
    doctor_id: int,
    year: int = Query(..., ge=1, le=9998),
    month: int = Query(..., ge=MIN_MONTH, le=MAX_MONTH, description='One-based month (1 = January).'),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    del user
    ensure_database_ready()

    try:
        return availability.availability_for_month(db, doctor_id, year, month)
    except SQLAlchemyError as exc:
        raise database_unavailable(db, exc) from exc
