"""Appointment model definitions."""

from enum import Enum

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, func, text
from sqlalchemy.orm import relationship

from docspot.database import Base, LIVE_SLOT_INDEX_NAME
from docspot.models.doctor import Doctor
from docspot.models.user import User


class AppointmentStatus(str, Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    COMPLETED = 'completed'


# Live appointments occupy their slot for booking purposes.
LIVE_STATUSES = (
    AppointmentStatus.PENDING.value,
    AppointmentStatus.APPROVED.value,
)

# A day's free-slot list also hides slots whose visit already took place.
DAY_VIEW_STATUSES = LIVE_STATUSES + (AppointmentStatus.COMPLETED.value,)

_LIVE_SLOT_PREDICATE = text("status IN ('pending', 'approved')")


class Appointment(Base):
    """Represents a booking of one doctor slot on one calendar day."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)
    date = Column(Date, nullable=False)
    slot = Column(String(5), nullable=False)
    status = Column(String(20), nullable=False, default=AppointmentStatus.PENDING.value)
    prescription = Column(Text)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    patient = relationship(User, foreign_keys=[patient_id], lazy="joined")
    doctor = relationship(Doctor, foreign_keys=[doctor_id], lazy="joined")
    documents = relationship(
        "AppointmentDocument",
        back_populates="appointment",
        order_by="AppointmentDocument.id",
        lazy="selectin",
    )

    __table_args__ = (
        Index(
            LIVE_SLOT_INDEX_NAME,
            "doctor_id", "date", "slot",
            unique=True,
            sqlite_where=_LIVE_SLOT_PREDICATE,
            postgresql_where=_LIVE_SLOT_PREDICATE,
        ),
        Index("idx_appointments_doctor_date", "doctor_id", "date"),
        Index("idx_appointments_patient_date", "patient_id", "date"),
    )


class AppointmentDocument(Base):
    """Metadata for a file stored by the upload service."""
    __tablename__ = "appointment_documents"

    id = Column(Integer, primary_key=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=False, index=True)
    url = Column(String, nullable=False)
    filename = Column(String, nullable=False)
    uploaded_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now())

    appointment = relationship("Appointment", back_populates="documents")
    uploaded_by = relationship(User, lazy="joined")
