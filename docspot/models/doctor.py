"""Doctor model definitions."""

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import relationship

from docspot.database import Base
from docspot.models.user import User


class Doctor(Base):
    """Represents a doctor profile attached to a user account."""
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    specialty = Column(String, nullable=False, index=True)
    experience = Column(Integer, nullable=False, default=0)
    qualifications = Column(String, nullable=False, default='')
    bio = Column(Text, nullable=False, default='')
    consultation_fee = Column(Numeric(10, 2, asdecimal=False), nullable=False, default=0)
    is_approved = Column(Boolean, nullable=False, default=False)
    # [{"start": "09:00", "end": "09:30"}, ...]; empty means the standard grid.
    available_time_slots = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship(User, lazy="joined")
