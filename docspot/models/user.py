"""User model definitions."""

from sqlalchemy import Column, DateTime, Integer, String, func
from docspot.database import Base

PATIENT_ROLE = 'user'
DOCTOR_ROLE = 'doctor'
ADMIN_ROLE = 'admin'


class User(Base):
    """Represents an account supplied by the identity provider."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False, default='')
    phone = Column(String)
    role = Column(String, nullable=False, default=PATIENT_ROLE)  # user/doctor/admin
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE
