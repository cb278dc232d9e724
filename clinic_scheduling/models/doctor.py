"""Doctor model definitions."""

from sqlalchemy import Boolean, Column, Integer, String
from clinic_scheduling.database import Base


class Doctor(Base):
    """A doctor profile as seen by the scheduling engine (read-only)."""
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False, default='')
    is_active = Column(Boolean, nullable=False, default=True)
    is_available = Column(Boolean, nullable=False, default=True)
