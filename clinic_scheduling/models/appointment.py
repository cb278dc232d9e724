"""Appointment model definitions."""

import enum
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, text
from clinic_scheduling.database import ACTIVE_SLOT_INDEX_NAME, ACTIVE_SLOT_PREDICATE, Base


class AppointmentStatus(str, enum.Enum):
    SCHEDULED = 'scheduled'
    CONFIRMED = 'confirmed'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    NO_SHOW = 'no_show'


class Appointment(Base):
    """A booked appointment. Cancelled rows are kept for audit history."""
    __tablename__ = "appointments"
    __table_args__ = (
        # At most one non-cancelled appointment per doctor, date and time.
        Index(
            ACTIVE_SLOT_INDEX_NAME,
            'doctor_id',
            'date',
            'time',
            unique=True,
            postgresql_where=text(ACTIVE_SLOT_PREDICATE),
            sqlite_where=text(ACTIVE_SLOT_PREDICATE),
        ),
        Index('idx_appointments_patient_date', 'patient_id', 'date'),
    )

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)
    patient_id = Column(Integer, nullable=False)
    date = Column(Date, nullable=False)
    time = Column(Integer, nullable=False)  # minutes since midnight
    status = Column(String, nullable=False, default=AppointmentStatus.SCHEDULED.value)
    reason_for_visit = Column(String)
    notes = Column(String)
    cancellation_reason = Column(String)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)
