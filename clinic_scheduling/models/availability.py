"""Availability rule model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer
from clinic_scheduling.database import Base


class AvailabilityRule(Base):
    """A doctor's recurring weekly working window on one weekday."""
    __tablename__ = "availability_rules"
    __table_args__ = (
        CheckConstraint('day_of_week BETWEEN 0 AND 6', name='ck_availability_rules_day_of_week'),
        CheckConstraint('start_time < end_time', name='ck_availability_rules_window'),
        CheckConstraint(
            'slot_duration_minutes BETWEEN 15 AND 120',
            name='ck_availability_rules_slot_duration',
        ),
        Index('idx_availability_rules_doctor_day', 'doctor_id', 'day_of_week', 'active'),
    )

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 0=Sunday
    start_time = Column(Integer, nullable=False)  # minutes since midnight
    end_time = Column(Integer, nullable=False)
    slot_duration_minutes = Column(Integer, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
