"""Booking events handed to the notification dispatcher after commit."""

import logging
from datetime import date
from typing import Protocol

from pydantic import BaseModel

from clinic_scheduling.models.appointment import Appointment

logger = logging.getLogger(__name__)

BOOKING_CONFIRMED = 'BookingConfirmed'
BOOKING_CANCELLED = 'BookingCancelled'
BOOKING_RESCHEDULED = 'BookingRescheduled'


class BookingEvent(BaseModel):
    event_type: str
    appointment_id: int
    doctor_id: int
    patient_id: int
    date: date
    time: int
    reason_for_visit: str | None = None
    cancellation_reason: str | None = None
    previous_date: date | None = None
    previous_time: int | None = None

    @classmethod
    def from_appointment(cls, event_type: str, appointment: Appointment, **extra) -> 'BookingEvent':
        return cls(
            event_type=event_type,
            appointment_id=appointment.id,
            doctor_id=appointment.doctor_id,
            patient_id=appointment.patient_id,
            date=appointment.date,
            time=appointment.time,
            reason_for_visit=appointment.reason_for_visit,
            cancellation_reason=appointment.cancellation_reason,
            **extra,
        )


class NotificationDispatcher(Protocol):
    def dispatch(self, event: BookingEvent) -> None:
        ...


class LoggingNotificationDispatcher:
    """Default dispatcher: records the event for downstream pickup."""

    def dispatch(self, event: BookingEvent) -> None:
        logger.info('Notification event %s: %s', event.event_type, event.model_dump_json())


def dispatch_safely(dispatcher: NotificationDispatcher | None, event: BookingEvent) -> bool:
    """Hand an event to the dispatcher. Failures are logged, never raised."""
    if dispatcher is None:
        return False

    try:
        dispatcher.dispatch(event)
    except Exception:
        logger.exception(
            'Notification dispatch failed for %s on appointment %s',
            event.event_type,
            event.appointment_id,
        )
        return False

    return True
