"""Transactional booking of appointment slots.

Application-level checks here are advisory. The authoritative guard against
double booking is the partial unique index on ``appointments``; an
``IntegrityError`` raised by it at flush/commit time is the normal signal that
another request claimed the slot first and is reported as ``SlotConflict``.
"""

import logging
import time as time_module
from collections.abc import Callable
from datetime import date
from typing import TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from clinic_scheduling.core import config
from clinic_scheduling.core.errors import (
    DoctorUnavailable,
    InvalidDate,
    InvalidRequest,
    InvalidTransition,
    SchedulingError,
    SlotConflict,
    SlotOutsideSchedule,
    StorageUnavailable,
)
from clinic_scheduling.core.timeutils import MINUTES_PER_DAY, format_time_of_day
from clinic_scheduling.models.appointment import Appointment
from clinic_scheduling.models.doctor import Doctor
from clinic_scheduling.services.notifications import (
    BOOKING_CONFIRMED,
    BookingEvent,
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    dispatch_safely,
)
from clinic_scheduling.services.slot_generator import SlotGenerator
from clinic_scheduling.services.state_machine import INITIAL_STATUS

logger = logging.getLogger(__name__)

T = TypeVar('T')


def normalize_optional_text(value: str | None, field_name: str) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > config.MAX_REASON_LENGTH:
        raise InvalidRequest(f'{field_name} must be {config.MAX_REASON_LENGTH} characters or fewer.')

    return normalized


class BookingCoordinator:
    def __init__(
        self,
        db: Session,
        dispatcher: NotificationDispatcher | None = None,
        today_provider: Callable[[], date] = date.today,
        max_attempts: int | None = None,
        retry_backoff_seconds: float | None = None,
    ):
        self.db = db
        self.dispatcher = dispatcher if dispatcher is not None else LoggingNotificationDispatcher()
        self.today_provider = today_provider
        self.max_attempts = max(1, max_attempts or config.BOOKING_MAX_ATTEMPTS)
        self.retry_backoff_seconds = (
            config.BOOKING_RETRY_BACKOFF_SECONDS if retry_backoff_seconds is None else retry_backoff_seconds
        )
        self.slot_generator = SlotGenerator(db)

    def validate_slot(self, doctor_id: int, slot_date: date, slot_time: int) -> Doctor:
        """Run the advisory booking checks in order, failing on the first."""
        doctor = self.db.get(Doctor, doctor_id)
        if doctor is None or not doctor.is_active or not doctor.is_available:
            raise DoctorUnavailable()

        if not 0 <= slot_time < MINUTES_PER_DAY:
            raise SlotOutsideSchedule(f'{slot_time} is not a valid time of day.')

        if not self.slot_generator.is_slot_start(doctor_id, slot_date, slot_time):
            raise SlotOutsideSchedule(
                f'{format_time_of_day(slot_time)} on {slot_date.isoformat()} '
                "is not a slot in the doctor's schedule."
            )

        if slot_date < self.today_provider():
            raise InvalidDate()

        return doctor

    def run_transaction(self, operation: Callable[[], T], action: str) -> T:
        """Run ``operation`` and commit, retrying only transient storage failures.

        A unique-index violation is a lost slot race and is never retried.
        A ``StaleDataError`` means the row changed after it was read; the operation
        is re-run so its checks see the committed state.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                result = operation()
                self.db.commit()
                return result
            except SchedulingError:
                self.db.rollback()
                raise
            except IntegrityError as exc:
                self.db.rollback()
                logger.warning('Slot conflict during %s: %s', action, exc.orig)
                raise SlotConflict() from exc
            except StaleDataError as exc:
                self.db.rollback()
                if attempt >= self.max_attempts:
                    logger.warning('Giving up on %s after %s concurrent change(s)', action, attempt)
                    raise InvalidTransition('The appointment was changed by another request.') from exc
                logger.info(
                    'Appointment changed during %s, re-reading (attempt %s of %s)',
                    action,
                    attempt,
                    self.max_attempts,
                )
            except OperationalError as exc:
                self.db.rollback()
                if attempt >= self.max_attempts:
                    logger.error('Giving up on %s after %s attempt(s): %s', action, attempt, exc.orig)
                    raise StorageUnavailable() from exc
                logger.warning(
                    'Transient storage failure during %s (attempt %s of %s): %s',
                    action,
                    attempt,
                    self.max_attempts,
                    exc.orig,
                )
                if self.retry_backoff_seconds:
                    time_module.sleep(self.retry_backoff_seconds * attempt)
            except SQLAlchemyError as exc:
                self.db.rollback()
                logger.exception('Storage failure during %s', action)
                raise StorageUnavailable() from exc
            except Exception:
                self.db.rollback()
                raise

        raise StorageUnavailable()

    def book(
        self,
        doctor_id: int,
        patient_id: int,
        slot_date: date,
        slot_time: int,
        reason_for_visit: str | None = None,
    ) -> Appointment:
        reason = normalize_optional_text(reason_for_visit, 'reason_for_visit')

        def claim_slot() -> Appointment:
            self.validate_slot(doctor_id, slot_date, slot_time)
            appointment = Appointment(
                doctor_id=doctor_id,
                patient_id=patient_id,
                date=slot_date,
                time=slot_time,
                status=INITIAL_STATUS.value,
                reason_for_visit=reason,
            )
            self.db.add(appointment)
            self.db.flush()
            return appointment

        appointment = self.run_transaction(claim_slot, 'booking')
        self.db.refresh(appointment)

        logger.info(
            'Booked appointment %s for patient %s with doctor %s on %s at %s',
            appointment.id,
            patient_id,
            doctor_id,
            slot_date.isoformat(),
            format_time_of_day(slot_time),
        )

        dispatch_safely(self.dispatcher, BookingEvent.from_appointment(BOOKING_CONFIRMED, appointment))
        return appointment
