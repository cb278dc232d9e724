"""Appointment status transitions, cancellation and rescheduling."""

import logging
from datetime import date

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from clinic_scheduling.core.errors import (
    AppointmentNotFound,
    InvalidRequest,
    InvalidTransition,
    NotPermitted,
)
from clinic_scheduling.core.identity import Caller
from clinic_scheduling.core.timeutils import format_time_of_day
from clinic_scheduling.models.appointment import Appointment, AppointmentStatus
from clinic_scheduling.services.booking import BookingCoordinator, normalize_optional_text
from clinic_scheduling.services.notifications import (
    BOOKING_CANCELLED,
    BOOKING_RESCHEDULED,
    BookingEvent,
    dispatch_safely,
)
from clinic_scheduling.services.state_machine import RESCHEDULABLE_STATUSES, ensure_transition

logger = logging.getLogger(__name__)


def is_participant(appointment: Appointment, caller: Caller) -> bool:
    if caller.is_patient:
        return appointment.patient_id == caller.id
    if caller.is_doctor:
        return appointment.doctor_id == caller.id
    return False


class AppointmentLifecycleManager:
    def __init__(self, db: Session, coordinator: BookingCoordinator | None = None):
        self.db = db
        self.coordinator = coordinator or BookingCoordinator(db)

    def _load(self, appointment_id: int, requester: Caller, for_update: bool = False) -> Appointment:
        query = self.db.query(Appointment).filter(Appointment.id == appointment_id).populate_existing()
        if for_update:
            query = query.with_for_update()
        appointment = query.first()

        # Non-participants get the same answer as a missing appointment.
        if appointment is None or not is_participant(appointment, requester):
            raise AppointmentNotFound()
        return appointment

    def _write_if_unchanged(self, appointment: Appointment, expected_status: str, **values) -> None:
        """Update the row only while it still has the status the caller checked.

        Row locks are a no-op on SQLite, so the status check is repeated in the
        UPDATE itself and a zero row count means another request got there first.
        """
        updated = (
            self.db.query(Appointment)
            .filter(Appointment.id == appointment.id, Appointment.status == expected_status)
            .update(values, synchronize_session=False)
        )
        if updated != 1:
            raise StaleDataError(f'Appointment {appointment.id} is no longer {expected_status}.')

    def cancel(self, appointment_id: int, requester: Caller, reason: str | None) -> Appointment:
        def apply() -> Appointment:
            appointment = self._load(appointment_id, requester, for_update=True)
            ensure_transition(appointment.status, AppointmentStatus.CANCELLED)

            normalized_reason = normalize_optional_text(reason, 'cancellation_reason')
            if not normalized_reason:
                raise InvalidRequest('A cancellation reason is required.')

            self._write_if_unchanged(
                appointment,
                appointment.status,
                status=AppointmentStatus.CANCELLED.value,
                cancellation_reason=normalized_reason,
            )
            return appointment

        appointment = self.coordinator.run_transaction(apply, 'cancellation')
        self.db.refresh(appointment)

        logger.info('Cancelled appointment %s by %s %s', appointment.id, requester.role, requester.id)
        dispatch_safely(
            self.coordinator.dispatcher,
            BookingEvent.from_appointment(BOOKING_CANCELLED, appointment),
        )
        return appointment

    def reschedule(
        self,
        appointment_id: int,
        requester: Caller,
        new_date: date | None = None,
        new_time: int | None = None,
    ) -> Appointment:
        """Move an appointment to a new slot, or leave it untouched on failure.

        A missing date or time keeps the current one. The old slot is released
        implicitly because it belongs to the same row.
        """
        previous: dict = {}

        def apply() -> Appointment:
            appointment = self._load(appointment_id, requester, for_update=True)
            if AppointmentStatus(appointment.status) not in RESCHEDULABLE_STATUSES:
                raise InvalidTransition(f'A {appointment.status} appointment cannot be rescheduled.')

            target_date = new_date if new_date is not None else appointment.date
            target_time = new_time if new_time is not None else appointment.time
            self.coordinator.validate_slot(appointment.doctor_id, target_date, target_time)

            previous['date'] = appointment.date
            previous['time'] = appointment.time
            self._write_if_unchanged(appointment, appointment.status, date=target_date, time=target_time)
            return appointment

        appointment = self.coordinator.run_transaction(apply, 'reschedule')
        self.db.refresh(appointment)

        logger.info(
            'Rescheduled appointment %s from %s %s to %s %s',
            appointment.id,
            previous['date'].isoformat(),
            format_time_of_day(previous['time']),
            appointment.date.isoformat(),
            format_time_of_day(appointment.time),
        )
        dispatch_safely(
            self.coordinator.dispatcher,
            BookingEvent.from_appointment(
                BOOKING_RESCHEDULED,
                appointment,
                previous_date=previous['date'],
                previous_time=previous['time'],
            ),
        )
        return appointment

    def _transition(
        self,
        appointment_id: int,
        requester: Caller,
        target: AppointmentStatus,
        doctor_only: bool = True,
    ) -> Appointment:
        def apply() -> Appointment:
            appointment = self._load(appointment_id, requester, for_update=True)
            if doctor_only and not requester.is_doctor:
                raise NotPermitted(f"Only the appointment's doctor can mark it {target.value}.")

            ensure_transition(appointment.status, target)
            self._write_if_unchanged(appointment, appointment.status, status=target.value)
            return appointment

        appointment = self.coordinator.run_transaction(apply, f'transition to {target.value}')
        self.db.refresh(appointment)
        logger.info('Appointment %s is now %s', appointment.id, appointment.status)
        return appointment

    def confirm(self, appointment_id: int, requester: Caller) -> Appointment:
        return self._transition(appointment_id, requester, AppointmentStatus.CONFIRMED)

    def mark_completed(self, appointment_id: int, requester: Caller) -> Appointment:
        return self._transition(appointment_id, requester, AppointmentStatus.COMPLETED)

    def mark_no_show(self, appointment_id: int, requester: Caller) -> Appointment:
        return self._transition(appointment_id, requester, AppointmentStatus.NO_SHOW)

    def apply_update(
        self,
        appointment_id: int,
        requester: Caller,
        status: str | None = None,
        new_date: date | None = None,
        new_time: int | None = None,
        cancellation_reason: str | None = None,
    ) -> Appointment:
        """Route a partial update to the matching lifecycle operation."""
        wants_reschedule = new_date is not None or new_time is not None

        if status is not None and wants_reschedule:
            raise InvalidRequest('Change the status or reschedule, not both in one request.')

        if cancellation_reason is not None and status != AppointmentStatus.CANCELLED.value:
            raise InvalidRequest('cancellation_reason is only accepted when cancelling.')

        if wants_reschedule:
            return self.reschedule(appointment_id, requester, new_date, new_time)

        if status is None:
            raise InvalidRequest('Nothing to update.')

        try:
            target = AppointmentStatus(status)
        except ValueError as exc:
            raise InvalidRequest(f'Unknown appointment status: {status}.') from exc

        if target is AppointmentStatus.CANCELLED:
            return self.cancel(appointment_id, requester, cancellation_reason)
        if target is AppointmentStatus.CONFIRMED:
            return self.confirm(appointment_id, requester)
        if target is AppointmentStatus.COMPLETED:
            return self.mark_completed(appointment_id, requester)
        if target is AppointmentStatus.NO_SHOW:
            return self.mark_no_show(appointment_id, requester)

        return self._transition(appointment_id, requester, target, doctor_only=False)
