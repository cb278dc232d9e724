"""Read-side views over appointments for patients and doctors."""

from dataclasses import dataclass
from datetime import date

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from clinic_scheduling.core.errors import AppointmentNotFound, InvalidRequest
from clinic_scheduling.core.identity import Caller
from clinic_scheduling.core.timeutils import format_time_of_day
from clinic_scheduling.models.appointment import Appointment, AppointmentStatus
from clinic_scheduling.services.lifecycle import is_participant

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


@dataclass(frozen=True)
class ScheduleEntry:
    id: int
    patient_id: int
    time: int
    label: str
    status: str
    reason_for_visit: str | None


@dataclass(frozen=True)
class PatientStats:
    total_appointments: int
    completed_appointments: int
    cancelled_appointments: int
    upcoming_appointments: int
    missed_appointments: int


def list_appointments(
    db: Session,
    caller: Caller,
    status: str | None = None,
    on_date: date | None = None,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> list[Appointment]:
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise InvalidRequest(f'limit must be between 1 and {MAX_PAGE_SIZE}.')
    if offset < 0:
        raise InvalidRequest('offset must not be negative.')

    query = db.query(Appointment)
    if caller.is_doctor:
        query = query.filter(Appointment.doctor_id == caller.id)
    else:
        query = query.filter(Appointment.patient_id == caller.id)

    if status is not None:
        try:
            query = query.filter(Appointment.status == AppointmentStatus(status).value)
        except ValueError as exc:
            raise InvalidRequest(f'Unknown appointment status: {status}.') from exc

    if on_date is not None:
        query = query.filter(Appointment.date == on_date)

    return query.order_by(
        Appointment.date.desc(),
        Appointment.time.desc(),
    ).limit(limit).offset(offset).all()


def get_appointment(db: Session, caller: Caller, appointment_id: int) -> Appointment:
    appointment = db.get(Appointment, appointment_id)
    if appointment is None or not is_participant(appointment, caller):
        raise AppointmentNotFound()
    return appointment


def doctor_schedule(db: Session, doctor_id: int, start_date: date, end_date: date) -> dict[str, list[ScheduleEntry]]:
    if start_date > end_date:
        raise InvalidRequest('start_date must not be after end_date.')

    appointments = db.query(Appointment).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.date >= start_date,
        Appointment.date <= end_date,
    ).order_by(Appointment.date.asc(), Appointment.time.asc(), Appointment.id.asc()).all()

    schedule: dict[str, list[ScheduleEntry]] = {}
    for appointment in appointments:
        schedule.setdefault(appointment.date.isoformat(), []).append(
            ScheduleEntry(
                id=appointment.id,
                patient_id=appointment.patient_id,
                time=appointment.time,
                label=format_time_of_day(appointment.time),
                status=appointment.status,
                reason_for_visit=appointment.reason_for_visit,
            )
        )
    return schedule


def patient_stats(db: Session, patient_id: int) -> PatientStats:
    def count_status(*statuses: AppointmentStatus):
        return func.coalesce(
            func.sum(case((Appointment.status.in_([status.value for status in statuses]), 1), else_=0)),
            0,
        )

    row = db.query(
        func.count(Appointment.id),
        count_status(AppointmentStatus.COMPLETED),
        count_status(AppointmentStatus.CANCELLED),
        count_status(AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED),
        count_status(AppointmentStatus.NO_SHOW),
    ).filter(Appointment.patient_id == patient_id).one()

    total, completed, cancelled, upcoming, missed = row
    return PatientStats(
        total_appointments=int(total),
        completed_appointments=int(completed),
        cancelled_appointments=int(cancelled),
        upcoming_appointments=int(upcoming),
        missed_appointments=int(missed),
    )
