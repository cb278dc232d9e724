from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from clinic_scheduling.auth.dependencies import get_current_caller, require_role
from clinic_scheduling.core.identity import PATIENT_ROLE, Caller
from clinic_scheduling.core.timeutils import coerce_time_of_day, format_time_of_day
from clinic_scheduling.database import get_db
from clinic_scheduling.models.appointment import Appointment
from clinic_scheduling.services import appointment_queries
from clinic_scheduling.services.booking import BookingCoordinator
from clinic_scheduling.services.lifecycle import AppointmentLifecycleManager
from clinic_scheduling.services.notifications import LoggingNotificationDispatcher, NotificationDispatcher

router = APIRouter(tags=['appointments'])

_notification_dispatcher = LoggingNotificationDispatcher()


def get_notification_dispatcher() -> NotificationDispatcher:
    return _notification_dispatcher


def get_booking_coordinator(
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> BookingCoordinator:
    return BookingCoordinator(db, dispatcher=dispatcher)


def get_lifecycle_manager(
    coordinator: BookingCoordinator = Depends(get_booking_coordinator),
) -> AppointmentLifecycleManager:
    return AppointmentLifecycleManager(coordinator.db, coordinator)


class CreateAppointmentRequest(BaseModel):
    doctor_id: int
    date: date
    time: int
    reason_for_visit: str | None = None

    @field_validator('time', mode='before')
    @classmethod
    def parse_time(cls, value):
        return coerce_time_of_day(value)


class UpdateAppointmentRequest(BaseModel):
    status: str | None = None
    new_date: date | None = Field(default=None, alias='date')
    new_time: int | None = Field(default=None, alias='time')
    cancellation_reason: str | None = None

    @field_validator('new_time', mode='before')
    @classmethod
    def parse_time(cls, value):
        if value is None:
            return None
        return coerce_time_of_day(value)

    @field_validator('status')
    @classmethod
    def normalize_status(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip().lower()

    class Config:
        populate_by_name = True


class AppointmentResponse(BaseModel):
    id: int
    doctor_id: int
    patient_id: int
    date: date
    time: int
    time_label: str
    status: str
    reason_for_visit: str | None = None
    notes: str | None = None
    cancellation_reason: str | None = None
    created_at: datetime
    updated_at: datetime


class AppointmentListResponse(BaseModel):
    appointments: list[AppointmentResponse]
    limit: int
    offset: int
    count: int


class PatientStatsResponse(BaseModel):
    total_appointments: int
    completed_appointments: int
    cancelled_appointments: int
    upcoming_appointments: int
    missed_appointments: int

    class Config:
        from_attributes = True


def to_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        doctor_id=appointment.doctor_id,
        patient_id=appointment.patient_id,
        date=appointment.date,
        time=appointment.time,
        time_label=format_time_of_day(appointment.time),
        status=appointment.status,
        reason_for_visit=appointment.reason_for_visit,
        notes=appointment.notes,
        cancellation_reason=appointment.cancellation_reason,
        created_at=appointment.created_at,
        updated_at=appointment.updated_at,
    )


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    caller: Caller = Depends(get_current_caller),
    coordinator: BookingCoordinator = Depends(get_booking_coordinator),
):
    require_role(caller, PATIENT_ROLE, 'Only patients can book appointments.')

    appointment = coordinator.book(
        doctor_id=data.doctor_id,
        patient_id=caller.id,
        slot_date=data.date,
        slot_time=data.time,
        reason_for_visit=data.reason_for_visit,
    )
    return to_response(appointment)


@router.get('', response_model=AppointmentListResponse)
def list_appointments(
    status_filter: str | None = Query(default=None, alias='status'),
    on_date: date | None = Query(default=None, alias='date'),
    limit: int = Query(default=appointment_queries.DEFAULT_PAGE_SIZE, ge=1, le=appointment_queries.MAX_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    appointments = appointment_queries.list_appointments(
        db,
        caller,
        status=status_filter,
        on_date=on_date,
        limit=limit,
        offset=offset,
    )
    return AppointmentListResponse(
        appointments=[to_response(appointment) for appointment in appointments],
        limit=limit,
        offset=offset,
        count=len(appointments),
    )


@router.get('/stats', response_model=PatientStatsResponse)
def get_my_stats(
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    require_role(caller, PATIENT_ROLE, 'Only patients have appointment statistics.')
    return PatientStatsResponse.model_validate(appointment_queries.patient_stats(db, caller.id))


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return to_response(appointment_queries.get_appointment(db, caller, appointment_id))


@router.patch('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    data: UpdateAppointmentRequest,
    caller: Caller = Depends(get_current_caller),
    lifecycle: AppointmentLifecycleManager = Depends(get_lifecycle_manager),
):
    appointment = lifecycle.apply_update(
        appointment_id,
        caller,
        status=data.status,
        new_date=data.new_date,
        new_time=data.new_time,
        cancellation_reason=data.cancellation_reason,
    )
    return to_response(appointment)


@router.delete('/{appointment_id}', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    reason: str = Query(...),
    caller: Caller = Depends(get_current_caller),
    lifecycle: AppointmentLifecycleManager = Depends(get_lifecycle_manager),
):
    return to_response(lifecycle.cancel(appointment_id, caller, reason))
