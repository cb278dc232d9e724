from datetime import date

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.orm import Session

from clinic_scheduling.auth.dependencies import get_current_caller, require_role
from clinic_scheduling.core.errors import NotPermitted
from clinic_scheduling.core.identity import DOCTOR_ROLE, Caller
from clinic_scheduling.core.timeutils import MINUTES_PER_DAY, coerce_time_of_day, format_time_of_day
from clinic_scheduling.database import get_db
from clinic_scheduling.services import appointment_queries
from clinic_scheduling.services.availability_store import (
    MAX_SLOT_DURATION_MINUTES,
    MIN_SLOT_DURATION_MINUTES,
    AvailabilityRuleStore,
    RuleDefinition,
)
from clinic_scheduling.services.slot_generator import SlotGenerator

router = APIRouter(tags=['availability'])


class RuleWindowResponse(BaseModel):
    start_time: int
    end_time: int
    slot_duration_minutes: int

    class Config:
        from_attributes = True


class AvailabilityResponse(BaseModel):
    date: date
    available_slots: list[int]
    available_slot_labels: list[str]
    rule: RuleWindowResponse | None = None


class AvailabilityRuleRequest(BaseModel):
    day_of_week: int
    start_time: int
    end_time: int
    slot_duration_minutes: int

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def parse_time_of_day(cls, value):
        if value in (MINUTES_PER_DAY, '24:00'):
            return MINUTES_PER_DAY
        return coerce_time_of_day(value)

    @field_validator('day_of_week')
    @classmethod
    def validate_day_of_week(cls, value: int) -> int:
        if not 0 <= value <= 6:
            raise ValueError('day_of_week must be between 0 (Sunday) and 6 (Saturday).')
        return value

    @field_validator('slot_duration_minutes')
    @classmethod
    def validate_slot_duration(cls, value: int) -> int:
        if not MIN_SLOT_DURATION_MINUTES <= value <= MAX_SLOT_DURATION_MINUTES:
            raise ValueError(
                f'slot_duration_minutes must be between {MIN_SLOT_DURATION_MINUTES} '
                f'and {MAX_SLOT_DURATION_MINUTES}.'
            )
        return value

    @model_validator(mode='after')
    def validate_window(self):
        if self.start_time >= self.end_time:
            raise ValueError('start_time must be before end_time.')
        return self


class ReplaceRulesRequest(BaseModel):
    rules: list[AvailabilityRuleRequest]


class AvailabilityRuleResponse(BaseModel):
    id: int
    doctor_id: int
    day_of_week: int
    start_time: int
    end_time: int
    slot_duration_minutes: int
    active: bool

    class Config:
        from_attributes = True


class ScheduleEntryResponse(BaseModel):
    id: int
    patient_id: int
    time: int
    label: str
    status: str
    reason_for_visit: str | None = None

    class Config:
        from_attributes = True


class DoctorScheduleResponse(BaseModel):
    doctor_id: int
    schedule: dict[str, list[ScheduleEntryResponse]]
    total_appointments: int


def ensure_own_schedule(caller: Caller, doctor_id: int, action: str) -> None:
    require_role(caller, DOCTOR_ROLE, f'Only doctors can {action}.')
    if caller.id != doctor_id:
        raise NotPermitted(f'Doctors can only {action} for themselves.')


@router.get('/{doctor_id}/availability', response_model=AvailabilityResponse)
def get_availability(
    doctor_id: int,
    date: date = Query(...),
    db: Session = Depends(get_db),
):
    day = SlotGenerator(db).availability(doctor_id, date)

    return AvailabilityResponse(
        date=day.date,
        available_slots=day.available_slots,
        available_slot_labels=[format_time_of_day(slot) for slot in day.available_slots],
        rule=RuleWindowResponse.model_validate(day.rule) if day.rule else None,
    )


@router.get('/{doctor_id}/rules', response_model=list[AvailabilityRuleResponse])
def list_rules(
    doctor_id: int,
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    return AvailabilityRuleStore(db).list_rules(doctor_id, include_inactive=include_inactive)


@router.put('/{doctor_id}/rules', response_model=list[AvailabilityRuleResponse])
def replace_rules(
    doctor_id: int,
    data: ReplaceRulesRequest,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    ensure_own_schedule(caller, doctor_id, 'update availability')

    return AvailabilityRuleStore(db).replace_rules(
        doctor_id,
        [
            RuleDefinition(
                day_of_week=rule.day_of_week,
                start_time=rule.start_time,
                end_time=rule.end_time,
                slot_duration_minutes=rule.slot_duration_minutes,
            )
            for rule in data.rules
        ],
    )


@router.get('/{doctor_id}/schedule', response_model=DoctorScheduleResponse)
def get_doctor_schedule(
    doctor_id: int,
    start_date: date = Query(...),
    end_date: date = Query(...),
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    ensure_own_schedule(caller, doctor_id, 'view the schedule')

    schedule = appointment_queries.doctor_schedule(db, doctor_id, start_date, end_date)
    return DoctorScheduleResponse(
        doctor_id=doctor_id,
        schedule={
            day: [ScheduleEntryResponse.model_validate(entry) for entry in entries]
            for day, entries in schedule.items()
        },
        total_appointments=sum(len(entries) for entries in schedule.values()),
    )
