"""Derives bookable slot start times from a doctor's weekly rules."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy.orm import Session

from clinic_scheduling.core.timeutils import day_of_week
from clinic_scheduling.models.appointment import Appointment, AppointmentStatus
from clinic_scheduling.models.availability import AvailabilityRule
from clinic_scheduling.services.availability_store import AvailabilityRuleStore


@dataclass(frozen=True)
class RuleWindow:
    start_time: int
    end_time: int
    slot_duration_minutes: int


@dataclass(frozen=True)
class DayAvailability:
    date: date
    available_slots: list[int] = field(default_factory=list)
    rule: RuleWindow | None = None


def iter_rule_slot_starts(rule: AvailabilityRule | RuleWindow) -> Iterator[int]:
    """Yield slot starts for one rule. A trailing partial slot is dropped."""
    duration = rule.slot_duration_minutes
    if duration <= 0:
        return

    current = rule.start_time
    while current + duration <= rule.end_time:
        yield current
        current += duration


def collect_slot_starts(rules: list[AvailabilityRule]) -> set[int]:
    starts: set[int] = set()
    for rule in rules:
        starts.update(iter_rule_slot_starts(rule))
    return starts


def get_held_times(db: Session, doctor_id: int, slot_date: date) -> set[int]:
    held = db.query(Appointment.time).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.date == slot_date,
        Appointment.status != AppointmentStatus.CANCELLED.value,
    ).all()
    return {held_time for (held_time,) in held}


class SlotGenerator:
    """Computes open slots fresh on every call. Nothing is cached."""

    def __init__(self, db: Session, rule_store: AvailabilityRuleStore | None = None):
        self.db = db
        self.rule_store = rule_store or AvailabilityRuleStore(db)

    def schedule_slots(self, doctor_id: int, slot_date: date) -> set[int]:
        """Every grid start for the day, ignoring bookings."""
        return collect_slot_starts(self.rule_store.rules_for(doctor_id, day_of_week(slot_date)))

    def is_slot_start(self, doctor_id: int, slot_date: date, slot_time: int) -> bool:
        return slot_time in self.schedule_slots(doctor_id, slot_date)

    def generate_slots(self, doctor_id: int, slot_date: date) -> list[int]:
        starts = self.schedule_slots(doctor_id, slot_date)
        if not starts:
            return []

        held_times = get_held_times(self.db, doctor_id, slot_date)
        return sorted(starts - held_times)

    def availability(self, doctor_id: int, slot_date: date) -> DayAvailability:
        rules = self.rule_store.rules_for(doctor_id, day_of_week(slot_date))
        if not rules:
            return DayAvailability(date=slot_date)

        first_rule = rules[0]
        held_times = get_held_times(self.db, doctor_id, slot_date)
        return DayAvailability(
            date=slot_date,
            available_slots=sorted(collect_slot_starts(rules) - held_times),
            rule=RuleWindow(
                start_time=first_rule.start_time,
                end_time=first_rule.end_time,
                slot_duration_minutes=first_rule.slot_duration_minutes,
            ),
        )
