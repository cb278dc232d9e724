"""Storage access for doctors' recurring weekly availability rules."""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduling.core.errors import InvalidRequest, StorageUnavailable
from clinic_scheduling.core.timeutils import MINUTES_PER_DAY
from clinic_scheduling.models.availability import AvailabilityRule

logger = logging.getLogger(__name__)

MIN_SLOT_DURATION_MINUTES = 15
MAX_SLOT_DURATION_MINUTES = 120


@dataclass(frozen=True)
class RuleDefinition:
    day_of_week: int
    start_time: int
    end_time: int
    slot_duration_minutes: int


def validate_rule_definition(rule: RuleDefinition) -> None:
    if not 0 <= rule.day_of_week <= 6:
        raise InvalidRequest('day_of_week must be between 0 (Sunday) and 6 (Saturday).')
    if not 0 <= rule.start_time < MINUTES_PER_DAY or not 0 < rule.end_time <= MINUTES_PER_DAY:
        raise InvalidRequest('Rule times must fall within a single day.')
    if rule.start_time >= rule.end_time:
        raise InvalidRequest('Rule start_time must be before end_time.')
    if not MIN_SLOT_DURATION_MINUTES <= rule.slot_duration_minutes <= MAX_SLOT_DURATION_MINUTES:
        raise InvalidRequest(
            f'slot_duration_minutes must be between {MIN_SLOT_DURATION_MINUTES} '
            f'and {MAX_SLOT_DURATION_MINUTES}.'
        )


class AvailabilityRuleStore:
    def __init__(self, db: Session):
        self.db = db

    def rules_for(self, doctor_id: int, day_of_week: int) -> list[AvailabilityRule]:
        """Active rules for one weekday. An empty list means the doctor is closed."""
        return self.db.query(AvailabilityRule).filter(
            AvailabilityRule.doctor_id == doctor_id,
            AvailabilityRule.day_of_week == day_of_week,
            AvailabilityRule.active.is_(True),
        ).order_by(AvailabilityRule.start_time.asc(), AvailabilityRule.id.asc()).all()

    def list_rules(self, doctor_id: int, include_inactive: bool = False) -> list[AvailabilityRule]:
        query = self.db.query(AvailabilityRule).filter(AvailabilityRule.doctor_id == doctor_id)
        if not include_inactive:
            query = query.filter(AvailabilityRule.active.is_(True))
        return query.order_by(
            AvailabilityRule.day_of_week.asc(),
            AvailabilityRule.start_time.asc(),
            AvailabilityRule.id.asc(),
        ).all()

    def replace_rules(self, doctor_id: int, rules: list[RuleDefinition]) -> list[AvailabilityRule]:
        """Swap the doctor's weekly schedule for ``rules`` in one transaction.

        Previous rules are deactivated rather than deleted.
        """
        for rule in rules:
            validate_rule_definition(rule)

        try:
            self.db.query(AvailabilityRule).filter(
                AvailabilityRule.doctor_id == doctor_id,
                AvailabilityRule.active.is_(True),
            ).update({AvailabilityRule.active: False}, synchronize_session=False)

            new_rules = [
                AvailabilityRule(
                    doctor_id=doctor_id,
                    day_of_week=rule.day_of_week,
                    start_time=rule.start_time,
                    end_time=rule.end_time,
                    slot_duration_minutes=rule.slot_duration_minutes,
                    active=True,
                )
                for rule in rules
            ]
            self.db.add_all(new_rules)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageUnavailable() from exc

        for rule in new_rules:
            self.db.refresh(rule)

        logger.info('Replaced availability for doctor %s with %s rule(s)', doctor_id, len(new_rules))
        return new_rules
