from clinic_scheduling.core.errors import InvalidTransition
from clinic_scheduling.models.appointment import AppointmentStatus

INITIAL_STATUS = AppointmentStatus.SCHEDULED

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.CONFIRMED: frozenset({
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)

# Statuses whose slot can still be moved to another date or time.
RESCHEDULABLE_STATUSES = frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED})


def can_transition(current: AppointmentStatus | str, target: AppointmentStatus | str) -> bool:
    current_status = AppointmentStatus(current)
    target_status = AppointmentStatus(target)
    return target_status in ALLOWED_TRANSITIONS[current_status]


def ensure_transition(current: AppointmentStatus | str, target: AppointmentStatus | str) -> AppointmentStatus:
    if not can_transition(current, target):
        raise InvalidTransition(
            f'Cannot change an appointment from {AppointmentStatus(current).value} '
            f'to {AppointmentStatus(target).value}.'
        )
    return AppointmentStatus(target)
