"""Error taxonomy of the scheduling engine.

Services raise these; the API layer renders them through a single exception
handler, so route functions never translate them by hand.
"""


class SchedulingError(Exception):
    code = 'scheduling_error'
    status_code = 400
    default_message = 'Scheduling request failed.'

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class DoctorUnavailable(SchedulingError):
    code = 'doctor_unavailable'
    default_message = 'Doctor is currently not accepting appointments.'


class SlotOutsideSchedule(SchedulingError):
    code = 'slot_outside_schedule'
    default_message = "Requested time is not a slot in the doctor's schedule."


class InvalidDate(SchedulingError):
    code = 'invalid_date'
    default_message = 'Appointments cannot be booked in the past.'


class InvalidRequest(SchedulingError):
    code = 'invalid_request'
    default_message = 'Invalid request.'


class SlotConflict(SchedulingError):
    code = 'slot_conflict'
    status_code = 409
    default_message = 'This time slot is no longer available.'


class InvalidTransition(SchedulingError):
    code = 'invalid_transition'
    status_code = 409
    default_message = 'Appointment cannot move to the requested status.'


class StorageUnavailable(SchedulingError):
    code = 'storage_unavailable'
    status_code = 503
    default_message = 'Database unavailable. Please try again.'


class AppointmentNotFound(SchedulingError):
    code = 'appointment_not_found'
    status_code = 404
    default_message = 'Appointment not found.'


class NotPermitted(SchedulingError):
    code = 'not_permitted'
    status_code = 403
    default_message = 'You are not allowed to perform this action.'
