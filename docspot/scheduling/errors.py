"""Domain errors raised by the scheduling engine.

Each error carries the HTTP status and a stable ``code`` so clients can
react to the kind of failure (for example re-query availability after a
``slot_conflict``) without parsing the message.
"""


class SchedulingError(Exception):
    status_code = 400
    code = 'scheduling_error'
    default_detail = 'The request could not be processed.'

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFoundError(SchedulingError):
    status_code = 404
    code = 'not_found'
    default_detail = 'Resource not found.'


class DoctorNotFoundError(NotFoundError):
    code = 'doctor_not_found'
    default_detail = 'Doctor not found.'


class AppointmentNotFoundError(NotFoundError):
    code = 'appointment_not_found'
    default_detail = 'Appointment not found.'


class ForbiddenError(SchedulingError):
    status_code = 403
    code = 'forbidden'
    default_detail = 'User not authorized.'


class DoctorNotEligibleError(SchedulingError):
    status_code = 404
    code = 'doctor_not_eligible'
    default_detail = 'Doctor not found or not approved.'


class SlotConflictError(SchedulingError):
    status_code = 409
    code = 'slot_conflict'
    default_detail = 'This time slot is already booked.'


class InvalidInputError(SchedulingError, ValueError):
    status_code = 400
    code = 'invalid_input'
    default_detail = 'Invalid input.'


class InvalidSlotError(InvalidInputError):
    code = 'invalid_slot'
    default_detail = 'This time is not offered by the doctor.'


class NoFileUploadedError(InvalidInputError):
    code = 'no_file_uploaded'
    default_detail = 'No file uploaded.'


class InvalidTransitionError(SchedulingError):
    status_code = 409
    code = 'invalid_transition'
    default_detail = 'This status change is not allowed.'
