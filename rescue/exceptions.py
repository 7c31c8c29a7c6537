# rescue/exceptions.py
"""
Typed failures raised by the coordination core.

Every error carries a machine-readable ``code`` and the HTTP status the views
answer with, so callers can tell a lost race apart from a stale client view.
"""


class CoordinationError(Exception):
    code = 'error'
    status = 400
    default_message = 'The request could not be completed.'

    def __init__(self, message=None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def as_dict(self):
        payload = {'success': False, 'error': self.code, 'message': self.message}
        payload.update(self.context)
        return payload


class DonationValidationError(CoordinationError):
    code = 'validation_error'
    status = 400
    default_message = 'The donation details are invalid.'


class Conflict(CoordinationError):
    """Lost a race against another actor; refresh and retry."""
    ALREADY_CLAIMED = 'already_claimed'
    ALREADY_ASSIGNED = 'already_assigned'
    STALE_VERSION = 'stale_version'

    code = 'conflict'
    status = 409
    default_message = 'This item may have been taken. Please refresh.'

    def __init__(self, reason, message=None, **context):
        self.reason = reason
        super().__init__(message, reason=reason, **context)


class CapacityExceeded(CoordinationError):
    code = 'capacity_exceeded'
    status = 409
    default_message = 'Claiming this donation would exceed your daily capacity.'


class InvalidTransition(CoordinationError):
    code = 'invalid_state'
    status = 422
    default_message = 'This action is not allowed in the donation\'s current state.'

    def __init__(self, state, event, message=None):
        self.state = state
        self.event = event
        message = message or f"Cannot {event} a donation that is {state}."
        super().__init__(message, state=state, event=event)


class MissingPhoto(CoordinationError):
    code = 'missing_photo'
    status = 400
    default_message = 'A photo is required to confirm this handover.'


class CollaboratorTimeout(CoordinationError):
    code = 'timeout'
    status = 504
    default_message = 'A dependent service did not respond in time. Please retry.'


class NotFound(CoordinationError):
    code = 'not_found'
    status = 404
    default_message = 'Donation not found.'


class NotAuthorized(CoordinationError):
    code = 'not_authorized'
    status = 403
    default_message = 'Unauthorized.'
