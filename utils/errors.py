"""
Error taxonomy for the service layer.

Services raise these; ``app.register_error_handlers`` renders every
``ServiceError`` as::

    {"error": "<kind>", "message": "<text>", "fields": {...}}

with the class's ``status_code``.  Messages are written for end users and
never include stack traces.
"""


class ServiceError(Exception):
    """Base class for every error surfaced to API callers."""
    status_code = 500
    kind = 'ServiceError'
    default_message = 'The request could not be completed.'

    def __init__(self, message=None, fields=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.fields = fields or {}

    def to_dict(self):
        payload = {'error': self.kind, 'message': self.message}
        if self.fields:
            payload['fields'] = self.fields
        return payload


class ValidationError(ServiceError):
    """Malformed input.  ``fields`` maps field name -> list of messages."""
    status_code = 400
    kind = 'ValidationError'
    default_message = 'Validation failed.'

    @classmethod
    def for_field(cls, field, message):
        return cls(message, fields={field: [message]})


class Unauthenticated(ServiceError):
    status_code = 401
    kind = 'Unauthenticated'
    default_message = 'Authentication is required.'


class InvalidToken(Unauthenticated):
    kind = 'InvalidToken'
    default_message = 'The access token is invalid or has expired.'


class AccessDenied(ServiceError):
    status_code = 403
    kind = 'AccessDenied'
    default_message = 'You do not have permission to perform this action.'


class IdentityMismatch(ServiceError):
    status_code = 403
    kind = 'IdentityMismatch'
    default_message = 'Admin ID must match the authenticated user.'


class RecordNotFound(ServiceError):
    status_code = 404
    kind = 'RecordNotFound'
    default_message = 'Record not found.'


class EntryNotFound(ServiceError):
    status_code = 404
    kind = 'EntryNotFound'
    default_message = 'Entry not found.'


class UserNotFound(ServiceError):
    status_code = 404
    kind = 'UserNotFound'
    default_message = 'User not found.'


class AlreadyExists(ServiceError):
    status_code = 409
    kind = 'AlreadyExists'
    default_message = 'A user with this email already exists.'


class AlreadyViewer(ServiceError):
    status_code = 409
    kind = 'AlreadyViewer'
    default_message = 'User is already a viewer of this record.'


class ExternalDependencyError(ServiceError):
    status_code = 503
    kind = 'ExternalDependencyError'
    default_message = 'A dependent service is temporarily unavailable.'
