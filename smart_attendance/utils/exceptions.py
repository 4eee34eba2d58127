"""Error taxonomy for the verification engine.

Hard failures are reserved for malformed input and missing configuration.
Absence of evidence (no liveness frames, no scanned QR) is never an error;
it is encoded as a zero or false verdict by the validators.
"""
from typing import Optional


class VerificationError(Exception):
    """Base class for every engine error."""

    status_code = 400
    error_code = 'verification_error'

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__

    def to_dict(self) -> dict:
        return {
            'error': True,
            'message': self.message,
            'status_code': self.status_code,
            'error_code': self.error_code
        }


class InvalidInput(VerificationError):
    """Malformed input."""

    error_code = 'invalid_input'


class DimensionMismatch(InvalidInput):
    """Descriptor vectors have different lengths."""

    error_code = 'dimension_mismatch'


class NotConfigured(VerificationError):
    """This check is not applicable for the class."""

    status_code = 409
    error_code = 'not_configured'


class GeofenceNotConfigured(NotConfigured):
    """Class has no geofence configured."""

    error_code = 'geofence_not_configured'


class SessionNotConfigured(NotConfigured):
    """Class has no active session token."""

    error_code = 'session_not_configured'


class NoEnrollment(VerificationError):
    """Student has no enrolled face reference."""

    status_code = 404
    error_code = 'no_enrollment'


class ClassNotFound(VerificationError):
    """Class not found."""

    status_code = 404
    error_code = 'class_not_found'


class AlreadyMarked(VerificationError):
    """Attendance already marked today."""

    status_code = 409
    error_code = 'already_marked'

    def __init__(self, message: Optional[str] = None, record=None):
        super().__init__(message)
        self.record = record
