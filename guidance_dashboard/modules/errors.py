"""
Error types shared by the attendance modules.

Managers catch these at their public boundary and turn them into the
result dictionaries the routes consume ('success', 'error_type', 'message').
"""


class AttendanceError(Exception):
    """Base class for attendance system errors."""

    error_type = 'system_error'

    def __init__(self, message: str = None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class MalformedPayload(AttendanceError):
    """Scanned QR payload is not parseable student data."""

    error_type = 'malformed_payload'


class UpstreamUnavailable(AttendanceError):
    """Student or attendance storage is unreachable."""

    error_type = 'upstream_unavailable'


class StudentNotFound(AttendanceError):
    """No student exists with the requested identity."""

    error_type = 'student_not_found'


class InvalidStudentData(AttendanceError):
    """Enrollment data failed validation."""

    error_type = 'invalid_student'
