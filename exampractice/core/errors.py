"""
Domain errors. Each carries the HTTP status the API answers with.
"""


class ExamPracticeError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(ExamPracticeError):
    status_code = 400


class PermissionDenied(ExamPracticeError):
    status_code = 403


class NotFound(ExamPracticeError):
    status_code = 404


class Conflict(ExamPracticeError):
    status_code = 409


class InsufficientPoolError(ValidationFailed):
    def __init__(self, available: int, requested: int):
        super().__init__(f"Not enough questions: {available} available, {requested} requested")
        self.available = available
        self.requested = requested


class BackendError(ExamPracticeError):
    status_code = 500


class ConfigurationError(ExamPracticeError):
    status_code = 500


class UpstreamError(ExamPracticeError):
    status_code = 500
