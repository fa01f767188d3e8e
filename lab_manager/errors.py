from typing import Any, Dict, Optional


class AppError(Exception):
    """Base for failures the core reports to callers."""

    code = "APP_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.code, "message": self.message}
        body.update(self.details)
        return body


class ValidationError(AppError):
    # raised before any read or write
    code = "VALIDATION_ERROR"
    status_code = 400


class NotFound(AppError):
    code = "NOT_FOUND"
    status_code = 404


class NoCapacity(AppError):
    code = "NO_CAPACITY"
    status_code = 400


class RaceDetected(AppError):
    """Rows updated after a bulk write did not match what was requested."""

    code = "RACE_DETECTED"
    status_code = 409


class ConstraintViolation(AppError):
    code = "CONSTRAINT_VIOLATION"
    status_code = 409
