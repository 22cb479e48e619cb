"""Grading error taxonomy.

Every failure the grading pipeline surfaces is one of these. ``error_code`` is a
stable machine-readable string, ``status_code`` the HTTP status the API layer
maps it to.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class GradingError(Exception):
    status_code: int = 500
    default_code: str = "grading_error"

    def __init__(
        self,
        error_code: Optional[str] = None,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.error_code = error_code or self.default_code
        self.message = message or self.error_code
        self.details = details
        super().__init__(self.message)


class ValidationError(GradingError):
    status_code = 400
    default_code = "validation_error"


class NotFoundError(GradingError):
    status_code = 404
    default_code = "not_found"


class ForbiddenError(GradingError):
    status_code = 403
    default_code = "forbidden"


class InvalidStateError(GradingError):
    status_code = 409
    default_code = "invalid_state"


class ConflictError(GradingError):
    status_code = 409
    default_code = "concurrent_update_conflict"


class ExamExpiredError(GradingError):
    status_code = 410
    default_code = "exam_expired"


class JudgeTimeoutError(GradingError):
    status_code = 504
    default_code = "judge_timeout"


class UnstableMeasurementError(GradingError):
    status_code = 422
    default_code = "unstable_measurement"


class ExternalServiceError(GradingError):
    status_code = 502
    default_code = "judge_unavailable"


__all__ = [
    "GradingError",
    "ValidationError",
    "NotFoundError",
    "ForbiddenError",
    "InvalidStateError",
    "ConflictError",
    "ExamExpiredError",
    "JudgeTimeoutError",
    "UnstableMeasurementError",
    "ExternalServiceError",
]
