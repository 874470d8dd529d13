"""
Examination Engine Exceptions

This module provides the error taxonomy of the examination engine. All errors
share a common base class so callers can handle them uniformly, while the
concrete subclasses allow granular handling of validation, lookup, conflict,
lock and expiry failures.

The module also contains the DRF exception handler that renders these errors
as JSON responses. It is registered in ``REST_FRAMEWORK["EXCEPTION_HANDLER"]``.

Author: Exam Delivery Development Team
Version: 1.0.0
"""

import logging
from typing import Any, Dict, List, Optional

from django.db import DatabaseError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ExaminationError(Exception):
    """
    Base exception class for all examination engine errors.

    Attributes:
        message (str): Human-readable error message
        status_code (int): HTTP status code used when rendered by the API
        error_code (str): Stable machine-readable error identifier
        details (Dict[str, Any]): Additional context identifying the offending
            question, version or progress record

    Example:
        >>> try:
        ...     registry.publish_version(version_id)
        ... except ExaminationError as e:
        ...     logger.error(f"Publish failed: {e.message}")
    """

    default_status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_error_code = "Failed"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message = message
        self.details = details or {}
        self.status_code = status_code or self.default_status_code
        self.error_code = error_code or self.default_error_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for serialization.

        Returns:
            Dictionary representation of the exception
        """
        return {
            "error": self.message,
            "error_code": self.error_code,
            "status_code": self.status_code,
            "details": self.details,
            "exception_type": self.__class__.__name__,
        }


class ValidationError(ExaminationError):
    """Raised when an answer payload or authoring content is malformed."""

    default_status_code = status.HTTP_400_BAD_REQUEST
    default_error_code = "ValidationFailed"


class NotFoundError(ExaminationError):
    """Raised for unknown modules, versions, progress records, questions or groups."""

    default_status_code = status.HTTP_404_NOT_FOUND
    default_error_code = "NotFound"


class ConflictError(ExaminationError):
    """
    Raised when an operation conflicts with the current state.

    Typical causes are editing or publishing an already published version,
    submitting an answer for a question of another version, or starting a
    module that is not accessible yet.
    """

    default_status_code = status.HTTP_409_CONFLICT
    default_error_code = "Conflict"


class LockedError(ExaminationError):
    """Raised when a completed progress record would be mutated."""

    default_status_code = status.HTTP_423_LOCKED
    default_error_code = "ProgressLocked"

    def __init__(self, progress_id: int, message: Optional[str] = None) -> None:
        super().__init__(
            message
            or f"Module progress {progress_id} is already completed. No further answers can be submitted.",
            details={"progress_id": progress_id},
        )


class ExpiredError(ExaminationError):
    """Raised when the time budget of a progress record has been used up."""

    default_status_code = status.HTTP_410_GONE
    default_error_code = "TimeBudgetExpired"

    def __init__(self, progress_id: int, deadline_utc=None, message: Optional[str] = None) -> None:
        details: Dict[str, Any] = {"progress_id": progress_id}
        if deadline_utc is not None:
            details["deadline_utc"] = deadline_utc.isoformat()
        super().__init__(
            message
            or f"Module progress {progress_id} has expired. No further answers can be submitted.",
            details=details,
        )


class StructuralPublishError(ExaminationError):
    """
    Raised when a draft version fails the structural checks run at publish time.

    The ``details`` contain one entry per offending question so that authors
    can locate every problem in a single round trip.
    """

    default_status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_error_code = "StructuralValidationFailed"

    def __init__(
        self,
        version_id: int,
        question_problems: List[Dict[str, Any]],
        version_problems: Optional[List[str]] = None,
    ) -> None:
        self.version_id = version_id
        self.question_problems = question_problems
        self.version_problems = version_problems or []
        super().__init__(
            f"Module version {version_id} cannot be published.",
            details={
                "version_id": version_id,
                "version": self.version_problems,
                "questions": question_problems,
            },
        )


def examination_exception_handler(exc, context):
    """
    Render examination errors as JSON and fall back to DRF for everything else.

    Storage failures are logged and surfaced as a generic failure; they are
    never retried here.
    """
    if isinstance(exc, ExaminationError):
        return Response(exc.to_dict(), status=exc.status_code)

    if isinstance(exc, DatabaseError):
        view = context.get("view")
        logger.exception(
            f"Storage failure while handling {view.__class__.__name__ if view else 'request'}: {exc}"
        )
        return Response(
            {
                "error": "The request could not be completed because of a storage failure.",
                "error_code": ExaminationError.default_error_code,
                "status_code": status.HTTP_500_INTERNAL_SERVER_ERROR,
                "details": {},
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return exception_handler(exc, context)
