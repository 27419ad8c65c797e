"""Failure categorization for metrics and logs. Maps exceptions to taxonomy."""

from enum import Enum

from autocontrol.application.exceptions import (
    ApiResponseError,
    ApplicationError,
    GatewayUnavailableError,
    SessionExpiredError,
)
from autocontrol.domain.exceptions import (
    DomainError,
    DomainValidationError,
    EntityNotFoundError,
    InvalidStatusTransitionError,
)
from autocontrol.security.exceptions import SecurityError


class FailureCategory(str, Enum):
    """Taxonomy for failure classification."""

    UNAVAILABLE = "UNAVAILABLE"
    UNAUTHORIZED = "UNAUTHORIZED"
    APPLICATION_ERROR = "APPLICATION_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    POLICY_VIOLATION = "POLICY_VIOLATION"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


class FailureClassifier:
    """Classifies exceptions into FailureCategory. Callers increment metrics and log."""

    @staticmethod
    def classify(exception: BaseException) -> FailureCategory:
        """Map exception to FailureCategory. Unknown -> UNEXPECTED_ERROR."""
        if isinstance(exception, GatewayUnavailableError):
            return FailureCategory.UNAVAILABLE
        if isinstance(exception, SessionExpiredError):
            return FailureCategory.UNAUTHORIZED
        if isinstance(exception, (ApiResponseError, ApplicationError)):
            return FailureCategory.APPLICATION_ERROR
        if isinstance(exception, DomainValidationError):
            return FailureCategory.VALIDATION_ERROR
        if isinstance(exception, (InvalidStatusTransitionError, SecurityError)):
            return FailureCategory.POLICY_VIOLATION
        if isinstance(exception, (EntityNotFoundError, DomainError)):
            return FailureCategory.VALIDATION_ERROR
        return FailureCategory.UNEXPECTED_ERROR
