"""Domain-specific exceptions. Pure domain layer — no infrastructure."""

from typing import Dict, Optional


class DomainError(Exception):
    """Base for all domain-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class DomainValidationError(DomainError):
    """Raised when domain validation rules are violated. Carries per-field messages."""

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None) -> None:
        self.errors = dict(errors or {})
        super().__init__(message)


class InvalidStatusTransitionError(DomainError):
    """Raised when an incident or corrective action transition is not allowed."""


class EntityNotFoundError(DomainError):
    """Raised when an incident, corrective action or record id is unknown."""
