"""Domain layer: models, incident lifecycle, validators, exceptions. Pure business logic only."""

from autocontrol.domain.exceptions import (
    DomainError,
    DomainValidationError,
    EntityNotFoundError,
    InvalidStatusTransitionError,
)
from autocontrol.domain.models import (
    CorrectiveAction,
    CorrectiveActionStatus,
    EstablishmentInfo,
    Incident,
    IncidentSeverity,
    IncidentStatus,
    Role,
    Session,
    User,
)

__all__ = [
    "CorrectiveAction",
    "CorrectiveActionStatus",
    "DomainError",
    "DomainValidationError",
    "EntityNotFoundError",
    "EstablishmentInfo",
    "Incident",
    "IncidentSeverity",
    "IncidentStatus",
    "InvalidStatusTransitionError",
    "Role",
    "Session",
    "User",
]
