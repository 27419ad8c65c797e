"""Domain validators. Pure validation functions."""

from autocontrol.domain.validators.record_validator import (
    validate_corrective_action_input,
    validate_email,
    validate_establishment_info,
    validate_incident_input,
    validate_user_input,
)

__all__ = [
    "validate_corrective_action_input",
    "validate_email",
    "validate_establishment_info",
    "validate_incident_input",
    "validate_user_input",
]
