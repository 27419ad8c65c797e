"""Validators for incoming record data. Pure functions, no infrastructure or I/O."""

import re
from datetime import date, timedelta
from typing import Any, Dict, Mapping, Optional

from autocontrol.domain.exceptions import DomainValidationError
from autocontrol.domain.models.incident import CorrectiveActionStatus, IncidentSeverity
from autocontrol.domain.models.user import Role

# Bounds (domain constants; avoid magic numbers)
INCIDENT_TITLE_MIN = 3
INCIDENT_TITLE_MAX = 100
INCIDENT_DESCRIPTION_MAX = 1000
INCIDENT_AREA_MAX = 50
DETECTION_DATE_MAX_AGE_DAYS = 365
USER_NAME_MIN = 2
USER_NAME_MAX = 100
PASSWORD_MIN = 6
PASSWORD_MAX = 50
ESTABLISHMENT_NAME_MIN = 2
ESTABLISHMENT_NAME_MAX = 100
ADDRESS_MIN = 5
ADDRESS_MAX = 200
SANITARY_REGISTRY_MIN = 5
SANITARY_REGISTRY_MAX = 50

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_POSTAL_CODE_RE = re.compile(r"^\d{5}$")


def _text(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    return value.strip() if isinstance(value, str) else ""


def _raise_if_errors(errors: Dict[str, str], what: str) -> None:
    if errors:
        fields = ", ".join(sorted(errors))
        raise DomainValidationError(f"Invalid {what}: {fields}", errors)


def _as_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def validate_email(email: str) -> Optional[str]:
    """Return an error message for a malformed email, or None."""
    if not email.strip():
        return "Email is required"
    if not _EMAIL_RE.match(email.strip()):
        return "Invalid email format"
    return None


def validate_incident_input(data: Mapping[str, Any], today: date) -> None:
    """
    Validate data for a new or edited incident. Detection date may not be in the
    future nor older than one year. Raises DomainValidationError listing every bad field.
    """
    errors: Dict[str, str] = {}

    title = _text(data, "title")
    if not title:
        errors["title"] = "Title is required"
    elif len(title) < INCIDENT_TITLE_MIN:
        errors["title"] = f"Title must have at least {INCIDENT_TITLE_MIN} characters"
    elif len(title) > INCIDENT_TITLE_MAX:
        errors["title"] = f"Title cannot exceed {INCIDENT_TITLE_MAX} characters"

    if len(_text(data, "description")) > INCIDENT_DESCRIPTION_MAX:
        errors["description"] = f"Description cannot exceed {INCIDENT_DESCRIPTION_MAX} characters"

    area = _text(data, "affected_area")
    if not area:
        errors["affected_area"] = "Affected area is required"
    elif len(area) > INCIDENT_AREA_MAX:
        errors["affected_area"] = f"Affected area cannot exceed {INCIDENT_AREA_MAX} characters"

    if "detection_date" in data and data["detection_date"] not in (None, ""):
        detected = _as_date(data["detection_date"])
        if detected is None:
            errors["detection_date"] = "Detection date is not a valid date"
        elif detected > today:
            errors["detection_date"] = "Detection date cannot be in the future"
        elif detected < today - timedelta(days=DETECTION_DATE_MAX_AGE_DAYS):
            errors["detection_date"] = "Detection date cannot be more than one year ago"

    severity = data.get("severity")
    if severity is not None and severity not in {s.value for s in IncidentSeverity} and not isinstance(
        severity, IncidentSeverity
    ):
        errors["severity"] = f"Unknown severity: {severity}"

    _raise_if_errors(errors, "incident")


def validate_corrective_action_input(data: Mapping[str, Any]) -> None:
    """Validate a new corrective action: description required, known status, parseable date."""
    errors: Dict[str, str] = {}
    if not _text(data, "description"):
        errors["description"] = "Describe the corrective action"
    if "implementation_date" in data and data["implementation_date"] not in (None, ""):
        if _as_date(data["implementation_date"]) is None:
            errors["implementation_date"] = "Implementation date is not a valid date"
    status = data.get("status")
    if status is not None and not isinstance(status, CorrectiveActionStatus):
        if status not in {s.value for s in CorrectiveActionStatus}:
            errors["status"] = f"Unknown corrective action status: {status}"
    _raise_if_errors(errors, "corrective action")


def validate_user_input(data: Mapping[str, Any], is_edit: bool = False) -> None:
    """Validate user create (password required) or edit (only fields present are checked)."""
    errors: Dict[str, str] = {}

    if not is_edit or "name" in data:
        name = _text(data, "name")
        if len(name) < USER_NAME_MIN:
            errors["name"] = f"Name must have at least {USER_NAME_MIN} characters"
        elif len(name) > USER_NAME_MAX:
            errors["name"] = f"Name cannot exceed {USER_NAME_MAX} characters"

    if not is_edit or "email" in data:
        email_error = validate_email(str(data.get("email") or ""))
        if email_error:
            errors["email"] = email_error

    if not is_edit:
        password = str(data.get("password") or "")
        if len(password) < PASSWORD_MIN:
            errors["password"] = f"Password must have at least {PASSWORD_MIN} characters"
        elif len(password) > PASSWORD_MAX:
            errors["password"] = f"Password cannot exceed {PASSWORD_MAX} characters"

    role = data.get("role")
    if role is not None and not isinstance(role, Role) and role not in {r.value for r in Role}:
        errors["role"] = f"Unknown role: {role}"

    _raise_if_errors(errors, "user")


def validate_establishment_info(data: Mapping[str, Any]) -> None:
    """Validate the establishment profile: name, address, city, postal code, sanitary registry."""
    errors: Dict[str, str] = {}

    name = _text(data, "name")
    if not (ESTABLISHMENT_NAME_MIN <= len(name) <= ESTABLISHMENT_NAME_MAX):
        errors["name"] = (
            f"Name must have between {ESTABLISHMENT_NAME_MIN} and {ESTABLISHMENT_NAME_MAX} characters"
        )

    address = _text(data, "address")
    if not (ADDRESS_MIN <= len(address) <= ADDRESS_MAX):
        errors["address"] = f"Address must have between {ADDRESS_MIN} and {ADDRESS_MAX} characters"

    if not _text(data, "city"):
        errors["city"] = "City is required"

    if not _POSTAL_CODE_RE.match(_text(data, "postal_code")):
        errors["postal_code"] = "Postal code must have 5 digits"

    registry = _text(data, "sanitary_registry")
    if not (SANITARY_REGISTRY_MIN <= len(registry) <= SANITARY_REGISTRY_MAX):
        errors["sanitary_registry"] = (
            f"Sanitary registry must have between {SANITARY_REGISTRY_MIN} and {SANITARY_REGISTRY_MAX} characters"
        )

    _raise_if_errors(errors, "establishment info")
