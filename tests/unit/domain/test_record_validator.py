"""Record validators: per-field errors, bounds and date rules."""

from datetime import date, timedelta

import pytest

from autocontrol.domain.exceptions import DomainValidationError
from autocontrol.domain.validators import (
    validate_corrective_action_input,
    validate_email,
    validate_establishment_info,
    validate_incident_input,
    validate_user_input,
)

TODAY = date(2025, 3, 10)


def _errors(func, *args, **kwargs) -> dict:
    with pytest.raises(DomainValidationError) as exc:
        func(*args, **kwargs)
    return exc.value.errors


def test_valid_incident_passes():
    validate_incident_input(
        {"title": "Cold-chain break", "affected_area": "Walk-in cooler", "severity": "Critical"},
        TODAY,
    )


def test_incident_title_and_area_required():
    errors = _errors(validate_incident_input, {"title": "ab"}, TODAY)
    assert set(errors) == {"title", "affected_area"}


def test_incident_detection_date_bounds():
    future = {"title": "Broken seal", "affected_area": "Bar", "detection_date": TODAY + timedelta(days=1)}
    assert "detection_date" in _errors(validate_incident_input, future, TODAY)
    old = {**future, "detection_date": (TODAY - timedelta(days=400)).isoformat()}
    assert "detection_date" in _errors(validate_incident_input, old, TODAY)
    validate_incident_input({**future, "detection_date": TODAY.isoformat()}, TODAY)


def test_incident_unknown_severity():
    errors = _errors(
        validate_incident_input,
        {"title": "Broken seal", "affected_area": "Bar", "severity": "Apocalyptic"},
        TODAY,
    )
    assert list(errors) == ["severity"]


def test_corrective_action_needs_description_and_known_status():
    errors = _errors(validate_corrective_action_input, {"description": " ", "status": "Done"})
    assert set(errors) == {"description", "status"}


def test_email_format():
    assert validate_email("ana@example.com") is None
    assert validate_email("") == "Email is required"
    assert validate_email("not-an-email") == "Invalid email format"


def test_user_create_requires_password():
    errors = _errors(validate_user_input, {"name": "Ana", "email": "ana@example.com"})
    assert list(errors) == ["password"]


def test_user_edit_checks_only_present_fields():
    validate_user_input({"name": "Ana María"}, is_edit=True)
    errors = _errors(validate_user_input, {"email": "bad"}, is_edit=True)
    assert list(errors) == ["email"]


def test_user_unknown_role():
    errors = _errors(validate_user_input, {"role": "Owner"}, is_edit=True)
    assert list(errors) == ["role"]


def test_establishment_info_rules():
    validate_establishment_info(
        {
            "name": "Bar Central",
            "address": "Calle Mayor 1",
            "city": "Madrid",
            "postal_code": "28001",
            "sanitary_registry": "RGSEAA-123",
        }
    )
    errors = _errors(validate_establishment_info, {"name": "B", "postal_code": "2800"})
    assert set(errors) == {"name", "address", "city", "postal_code", "sanitary_registry"}
