"""
Incident lifecycle state machine. Pure reducer over a closed set of events.

Incident states: Open -> InProgress -> Resolved, with Resolved -> InProgress on reopen.
Corrective-action statuses move freely; the incident status is derived from them:

* first action added:                 Open -> InProgress
* all actions Completed (>= 1):       InProgress -> Resolved (automatic)
* an action leaves Completed:         Resolved -> InProgress (reopen)
* explicit resolve:                   any non-resolved state -> Resolved (stamps resolver)

No I/O, no clock: every event carries its own timestamp.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, FrozenSet, List, Optional, Union

from autocontrol.domain.exceptions import (
    DomainValidationError,
    EntityNotFoundError,
    InvalidStatusTransitionError,
)
from autocontrol.domain.models.incident import (
    CorrectiveAction,
    CorrectiveActionStatus,
    Incident,
    IncidentSeverity,
    IncidentStatus,
)

# Allowed incident status transitions: from_status -> set of valid next statuses
_STATUS_TRANSITIONS: Dict[IncidentStatus, FrozenSet[IncidentStatus]] = {
    IncidentStatus.OPEN: frozenset({IncidentStatus.IN_PROGRESS, IncidentStatus.RESOLVED}),
    IncidentStatus.IN_PROGRESS: frozenset({IncidentStatus.RESOLVED}),
    IncidentStatus.RESOLVED: frozenset({IncidentStatus.IN_PROGRESS}),
}

_EDITABLE_INCIDENT_FIELDS = frozenset(
    {"title", "description", "detection_date", "affected_area", "severity"}
)
_EDITABLE_ACTION_FIELDS = frozenset(
    {"description", "implementation_date", "responsible_user", "status"}
)


def _validate_transition(current: IncidentStatus, new: IncidentStatus) -> None:
    """Validate that transition from current to new is allowed. Raises if invalid."""
    allowed = _STATUS_TRANSITIONS.get(current, frozenset())
    if new not in allowed:
        raise InvalidStatusTransitionError(
            f"Invalid incident status transition from {current.value} to {new.value}"
        )


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CorrectiveActionAdded:
    action: CorrectiveAction
    at: datetime


@dataclass(frozen=True)
class CorrectiveActionStatusChanged:
    action_id: str
    status: CorrectiveActionStatus
    at: datetime


@dataclass(frozen=True)
class CorrectiveActionUpdated:
    """Field edits on one action. A 'status' key is applied as a status change."""

    action_id: str
    changes: Dict[str, Any]
    at: datetime


@dataclass(frozen=True)
class CorrectiveActionRemoved:
    action_id: str
    at: datetime


@dataclass(frozen=True)
class IncidentResolved:
    """Manual resolution. The only path that may resolve with incomplete or zero actions."""

    resolved_by: str
    at: datetime
    notes: Optional[str] = None


@dataclass(frozen=True)
class ResolutionNotesEdited:
    notes: str
    at: datetime


@dataclass(frozen=True)
class IncidentDetailsEdited:
    changes: Dict[str, Any] = field(default_factory=dict)
    at: Optional[datetime] = None


IncidentEvent = Union[
    CorrectiveActionAdded,
    CorrectiveActionStatusChanged,
    CorrectiveActionUpdated,
    CorrectiveActionRemoved,
    IncidentResolved,
    ResolutionNotesEdited,
    IncidentDetailsEdited,
]


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


def open_incident(
    *,
    incident_id: str,
    title: str,
    affected_area: str,
    reported_by: str,
    at: datetime,
    description: str = "",
    detection_date: Optional[date] = None,
    severity: IncidentSeverity = IncidentSeverity.MEDIUM,
    registered_by: Optional[str] = None,
    registered_by_id: Optional[str] = None,
) -> Incident:
    """Build a new incident in its initial Open state with audit fields stamped."""
    return Incident(
        id=incident_id,
        title=title.strip(),
        description=description.strip(),
        detection_date=detection_date or at.date(),
        affected_area=affected_area.strip(),
        severity=severity,
        status=IncidentStatus.OPEN,
        reported_by=reported_by,
        user_id=reported_by,
        registered_by=registered_by,
        registered_by_id=registered_by_id,
        registered_at=at,
        created_at=at,
        updated_at=at,
        corrective_actions=[],
    )


# ---------------------------------------------------------------------------
# Reducer
# ---------------------------------------------------------------------------


def all_actions_completed(actions: List[CorrectiveAction]) -> bool:
    """True when at least one action exists and every action is Completed."""
    return bool(actions) and all(a.is_completed for a in actions)


def apply_event(incident: Incident, event: IncidentEvent) -> Incident:
    """Return the incident after event. The input incident is never mutated."""
    if isinstance(event, CorrectiveActionAdded):
        return _add_action(incident, event)
    if isinstance(event, CorrectiveActionStatusChanged):
        return _change_action_status(incident, event.action_id, event.status, event.at)
    if isinstance(event, CorrectiveActionUpdated):
        return _update_action(incident, event)
    if isinstance(event, CorrectiveActionRemoved):
        return _remove_action(incident, event)
    if isinstance(event, IncidentResolved):
        return _resolve(incident, event)
    if isinstance(event, ResolutionNotesEdited):
        return _edit_resolution_notes(incident, event)
    if isinstance(event, IncidentDetailsEdited):
        return _edit_details(incident, event)
    raise TypeError(f"Unsupported incident event: {type(event).__name__}")


def _with_status(incident: Incident, new_status: IncidentStatus, **updates: Any) -> Incident:
    if new_status != incident.status:
        _validate_transition(incident.status, new_status)
    return incident.transition(status=new_status, **updates)


def _require_action(incident: Incident, action_id: str) -> CorrectiveAction:
    action = incident.find_action(action_id)
    if action is None:
        raise EntityNotFoundError(
            f"Corrective action {action_id} not found in incident {incident.id}"
        )
    return action


def _add_action(incident: Incident, event: CorrectiveActionAdded) -> Incident:
    if incident.is_resolved:
        raise InvalidStatusTransitionError(
            f"Incident {incident.id} is resolved; corrective actions can no longer be added"
        )
    action = event.action.transition(incident_id=incident.id)
    actions = [*incident.corrective_actions, action]
    new_status = IncidentStatus.IN_PROGRESS if incident.status == IncidentStatus.OPEN else incident.status
    return _with_status(incident, new_status, corrective_actions=actions, updated_at=event.at)


def _derive_after_action_change(
    incident: Incident,
    actions: List[CorrectiveAction],
    left_completed: bool,
    at: datetime,
) -> Incident:
    if incident.is_resolved and left_completed:
        # Reopen: the resolver stamps no longer describe the current state.
        return _with_status(
            incident,
            IncidentStatus.IN_PROGRESS,
            corrective_actions=actions,
            resolved_at=None,
            resolved_by=None,
            updated_at=at,
        )
    if not incident.is_resolved and all_actions_completed(actions):
        return _with_status(
            incident, IncidentStatus.RESOLVED, corrective_actions=actions, updated_at=at
        )
    new_status = incident.status
    if new_status == IncidentStatus.OPEN and actions:
        new_status = IncidentStatus.IN_PROGRESS
    return _with_status(incident, new_status, corrective_actions=actions, updated_at=at)


def _change_action_status(
    incident: Incident,
    action_id: str,
    status: CorrectiveActionStatus,
    at: datetime,
) -> Incident:
    current = _require_action(incident, action_id)
    if current.status == status:
        return incident
    left_completed = current.is_completed and status != CorrectiveActionStatus.COMPLETED
    actions = [
        a.transition(status=status) if a.id == action_id else a
        for a in incident.corrective_actions
    ]
    return _derive_after_action_change(incident, actions, left_completed, at)


def _update_action(incident: Incident, event: CorrectiveActionUpdated) -> Incident:
    unknown = set(event.changes) - _EDITABLE_ACTION_FIELDS
    if unknown:
        raise DomainValidationError(
            "Corrective action fields cannot be edited",
            {name: "Field is not editable" for name in sorted(unknown)},
        )
    current = _require_action(incident, event.action_id)
    field_changes = {k: v for k, v in event.changes.items() if k != "status"}
    updated = incident
    if field_changes:
        edited = CorrectiveAction.model_validate({**current.model_dump(), **field_changes})
        actions = [edited if a.id == current.id else a for a in incident.corrective_actions]
        updated = incident.transition(corrective_actions=actions, updated_at=event.at)
    if "status" in event.changes:
        status = CorrectiveActionStatus(event.changes["status"])
        updated = _change_action_status(updated, current.id, status, event.at)
    return updated


def _remove_action(incident: Incident, event: CorrectiveActionRemoved) -> Incident:
    _require_action(incident, event.action_id)
    remaining = [a for a in incident.corrective_actions if a.id != event.action_id]
    if incident.is_resolved and incident.resolved_at is None and not remaining:
        # Only a manual resolve may leave a Resolved incident without actions.
        return _with_status(
            incident, IncidentStatus.IN_PROGRESS, corrective_actions=remaining, updated_at=event.at
        )
    if incident.status == IncidentStatus.IN_PROGRESS and all_actions_completed(remaining):
        return _with_status(
            incident, IncidentStatus.RESOLVED, corrective_actions=remaining, updated_at=event.at
        )
    return incident.transition(corrective_actions=remaining, updated_at=event.at)


def _resolve(incident: Incident, event: IncidentResolved) -> Incident:
    if incident.is_resolved:
        raise InvalidStatusTransitionError(f"Incident {incident.id} is already resolved")
    notes = (event.notes or "").strip() or None
    return _with_status(
        incident,
        IncidentStatus.RESOLVED,
        resolution_notes=notes,
        resolved_at=event.at,
        resolved_by=event.resolved_by,
        updated_at=event.at,
    )


def _edit_resolution_notes(incident: Incident, event: ResolutionNotesEdited) -> Incident:
    if not incident.is_resolved:
        raise InvalidStatusTransitionError(
            f"Incident {incident.id} is not resolved; it has no resolution notes"
        )
    return incident.transition(
        resolution_notes=event.notes.strip() or None, updated_at=event.at
    )


def _edit_details(incident: Incident, event: IncidentDetailsEdited) -> Incident:
    unknown = set(event.changes) - _EDITABLE_INCIDENT_FIELDS
    if unknown:
        raise DomainValidationError(
            "Incident fields cannot be edited directly",
            {name: "Field is not editable" for name in sorted(unknown)},
        )
    data = {**incident.model_dump(), **event.changes}
    if event.at is not None:
        data["updated_at"] = event.at
    return Incident.model_validate(data)
