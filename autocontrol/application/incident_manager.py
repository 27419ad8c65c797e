"""Incident lifecycle manager: incident and corrective-action operations on the container."""

import logging
from typing import Any, Callable, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from autocontrol.application.collections import INCIDENTS
from autocontrol.application.ids import new_local_id
from autocontrol.application.notifications import (
    CorrectiveActionNotifications,
    IncidentNotifications,
    NotificationTemplate,
)
from autocontrol.application.state_container import DomainStateContainer
from autocontrol.domain.exceptions import DomainError, DomainValidationError, EntityNotFoundError
from autocontrol.domain.incident_lifecycle import (
    CorrectiveActionAdded,
    CorrectiveActionRemoved,
    CorrectiveActionStatusChanged,
    CorrectiveActionUpdated,
    IncidentDetailsEdited,
    IncidentEvent,
    IncidentResolved,
    ResolutionNotesEdited,
    apply_event,
    open_incident,
)
from autocontrol.domain.models import (
    CorrectiveAction,
    CorrectiveActionStatus,
    Incident,
    IncidentSeverity,
)
from autocontrol.domain.validators import validate_corrective_action_input, validate_incident_input
from autocontrol.security import rbac

Transition = Tuple[Incident, Incident]


def _as_validation_error(e: ValidationError, what: str) -> DomainValidationError:
    errors = {".".join(str(p) for p in err["loc"]): err["msg"] for err in e.errors()}
    return DomainValidationError(f"Invalid {what}", errors)


class IncidentLifecycleManager:
    """
    Every operation dry-runs the event against the in-memory incident first, so invalid
    transitions are reported without I/O. Accepted events go through the container's
    mutation protocol on the incidents collection and are applied to the persisted copy.
    """

    def __init__(
        self,
        container: DomainStateContainer,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._container = container
        self._notifications = container.notifications
        self._logger = logger or logging.getLogger(__name__)

    @property
    def incidents(self) -> List[Incident]:
        return self._container.incidents

    def get_incident(self, incident_id: str) -> Optional[Incident]:
        return self._container.find(INCIDENTS, incident_id)

    def find_parent(self, action_id: str) -> Optional[Incident]:
        for incident in self._container.incidents:
            if incident.find_action(action_id) is not None:
                return incident
        return None

    # --- Core ---

    async def _apply(
        self,
        incident_id: str,
        event: IncidentEvent,
        *,
        title: str,
        success: Callable[[Transition], Optional[NotificationTemplate]],
        announce: bool = True,
    ) -> Optional[Transition]:
        incident = self.get_incident(incident_id)
        if incident is None:
            self._notifications.warning(title, f"Incident {incident_id} was not found.")
            return None
        try:
            apply_event(incident, event)
        except DomainValidationError as e:
            self._container.report_invalid(title, e)
            return None
        except DomainError as e:
            self._notifications.warning(title, e.message)
            return None

        def local_op(persisted: Any) -> Tuple[Any, Any]:
            items = list(persisted or [])
            for index, raw in enumerate(items):
                if raw.get("id") == incident_id:
                    before = Incident.model_validate(raw)
                    after = apply_event(before, event)
                    items[index] = after.to_wire()
                    return items, (before, after)
            raise EntityNotFoundError(f"Incident {incident_id} is not stored locally")

        result = await self._container.mutate_with_fallback(
            INCIDENTS,
            server_call=None,
            local_op=local_op,
            success=success,
            failure_title=title,
        )
        if not result.ok:
            return None
        before, after = result.value
        if before.status != after.status:
            self._logger.info(
                "incident_status_changed",
                extra={
                    "incident_id": incident_id,
                    "from_status": before.status.value,
                    "to_status": after.status.value,
                    "event_type": type(event).__name__,
                },
            )
        if announce:
            self._announce_transition(before, after)
        return before, after

    def _announce_transition(self, before: Incident, after: Incident) -> None:
        if not before.is_resolved and after.is_resolved:
            self._notifications.emit(IncidentNotifications.resolved(after.title))
        elif before.is_resolved and not after.is_resolved:
            self._notifications.emit(IncidentNotifications.reopened(after.title))

    # --- Incidents ---

    async def report_incident(self, data: Mapping[str, Any]) -> Optional[Incident]:
        """Create an incident in Open state. A Critical one raises a persistent alert."""
        title = "Could not report incident"
        user = self._container.authorize(rbac.CREATE, title)
        if user is None:
            return None
        fields = Incident.field_names(data)
        now = self._container.now()
        try:
            validate_incident_input(fields, today=now.date())
            incident = open_incident(
                incident_id=new_local_id(),
                title=fields["title"],
                affected_area=fields["affected_area"],
                reported_by=user.id,
                at=now,
                description=fields.get("description") or "",
                detection_date=fields.get("detection_date") or None,
                severity=IncidentSeverity(fields.get("severity") or IncidentSeverity.MEDIUM),
                registered_by=fields.get("registered_by") or user.name,
                registered_by_id=fields.get("registered_by_id") or user.id,
            )
        except ValidationError as e:
            self._container.report_invalid(title, _as_validation_error(e, "incident"))
            return None
        except DomainValidationError as e:
            self._container.report_invalid(title, e)
            return None

        def local_op(persisted: Any) -> Tuple[Any, Any]:
            return [*(persisted or []), incident.to_wire()], incident

        def success(created: Incident) -> NotificationTemplate:
            if created.severity == IncidentSeverity.CRITICAL:
                return IncidentNotifications.critical_created(created.title)
            return IncidentNotifications.created(created.title)

        result = await self._container.mutate_with_fallback(
            INCIDENTS,
            server_call=None,
            local_op=local_op,
            success=success,
            failure_title=title,
        )
        if not result.ok:
            return None
        self._logger.info(
            "incident_reported",
            extra={"incident_id": incident.id, "severity": incident.severity.value},
        )
        return result.value

    async def edit_incident(self, incident_id: str, changes: Mapping[str, Any]) -> Optional[Incident]:
        title = "Could not update incident"
        if self._container.authorize(rbac.CREATE, title) is None:
            return None
        current = self.get_incident(incident_id)
        fields = Incident.field_names(changes)
        if current is not None:
            merged = {
                "title": current.title,
                "description": current.description,
                "affected_area": current.affected_area,
                "severity": current.severity,
                **fields,
            }
            try:
                validate_incident_input(merged, today=self._container.now().date())
            except DomainValidationError as e:
                self._container.report_invalid(title, e)
                return None
        event = IncidentDetailsEdited(changes=fields, at=self._container.now())
        transition = await self._apply(
            incident_id,
            event,
            title=title,
            success=lambda t: IncidentNotifications.updated(t[1].title),
        )
        return transition[1] if transition else None

    async def resolve_incident(self, incident_id: str, notes: Optional[str] = None) -> Optional[Incident]:
        """Manual resolve: allowed with incomplete or zero actions; stamps the resolver."""
        title = "Could not resolve incident"
        user = self._container.authorize(rbac.CREATE, title)
        if user is None:
            return None
        event = IncidentResolved(resolved_by=user.name, at=self._container.now(), notes=notes)
        transition = await self._apply(
            incident_id,
            event,
            title=title,
            success=lambda t: IncidentNotifications.resolved(t[1].title),
            announce=False,
        )
        return transition[1] if transition else None

    async def edit_resolution_notes(self, incident_id: str, notes: str) -> Optional[Incident]:
        title = "Could not update resolution notes"
        if self._container.authorize(rbac.CREATE, title) is None:
            return None
        event = ResolutionNotesEdited(notes=notes, at=self._container.now())
        transition = await self._apply(
            incident_id,
            event,
            title=title,
            success=lambda t: IncidentNotifications.updated(t[1].title),
        )
        return transition[1] if transition else None

    async def delete_incident(self, incident_id: str) -> bool:
        """Remove the incident and every corrective action it owns, after confirmation."""
        return await self._container.delete(
            INCIDENTS,
            incident_id,
            confirm_message="Delete this incident and all its corrective actions?",
            success=lambda incident: IncidentNotifications.deleted(incident.title),
        )

    # --- Corrective actions ---

    async def add_corrective_action(self, data: Mapping[str, Any]) -> Optional[CorrectiveAction]:
        """Attach a new action to data['incident_id'] (or 'incidentId'). Open incidents move to InProgress."""
        title = "Could not add corrective action"
        user = self._container.authorize(rbac.CREATE, title)
        if user is None:
            return None
        fields = CorrectiveAction.field_names(data)
        incident_id = fields.get("incident_id")
        if not incident_id:
            self._notifications.warning(title, "The corrective action must belong to an incident.")
            return None
        now = self._container.now()
        try:
            validate_corrective_action_input(fields)
            action = CorrectiveAction.model_validate(
                {
                    "id": new_local_id(),
                    "incident_id": incident_id,
                    "description": str(fields["description"]).strip(),
                    "implementation_date": fields.get("implementation_date") or now.date(),
                    "responsible_user": fields.get("responsible_user") or user.id,
                    "status": fields.get("status") or CorrectiveActionStatus.PENDING,
                    "created_at": now,
                }
            )
        except ValidationError as e:
            self._container.report_invalid(title, _as_validation_error(e, "corrective action"))
            return None
        except DomainValidationError as e:
            self._container.report_invalid(title, e)
            return None

        transition = await self._apply(
            incident_id,
            CorrectiveActionAdded(action=action, at=now),
            title=title,
            success=lambda t: CorrectiveActionNotifications.created(t[1].title),
        )
        return transition[1].find_action(action.id) if transition else None

    def _action_success(self, action_id: str) -> Callable[[Transition], NotificationTemplate]:
        def success(transition: Transition) -> NotificationTemplate:
            before, after = transition
            was = before.find_action(action_id)
            now = after.find_action(action_id)
            if now is not None and now.is_completed and (was is None or not was.is_completed):
                return CorrectiveActionNotifications.completed(after.title)
            return CorrectiveActionNotifications.updated()

        return success

    async def update_corrective_action(
        self, action_id: str, changes: Mapping[str, Any]
    ) -> Optional[Incident]:
        """Edit an action's fields; a 'status' change re-derives the parent incident status."""
        title = "Could not update corrective action"
        if self._container.authorize(rbac.CREATE, title) is None:
            return None
        parent = self.find_parent(action_id)
        if parent is None:
            self._notifications.warning(title, f"Corrective action {action_id} was not found.")
            return None
        fields = CorrectiveAction.field_names(changes)
        current = parent.find_action(action_id)
        try:
            validate_corrective_action_input({"description": current.description, **fields})
        except DomainValidationError as e:
            self._container.report_invalid(title, e)
            return None
        transition = await self._apply(
            parent.id,
            CorrectiveActionUpdated(action_id=action_id, changes=fields, at=self._container.now()),
            title=title,
            success=self._action_success(action_id),
        )
        return transition[1] if transition else None

    async def set_corrective_action_status(
        self, action_id: str, status: CorrectiveActionStatus | str
    ) -> Optional[Incident]:
        title = "Could not update corrective action"
        if self._container.authorize(rbac.CREATE, title) is None:
            return None
        try:
            new_status = CorrectiveActionStatus(status)
        except ValueError:
            self._notifications.warning(title, f"Unknown corrective action status: {status}")
            return None
        parent = self.find_parent(action_id)
        if parent is None:
            self._notifications.warning(title, f"Corrective action {action_id} was not found.")
            return None
        transition = await self._apply(
            parent.id,
            CorrectiveActionStatusChanged(action_id=action_id, status=new_status, at=self._container.now()),
            title=title,
            success=self._action_success(action_id),
        )
        return transition[1] if transition else None

    async def delete_corrective_action(self, action_id: str) -> bool:
        """Remove one action after confirmation. The incident stays; its status is re-derived."""
        title = "Could not delete corrective action"
        if self._container.authorize(rbac.DELETE, title) is None:
            return False
        parent = self.find_parent(action_id)
        if parent is None:
            self._notifications.warning(title, f"Corrective action {action_id} was not found.")
            return False
        if not await self._container.confirm("Delete this corrective action?"):
            return False
        transition = await self._apply(
            parent.id,
            CorrectiveActionRemoved(action_id=action_id, at=self._container.now()),
            title=title,
            success=lambda t: CorrectiveActionNotifications.deleted(),
        )
        return transition is not None
