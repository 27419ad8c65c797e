"""Incidents and the corrective actions they own."""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field

from autocontrol.domain.models.base import AutoControlModel, TracedRecord


class IncidentSeverity(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class IncidentStatus(str, Enum):
    OPEN = "Open"
    IN_PROGRESS = "InProgress"
    RESOLVED = "Resolved"


class CorrectiveActionStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"


class CorrectiveAction(AutoControlModel):
    id: str
    incident_id: str
    description: str
    implementation_date: date
    responsible_user: str
    status: CorrectiveActionStatus = CorrectiveActionStatus.PENDING
    created_at: datetime

    @property
    def is_completed(self) -> bool:
        return self.status == CorrectiveActionStatus.COMPLETED


class Incident(TracedRecord):
    """
    Food-safety incident. Status is driven by its corrective actions through
    autocontrol.domain.incident_lifecycle; never assign it directly.
    """

    title: str
    description: str = ""
    detection_date: date
    affected_area: str
    severity: IncidentSeverity = IncidentSeverity.MEDIUM
    status: IncidentStatus = IncidentStatus.OPEN
    reported_by: str
    created_at: datetime
    updated_at: datetime
    corrective_actions: List[CorrectiveAction] = Field(default_factory=list)
    resolution_notes: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return self.status == IncidentStatus.RESOLVED

    def find_action(self, action_id: str) -> Optional[CorrectiveAction]:
        for action in self.corrective_actions:
            if action.id == action_id:
                return action
        return None
