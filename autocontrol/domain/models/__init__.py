from autocontrol.domain.models.base import AutoControlModel, TracedRecord
from autocontrol.domain.models.incident import (
    CorrectiveAction,
    CorrectiveActionStatus,
    Incident,
    IncidentSeverity,
    IncidentStatus,
)
from autocontrol.domain.models.records import (
    Costing,
    CostingPart,
    DailyCleaningRecord,
    DeliveryRecord,
    ElaboratedRecord,
    OutgoingRecord,
    StorageRecord,
    TechnicalSheet,
)
from autocontrol.domain.models.user import EstablishmentInfo, Role, Session, User

__all__ = [
    "AutoControlModel",
    "CorrectiveAction",
    "CorrectiveActionStatus",
    "Costing",
    "CostingPart",
    "DailyCleaningRecord",
    "DeliveryRecord",
    "ElaboratedRecord",
    "EstablishmentInfo",
    "Incident",
    "IncidentSeverity",
    "IncidentStatus",
    "OutgoingRecord",
    "Role",
    "Session",
    "StorageRecord",
    "TechnicalSheet",
    "TracedRecord",
    "User",
]
