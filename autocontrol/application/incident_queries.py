"""Read-side incident projections. Pure functions over incident lists; no state effects."""

from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from autocontrol.domain.models import (
    CorrectiveAction,
    CorrectiveActionStatus,
    Incident,
    IncidentSeverity,
    IncidentStatus,
)

_SEVERITY_SCORES = {
    IncidentSeverity.CRITICAL: 4,
    IncidentSeverity.HIGH: 3,
    IncidentSeverity.MEDIUM: 2,
    IncidentSeverity.LOW: 1,
}
_STATUS_SCORES = {
    IncidentStatus.OPEN: 3,
    IncidentStatus.IN_PROGRESS: 2,
    IncidentStatus.RESOLVED: 1,
}
MAX_AGE_SCORE = 3.0
AGE_SCORE_WEEK_DAYS = 7


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class IncidentFilter:
    """Empty/None fields do not filter."""

    status: Optional[IncidentStatus] = None
    severity: Optional[IncidentSeverity] = None
    area: str = ""
    text: str = ""
    date_from: Optional[date] = None
    date_to: Optional[date] = None


def filter_incidents(incidents: Iterable[Incident], criteria: IncidentFilter) -> List[Incident]:
    """Apply criteria; newest detection date first (creation time breaks ties)."""
    area = criteria.area.strip().lower()
    text = criteria.text.strip().lower()
    result = []
    for incident in incidents:
        if criteria.status is not None and incident.status != criteria.status:
            continue
        if criteria.severity is not None and incident.severity != criteria.severity:
            continue
        if area and area not in incident.affected_area.lower():
            continue
        if text:
            haystack = " ".join(
                (incident.title, incident.description, incident.affected_area)
            ).lower()
            if text not in haystack:
                continue
        if criteria.date_from is not None and incident.detection_date < criteria.date_from:
            continue
        if criteria.date_to is not None and incident.detection_date > criteria.date_to:
            continue
        result.append(incident)
    return sorted(
        result,
        key=lambda i: (i.detection_date, _aware(i.created_at)),
        reverse=True,
    )


@dataclass(frozen=True)
class IncidentStats:
    total: int
    open: int
    in_progress: int
    resolved: int
    by_severity: Dict[IncidentSeverity, int]
    average_resolution_days: int
    oldest_open: Optional[Incident]


def incident_stats(incidents: Iterable[Incident]) -> IncidentStats:
    """Counts per status and severity, mean resolution time in whole days, oldest Open incident."""
    items = list(incidents)
    statuses = Counter(i.status for i in items)
    severities = Counter(i.severity for i in items)
    resolved = [i for i in items if i.is_resolved]
    average = 0
    if resolved:
        total_seconds = sum(
            (_aware(i.resolved_at or i.updated_at) - _aware(i.created_at)).total_seconds()
            for i in resolved
        )
        average = round(total_seconds / len(resolved) / 86400)
    open_items = [i for i in items if i.status == IncidentStatus.OPEN]
    oldest = min(open_items, key=lambda i: _aware(i.created_at)) if open_items else None
    return IncidentStats(
        total=len(items),
        open=statuses[IncidentStatus.OPEN],
        in_progress=statuses[IncidentStatus.IN_PROGRESS],
        resolved=statuses[IncidentStatus.RESOLVED],
        by_severity={s: severities[s] for s in IncidentSeverity},
        average_resolution_days=average,
        oldest_open=oldest,
    )


def _days_since(moment: datetime, now: datetime) -> int:
    return int((now - _aware(moment)).total_seconds() // 86400)


def priority_score(incident: Incident, now: Optional[datetime] = None) -> float:
    """Severity (1-4) + status (1-3) + age in weeks capped at 3."""
    now = now or _now()
    age = min(_days_since(incident.created_at, now) / AGE_SCORE_WEEK_DAYS, MAX_AGE_SCORE)
    return _SEVERITY_SCORES[incident.severity] + _STATUS_SCORES[incident.status] + age


def sort_by_priority(incidents: Iterable[Incident], now: Optional[datetime] = None) -> List[Incident]:
    now = now or _now()
    return sorted(incidents, key=lambda i: priority_score(i, now), reverse=True)


def overdue_incidents(
    incidents: Iterable[Incident],
    max_days_open: int = 7,
    now: Optional[datetime] = None,
) -> List[Incident]:
    """Unresolved incidents created more than max_days_open days ago."""
    cutoff = (now or _now()) - timedelta(days=max_days_open)
    return [i for i in incidents if not i.is_resolved and _aware(i.created_at) < cutoff]


def critical_open_incidents(incidents: Iterable[Incident]) -> List[Incident]:
    return [
        i for i in incidents if i.severity == IncidentSeverity.CRITICAL and not i.is_resolved
    ]


def completion_rate(incident: Incident) -> int:
    """Percentage of Completed actions, rounded. 0 with no actions."""
    actions = incident.corrective_actions
    if not actions:
        return 0
    completed = sum(1 for a in actions if a.is_completed)
    return round(completed / len(actions) * 100)


def incidents_with_pending_actions(incidents: Iterable[Incident]) -> List[Incident]:
    return [
        i
        for i in incidents
        if any(a.status == CorrectiveActionStatus.PENDING for a in i.corrective_actions)
    ]


@dataclass(frozen=True)
class AreaCount:
    area: str
    count: int
    percentage: int


def top_affected_areas(incidents: Iterable[Incident], limit: int = 5) -> List[AreaCount]:
    items = list(incidents)
    if not items:
        return []
    counts = Counter(i.affected_area for i in items)
    return [
        AreaCount(area=area, count=count, percentage=round(count / len(items) * 100))
        for area, count in counts.most_common(limit)
    ]


@dataclass(frozen=True)
class IncidentTrend:
    dates: List[date]
    created: List[int]
    resolved: List[int]


def incident_trends(
    incidents: Iterable[Incident], days: int = 30, now: Optional[datetime] = None
) -> IncidentTrend:
    """Per-day created and resolved counts over the last `days` days, oldest first."""
    items = list(incidents)
    start = (now or _now()).date() - timedelta(days=days)
    dates = [start + timedelta(days=offset) for offset in range(days)]
    created = Counter(_aware(i.created_at).date() for i in items)
    resolved = Counter(_aware(i.resolved_at or i.updated_at).date() for i in items if i.is_resolved)
    return IncidentTrend(
        dates=dates,
        created=[created[d] for d in dates],
        resolved=[resolved[d] for d in dates],
    )


def can_resolve(incident: Incident) -> bool:
    """True when every action is Completed (at least one) and the incident is not yet resolved."""
    if incident.is_resolved or not incident.corrective_actions:
        return False
    return all(a.is_completed for a in incident.corrective_actions)


def next_action_due(incident: Incident) -> Optional[CorrectiveAction]:
    """Pending action with the earliest implementation date."""
    pending = [a for a in incident.corrective_actions if a.status == CorrectiveActionStatus.PENDING]
    if not pending:
        return None
    return min(pending, key=lambda a: a.implementation_date)


def incident_summary(incident: Incident, now: Optional[datetime] = None) -> str:
    summary = f"{incident.severity.value} - {incident.status.value}"
    if not incident.is_resolved:
        summary += f" ({_days_since(incident.created_at, now or _now())} days)"
    if incident.corrective_actions:
        summary += f" - {completion_rate(incident)}% completed"
    return summary
