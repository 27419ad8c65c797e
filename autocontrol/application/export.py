"""
Tabular projections handed to export sinks. A sink turns (title, headers, rows, meta)
into a document (PDF, spreadsheet, ...) and returns its bytes; its format is its own business.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

from autocontrol.domain.models import DeliveryRecord, EstablishmentInfo, Incident, User

logger = logging.getLogger(__name__)

Row = List[str]


class ExportSink(Protocol):
    def __call__(
        self,
        title: str,
        headers: Sequence[str],
        rows: Sequence[Row],
        meta: Mapping[str, Any],
    ) -> bytes:
        ...


@dataclass(frozen=True)
class TableProjection:
    title: str
    headers: List[str]
    rows: List[Row] = field(default_factory=list)


def _date(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%d/%m/%Y %H:%M")
    return value.strftime("%d/%m/%Y")


def _user_names(users: Iterable[User]) -> Dict[str, str]:
    return {u.id: u.name for u in users}


def incident_table(incidents: Iterable[Incident], users: Iterable[User] = ()) -> TableProjection:
    names = _user_names(users)
    rows = []
    for incident in incidents:
        rows.append(
            [
                incident.title,
                incident.affected_area,
                incident.severity.value,
                incident.status.value,
                _date(incident.detection_date),
                incident.registered_by or names.get(incident.reported_by, "N/A"),
                str(len(incident.corrective_actions)),
                incident.resolution_notes or "",
            ]
        )
    return TableProjection(
        title="Incidents",
        headers=[
            "Title",
            "Affected area",
            "Severity",
            "Status",
            "Detection date",
            "Registered by",
            "Corrective actions",
            "Resolution notes",
        ],
        rows=rows,
    )


def delivery_table(
    records: Iterable[DeliveryRecord],
    suppliers: Optional[Mapping[str, str]] = None,
    product_types: Optional[Mapping[str, str]] = None,
) -> TableProjection:
    """suppliers / product_types map ids to display names; unknown ids are shown as-is."""
    suppliers = suppliers or {}
    product_types = product_types or {}
    rows = [
        [
            _date(r.reception_date or r.registered_at),
            suppliers.get(r.supplier_id, r.supplier_id),
            product_types.get(r.product_type_id, r.product_type_id),
            f"{r.temperature} °C" if r.temperature else "",
            "Yes" if r.docs_ok else "No",
            r.registered_by or "",
        ]
        for r in records
    ]
    return TableProjection(
        title="Delivery reception",
        headers=["Date", "Supplier", "Product", "Temperature", "Documents OK", "Registered by"],
        rows=rows,
    )


def user_table(users: Iterable[User]) -> TableProjection:
    rows = [
        [u.name, u.email, u.role.value, "Active" if u.is_active else "Inactive"] for u in users
    ]
    return TableProjection(title="Users", headers=["Name", "Email", "Role", "Status"], rows=rows)


def export_collection(
    sink: ExportSink,
    projection: TableProjection,
    establishment: Optional[EstablishmentInfo] = None,
    clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
) -> bytes:
    """Build meta (establishment, generation time, row count) and hand the table to sink."""
    meta: Dict[str, Any] = {
        "generated_at": clock().isoformat(),
        "row_count": len(projection.rows),
        "establishment": establishment.to_wire() if establishment is not None else {},
    }
    document = sink(projection.title, list(projection.headers), [list(r) for r in projection.rows], meta)
    logger.info(
        "export_generated",
        extra={"export_title": projection.title, "row_count": len(projection.rows), "size_bytes": len(document)},
    )
    return document
