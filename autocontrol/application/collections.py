"""Registry of the entity collections the container owns."""

from dataclasses import dataclass
from typing import Dict, Optional, Type

from autocontrol.domain.models import (
    AutoControlModel,
    Costing,
    DailyCleaningRecord,
    DeliveryRecord,
    ElaboratedRecord,
    Incident,
    OutgoingRecord,
    StorageRecord,
    TechnicalSheet,
    User,
)

USERS = "users"
DELIVERY_RECORDS = "deliveryRecords"
STORAGE_RECORDS = "storageRecords"
DAILY_CLEANING_RECORDS = "dailyCleaningRecords"
OUTGOING_RECORDS = "outgoingRecords"
ELABORATED_RECORDS = "elaboratedRecords"
TECHNICAL_SHEETS = "technicalSheets"
COSTINGS = "costings"
INCIDENTS = "incidents"

# Non-collection store keys
TOKEN_KEY = "token"
CURRENT_USER_KEY = "currentUser"
ESTABLISHMENT_KEY = "establishmentInfo"


@dataclass(frozen=True)
class CollectionSpec:
    """
    key is both the in-memory collection name and the fallback-store key.
    api_path None means the collection lives only on the client.
    """

    key: str
    model: Type[AutoControlModel]
    api_path: Optional[str] = None
    label: str = "Record"

    @property
    def client_only(self) -> bool:
        return self.api_path is None

    def item_path(self, item_id: str) -> str:
        return f"{self.api_path}/{item_id}"


COLLECTIONS: Dict[str, CollectionSpec] = {
    spec.key: spec
    for spec in (
        CollectionSpec(USERS, User, "/api/users", "User"),
        CollectionSpec(DELIVERY_RECORDS, DeliveryRecord, "/api/records/delivery", "Delivery record"),
        CollectionSpec(STORAGE_RECORDS, StorageRecord, "/api/records/storage", "Storage record"),
        CollectionSpec(TECHNICAL_SHEETS, TechnicalSheet, "/api/technical-sheets", "Technical sheet"),
        CollectionSpec(DAILY_CLEANING_RECORDS, DailyCleaningRecord, None, "Cleaning record"),
        CollectionSpec(OUTGOING_RECORDS, OutgoingRecord, None, "Outgoing record"),
        CollectionSpec(ELABORATED_RECORDS, ElaboratedRecord, None, "Elaboration record"),
        CollectionSpec(COSTINGS, Costing, None, "Costing"),
        CollectionSpec(INCIDENTS, Incident, None, "Incident"),
    )
}


def get_collection(key: str) -> CollectionSpec:
    try:
        return COLLECTIONS[key]
    except KeyError:
        raise KeyError(f"Unknown collection: {key}") from None
