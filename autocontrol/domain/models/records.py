"""Self-control records. Created and deleted, never updated in place."""

from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import Field

from autocontrol.domain.models.base import AutoControlModel, TracedRecord


class DeliveryRecord(TracedRecord):
    """Incoming shipment with temperature and documentation checks."""

    supplier_id: str = ""
    product_type_id: str = ""
    temperature: str = ""
    reception_date: Optional[datetime] = None
    docs_ok: bool = False
    albaran_image: Optional[str] = None


class StorageRecord(TracedRecord):
    """Cold-storage reading for one storage unit."""

    unit_id: str = ""
    date_time: Optional[datetime] = None
    temperature: str = ""
    humidity: Optional[str] = None
    rotation_check: bool = False
    mincing_check: bool = False


class DailyCleaningRecord(TracedRecord):
    surface_id: str = ""
    date_time: Optional[datetime] = None


class DestinationType(str, Enum):
    BRANCH = "branch"
    CONSUMER = "consumer"


class OutgoingRecord(TracedRecord):
    """Product leaving the establishment (traceability downstream)."""

    product_name: str = ""
    quantity: str = ""
    lot_identifier: str = ""
    destination_type: DestinationType = DestinationType.CONSUMER
    destination: str = ""
    dispatch_date: Optional[date] = Field(None, alias="date")


class ElaboratedIngredient(AutoControlModel):
    name: str
    supplier: str = ""
    lot: str = ""
    quantity: str = ""


class ElaboratedRecord(TracedRecord):
    """Product elaborated in-house with the lots of its ingredients."""

    product_name: str = ""
    elaboration_date: Optional[date] = None
    product_lot: str = ""
    ingredients: List[ElaboratedIngredient] = Field(default_factory=list)
    destination: str = ""
    quantity_sent: str = ""


class SheetIngredient(AutoControlModel):
    name: str
    lot: str = ""
    is_allergen: bool = False


class TechnicalSheet(TracedRecord):
    product_name: str = ""
    ingredients: List[SheetIngredient] = Field(default_factory=list)
    elaboration: str = ""
    presentation: str = ""
    shelf_life: str = ""
    labeling: str = ""


class SaleType(str, Enum):
    WEIGHT = "weight"
    UNIT = "unit"


class CostingPart(AutoControlModel):
    id: str
    name: str
    weight: float = 0.0
    sale_type: SaleType = SaleType.WEIGHT
    quantity: Optional[float] = None


class Costing(TracedRecord):
    """Cutting yield and sale prices for a purchased product."""

    product_name: str = ""
    total_weight: float = 0.0
    purchase_price: float = 0.0
    parts: List[CostingPart] = Field(default_factory=list)
    sale_prices: Dict[str, str] = Field(default_factory=dict)

    @property
    def cost_per_kg(self) -> float:
        if self.total_weight <= 0:
            return 0.0
        return self.purchase_price / self.total_weight
