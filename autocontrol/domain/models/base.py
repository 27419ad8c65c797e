"""Shared pydantic base for entities. Wire and storage format uses camelCase keys."""

from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class AutoControlModel(BaseModel):
    """
    Base for every entity exchanged with the backend or the fallback store.
    Attributes are snake_case in Python and camelCase on the wire.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_wire(self) -> Dict[str, Any]:
        """JSON-compatible dict with camelCase keys; None values dropped."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)

    @classmethod
    def field_names(cls, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Re-key data by attribute name, accepting camelCase aliases. Unknown keys kept as given."""
        aliases = {(info.alias or name): name for name, info in cls.model_fields.items()}
        return {aliases.get(key, key): value for key, value in data.items()}

    def transition(self, **updates: Any):
        """Return a copy with the given attribute updates. Original unchanged."""
        return self.model_copy(update=updates, deep=True)


class TracedRecord(AutoControlModel):
    """Fields shared by every record: id plus who registered it and when."""

    id: str
    user_id: Optional[str] = None
    registered_by: Optional[str] = None
    registered_by_id: Optional[str] = None
    registered_at: Optional[datetime] = None
