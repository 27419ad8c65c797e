"""In-memory fallback store. Values are kept as JSON text so reads never alias writes."""

import json
from typing import Any, Dict, Optional


class InMemoryFallbackStore:
    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, str] = {
            key: json.dumps(value) for key, value in (initial or {}).items()
        }

    async def get_json(self, key: str) -> Any:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    async def set_json(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)
