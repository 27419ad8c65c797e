"""Debounced free-text search: the filter is recomputed after a pause in typing, not per keystroke."""

import asyncio
import dataclasses
import inspect
import logging
from typing import Any, Awaitable, Callable, Generic, List, Optional, TypeVar, Union

from autocontrol.application.incident_queries import IncidentFilter, filter_incidents
from autocontrol.domain.models import Incident

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_DELAY_SECONDS = 0.3


class Debouncer(Generic[T]):
    """Calls apply(value) once `delay` seconds after the last push. Earlier pushes are dropped."""

    def __init__(
        self,
        apply: Callable[[T], Union[None, Awaitable[None]]],
        delay_seconds: float = DEFAULT_DELAY_SECONDS,
    ) -> None:
        self._apply = apply
        self._delay = delay_seconds
        self._task: Optional[asyncio.Task] = None
        self._pending: Optional[T] = None
        self._has_pending = False

    @property
    def pending(self) -> bool:
        return self._has_pending

    def push(self, value: T) -> None:
        """Schedule value; must be called from a running event loop."""
        self._cancel()
        self._pending = value
        self._has_pending = True
        self._task = asyncio.get_running_loop().create_task(self._fire_later())

    async def _fire_later(self) -> None:
        await asyncio.sleep(self._delay)
        self._task = None
        # Nobody awaits this task; an error in apply must surface in the log.
        try:
            await self._run()
        except Exception:
            logger.exception("debounced_apply_failed")

    async def _run(self) -> None:
        if not self._has_pending:
            return
        value = self._pending
        self._pending = None
        self._has_pending = False
        result = self._apply(value)
        if inspect.isawaitable(result):
            await result

    async def flush(self) -> None:
        """Apply the pending value now."""
        self._cancel()
        await self._run()

    def _cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def aclose(self) -> None:
        task = self._task
        self._cancel()
        self._has_pending = False
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass


class IncidentSearch:
    """
    Incident listing state: structured filters apply at once, free text through the debouncer.
    Reads the incidents through `source` each time, so it always sees the current collection.
    """

    def __init__(
        self,
        source: Callable[[], List[Incident]],
        delay_seconds: float = DEFAULT_DELAY_SECONDS,
        on_change: Optional[Callable[[List[Incident]], Any]] = None,
    ) -> None:
        self._source = source
        self._criteria = IncidentFilter()
        self._on_change = on_change
        self._debouncer: Debouncer[str] = Debouncer(self._apply_text, delay_seconds)
        self.recompute_count = 0
        self._results: List[Incident] = []
        self._recompute()

    @property
    def criteria(self) -> IncidentFilter:
        return self._criteria

    @property
    def results(self) -> List[Incident]:
        return list(self._results)

    def set_text(self, text: str) -> None:
        self._debouncer.push(text)

    def set_filters(self, **changes: Any) -> None:
        """Replace structured criteria (status, severity, area, date_from, date_to) immediately."""
        if "text" in changes:
            raise ValueError("Free text goes through set_text")
        self._criteria = dataclasses.replace(self._criteria, **changes)
        self._recompute()

    def refresh(self) -> None:
        self._recompute()

    async def flush(self) -> None:
        await self._debouncer.flush()

    async def aclose(self) -> None:
        await self._debouncer.aclose()

    def _apply_text(self, text: str) -> None:
        self._criteria = dataclasses.replace(self._criteria, text=text)
        self._recompute()

    def _recompute(self) -> None:
        self.recompute_count += 1
        self._results = filter_incidents(self._source(), self._criteria)
        logger.debug("incident_search_recomputed", extra={"result_count": len(self._results)})
        if self._on_change is not None:
            self._on_change(self.results)
