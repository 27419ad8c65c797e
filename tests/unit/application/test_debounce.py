"""Debouncer and IncidentSearch: free text recomputes once per pause, filters at once."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from autocontrol.application.debounce import Debouncer, IncidentSearch
from autocontrol.domain.incident_lifecycle import open_incident
from autocontrol.domain.models import IncidentSeverity, IncidentStatus

NOW = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


def _incidents():
    return [
        open_incident(incident_id="1", title="Cold-chain break", affected_area="Walk-in cooler",
                      reported_by="u-1", at=NOW, severity=IncidentSeverity.CRITICAL),
        open_incident(incident_id="2", title="Broken seal", affected_area="Bar",
                      reported_by="u-1", at=NOW),
    ]


@pytest.mark.asyncio
async def test_only_last_value_is_applied_after_pause():
    applied = []
    debouncer = Debouncer(applied.append, delay_seconds=0.01)

    for text in ("c", "co", "col", "cold"):
        debouncer.push(text)
    assert debouncer.pending is True
    await asyncio.sleep(0.1)

    assert applied == ["cold"]
    assert debouncer.pending is False


@pytest.mark.asyncio
async def test_flush_applies_immediately():
    apply = AsyncMock()
    debouncer = Debouncer(apply, delay_seconds=60)

    debouncer.push("cold")
    await debouncer.flush()

    apply.assert_awaited_once_with("cold")
    await debouncer.flush()
    apply.assert_awaited_once()


@pytest.mark.asyncio
async def test_aclose_drops_pending_value():
    apply = MagicMock()
    debouncer = Debouncer(apply, delay_seconds=0.01)

    debouncer.push("cold")
    await debouncer.aclose()
    await asyncio.sleep(0.05)

    apply.assert_not_called()


@pytest.mark.asyncio
async def test_search_recomputes_once_per_pause():
    incidents = _incidents()
    on_change = MagicMock()
    search = IncidentSearch(lambda: incidents, delay_seconds=60, on_change=on_change)
    assert search.recompute_count == 1
    assert len(search.results) == 2

    for text in ("b", "br", "bro", "broken"):
        search.set_text(text)
    assert search.recompute_count == 1
    await search.flush()

    assert search.recompute_count == 2
    assert [i.id for i in search.results] == ["2"]
    assert search.criteria.text == "broken"
    assert on_change.call_count == 2
    await search.aclose()


@pytest.mark.asyncio
async def test_structured_filters_apply_at_once():
    incidents = _incidents()
    search = IncidentSearch(lambda: incidents, delay_seconds=60)

    search.set_filters(severity=IncidentSeverity.CRITICAL)
    assert [i.id for i in search.results] == ["1"]

    search.set_filters(severity=None, status=IncidentStatus.RESOLVED)
    assert search.results == []

    with pytest.raises(ValueError):
        search.set_filters(text="cold")


@pytest.mark.asyncio
async def test_refresh_reads_current_source():
    incidents = _incidents()
    search = IncidentSearch(lambda: incidents, delay_seconds=60)
    incidents.pop()

    search.refresh()

    assert [i.id for i in search.results] == ["1"]


@pytest.mark.asyncio
async def test_failing_apply_is_logged_and_debouncer_keeps_working(caplog):
    applied = []

    def apply(value):
        if value == "boom":
            raise RuntimeError("filter failed")
        applied.append(value)

    debouncer = Debouncer(apply, delay_seconds=0.01)

    with caplog.at_level("ERROR", logger="autocontrol.application.debounce"):
        debouncer.push("boom")
        await asyncio.sleep(0.05)

    assert any(r.getMessage() == "debounced_apply_failed" for r in caplog.records)
    assert debouncer.pending is False

    debouncer.push("cold")
    await asyncio.sleep(0.05)
    assert applied == ["cold"]
