import asyncio
from datetime import timedelta

import pytest
from pydantic import ValidationError
from unittest.mock import AsyncMock, MagicMock

from conftest import NOW, make_filing, make_ingestion_config, raw_record, scripted_factory
from lienscout.core.data_types import SchedulerEvent
from lienscout.core.errors import PermanentFetchError
from lienscout.core.models import SchedulerEventType
from lienscout.core.pipeline import PipelineConfig, ScheduleConfig
from lienscout.enrichment.service import EnrichmentService
from lienscout.ingestion.service import IngestionService
from lienscout.scheduler import EventBus, ProspectStore, RefreshScheduler

HOUR_MS = 60 * 60 * 1000

SCRIPTS = {
    "demo-api": {
        "NY": [[raw_record("A1", debtor="Acme Manufacturing LLC"), raw_record("A2", debtor="Hudson Cafe")]],
        "CA": [PermanentFetchError("HTTP error! status: 404")],
    }
}


def make_scheduler(clock, scripts=None, regions=None, **schedule):
    schedule.setdefault("ingestion_interval_ms", HOUR_MS)
    schedule.setdefault("enrichment_interval_ms", HOUR_MS)
    schedule.setdefault("refresh_interval_ms", HOUR_MS)
    ingestion = IngestionService(
        make_ingestion_config(regions=regions or ["NY"]),
        clock=clock,
        client_factory=scripted_factory(scripts if scripts is not None else SCRIPTS),
    )
    return RefreshScheduler(ScheduleConfig(**schedule), ingestion, EnrichmentService(clock=clock), clock=clock)


def failing_scheduler(clock, **schedule):
    ingestion = MagicMock(spec=IngestionService)
    ingestion.ingest = AsyncMock(side_effect=RuntimeError("upstream unavailable"))
    schedule.setdefault("enrichment_interval_ms", HOUR_MS)
    schedule.setdefault("refresh_interval_ms", HOUR_MS)
    return RefreshScheduler(ScheduleConfig(**schedule), ingestion, EnrichmentService(clock=clock), clock=clock)


def slow_scheduler(clock, seconds=0.3, **schedule):
    """Ingestion that stays suspended for ``seconds`` of real time."""
    finished = []

    async def slow_ingest(regions=None):
        await asyncio.sleep(seconds)
        finished.append(regions)
        return []

    ingestion = MagicMock(spec=IngestionService)
    ingestion.ingest = AsyncMock(side_effect=slow_ingest)
    schedule.setdefault("enrichment_interval_ms", HOUR_MS)
    schedule.setdefault("refresh_interval_ms", HOUR_MS)
    scheduler = RefreshScheduler(ScheduleConfig(**schedule), ingestion, EnrichmentService(clock=clock), clock=clock)
    return scheduler, finished


def record_events(scheduler):
    events = []
    scheduler.on(events.append)
    return events


def of_type(events, event_type):
    return [e for e in events if e.type == event_type]


# --- Lifecycle ---

@pytest.mark.asyncio
async def test_double_start_arms_one_set_of_timers(clock):
    scheduler = make_scheduler(clock, ingestion_interval_ms=200)
    events = record_events(scheduler)

    scheduler.start()
    armed = scheduler._scheduler
    scheduler.start()
    assert scheduler._scheduler is armed
    assert len(armed.get_jobs()) == 3

    await asyncio.sleep(0.55)
    scheduler.stop()

    started = of_type(events, SchedulerEventType.INGESTION_STARTED)
    assert 1 <= len(started) <= 3


@pytest.mark.asyncio
async def test_stop_right_after_start_runs_no_ticks(clock):
    scheduler = make_scheduler(clock, ingestion_interval_ms=100, enrichment_interval_ms=100, refresh_interval_ms=100)
    events = record_events(scheduler)

    scheduler.start()
    scheduler.stop()
    await asyncio.sleep(0.3)

    assert events == []
    status = scheduler.get_status()
    assert status.running is False
    assert status.next_scheduled_run is None


@pytest.mark.asyncio
async def test_stop_lets_running_tick_finish(clock):
    scheduler, finished = slow_scheduler(clock, ingestion_interval_ms=100)
    events = record_events(scheduler)

    scheduler.start()
    await asyncio.sleep(0.15)
    scheduler.stop()
    await scheduler.wait_idle()
    await asyncio.sleep(0.2)

    assert finished == [None]
    assert [e.type for e in events] == [SchedulerEventType.INGESTION_STARTED, SchedulerEventType.INGESTION_COMPLETED]
    status = scheduler.get_status()
    assert status.running is False
    assert status.last_ingestion_run == NOW
    assert status.total_errors == 0


@pytest.mark.asyncio
async def test_pause_lets_running_tick_finish(clock):
    scheduler, finished = slow_scheduler(clock, ingestion_interval_ms=100)
    events = record_events(scheduler)

    scheduler.start()
    await asyncio.sleep(0.15)
    scheduler.pause()
    await scheduler.wait_idle()
    status = scheduler.get_status()
    scheduler.stop()

    assert finished == [None]
    assert of_type(events, SchedulerEventType.INGESTION_COMPLETED)
    assert status.running is True
    assert status.last_ingestion_run == NOW


@pytest.mark.asyncio
async def test_update_config_lets_running_tick_finish(clock):
    scheduler, finished = slow_scheduler(clock, ingestion_interval_ms=100)
    events = record_events(scheduler)

    scheduler.start()
    await asyncio.sleep(0.15)
    scheduler.update_config(ingestion_interval_ms=HOUR_MS)
    await scheduler.wait_idle()
    scheduler.stop()

    assert finished == [None]
    assert of_type(events, SchedulerEventType.INGESTION_COMPLETED)


@pytest.mark.asyncio
async def test_start_sets_next_scheduled_run(clock):
    scheduler = make_scheduler(clock)

    scheduler.start()
    status = scheduler.get_status()
    scheduler.stop()

    assert status.running is True
    assert status.next_scheduled_run is not None


@pytest.mark.asyncio
async def test_disabled_schedule_runs_without_timers(clock):
    scheduler = make_scheduler(clock, enabled=False, ingestion_interval_ms=50)
    events = record_events(scheduler)

    scheduler.start()
    await asyncio.sleep(0.2)

    assert events == []
    assert scheduler.get_status().running is True
    assert scheduler.get_status().next_scheduled_run is None

    # manual triggers still work
    data = await scheduler.trigger_ingestion()
    assert data["filings_found"] == 2
    scheduler.stop()


@pytest.mark.asyncio
async def test_start_if_configured_respects_auto_start(clock):
    manual = make_scheduler(clock)
    assert manual.start_if_configured() is False
    assert manual.get_status().running is False

    auto = make_scheduler(clock, auto_start=True)
    assert auto.start_if_configured() is True
    auto.stop()


@pytest.mark.asyncio
async def test_stop_when_not_running_is_noop(clock):
    scheduler = make_scheduler(clock)
    scheduler.stop()
    assert scheduler.get_status().running is False


@pytest.mark.asyncio
async def test_pause_and_resume(clock):
    scheduler = make_scheduler(clock, ingestion_interval_ms=100)
    events = record_events(scheduler)

    scheduler.start()
    scheduler.pause()
    assert scheduler.paused
    assert scheduler.get_status().next_scheduled_run is None
    await asyncio.sleep(0.3)
    assert events == []

    scheduler.resume()
    await asyncio.sleep(0.35)
    scheduler.stop()

    assert of_type(events, SchedulerEventType.INGESTION_STARTED)


@pytest.mark.asyncio
async def test_update_config_rearms_running_timers(clock):
    scheduler = make_scheduler(clock)
    scheduler.start()
    before = scheduler.get_status().next_scheduled_run

    schedule = scheduler.update_config(ingestion_interval_ms=60_000, enrichment_batch_size=5)
    after = scheduler.get_status()
    scheduler.stop()

    assert schedule.ingestion_interval_ms == 60_000
    assert scheduler.schedule.enrichment_batch_size == 5
    assert after.running is True
    assert after.next_scheduled_run < before


@pytest.mark.asyncio
async def test_update_config_rejects_invalid_values(clock):
    scheduler = make_scheduler(clock)
    with pytest.raises(ValidationError):
        scheduler.update_config(ingestion_interval_ms=0)
    assert scheduler.schedule.ingestion_interval_ms == HOUR_MS


@pytest.mark.asyncio
async def test_from_config_wires_services(clock):
    config = PipelineConfig(
        ingestion=make_ingestion_config(),
        schedule=ScheduleConfig(enrichment_batch_size=7),
    )
    scheduler = RefreshScheduler.from_config(config, clock=clock, client_factory=scripted_factory(SCRIPTS))

    data = await scheduler.trigger_ingestion()

    assert scheduler.schedule.enrichment_batch_size == 7
    assert data["prospects_created"] == 2


# --- Events ---

@pytest.mark.asyncio
async def test_handlers_called_in_registration_order(clock):
    scheduler = make_scheduler(clock)
    calls = []
    scheduler.on(lambda e: calls.append(("first", e.type)))
    scheduler.on(lambda e: calls.append(("second", e.type)))

    await scheduler.trigger_refresh()

    assert calls == [
        ("first", SchedulerEventType.REFRESH_STARTED),
        ("second", SchedulerEventType.REFRESH_STARTED),
        ("first", SchedulerEventType.REFRESH_COMPLETED),
        ("second", SchedulerEventType.REFRESH_COMPLETED),
    ]


@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery(clock):
    scheduler = make_scheduler(clock)
    events = []
    unsubscribe = scheduler.on(events.append)

    unsubscribe()
    unsubscribe()
    await scheduler.trigger_refresh()

    assert events == []
    assert len(scheduler.events) == 0


@pytest.mark.asyncio
async def test_raising_handler_does_not_block_others(clock):
    scheduler = make_scheduler(clock)

    def broken(event):
        raise RuntimeError("handler bug")

    scheduler.on(broken)
    events = record_events(scheduler)

    data = await scheduler.trigger_refresh()

    assert data is not None
    assert [e.type for e in events] == [SchedulerEventType.REFRESH_STARTED, SchedulerEventType.REFRESH_COMPLETED]


def test_event_bus_emits_to_current_handlers():
    bus = EventBus()
    seen = []
    unsubscribe = bus.on(lambda e: seen.append(("a", e.type)))
    bus.on(lambda e: seen.append(("b", e.type)))
    event = SchedulerEvent(type=SchedulerEventType.ERROR, timestamp=NOW, error="boom")

    bus.emit(event)
    unsubscribe()
    bus.emit(event)
    bus.clear()
    bus.emit(event)

    assert seen == [("a", SchedulerEventType.ERROR), ("b", SchedulerEventType.ERROR), ("b", SchedulerEventType.ERROR)]
    assert len(bus) == 0


# --- Ingestion ---

@pytest.mark.asyncio
async def test_trigger_ingestion_populates_store(clock):
    scheduler = make_scheduler(clock, regions=["NY", "CA"])
    events = record_events(scheduler)

    data = await scheduler.trigger_ingestion()

    assert data == {
        "sources": 2,
        "filings_found": 2,
        "prospects_created": 2,
        "prospects_updated": 0,
        "failures": 1,
    }
    assert [e.type for e in events] == [SchedulerEventType.INGESTION_STARTED, SchedulerEventType.INGESTION_COMPLETED]
    assert events[0].data == {"regions": ["NY", "CA"]}
    assert events[1].data == data
    assert events[1].timestamp == NOW

    names = sorted(p.company_name for p in scheduler.get_prospects())
    assert names == ["Acme Manufacturing LLC", "Hudson Cafe"]

    status = scheduler.get_status()
    assert status.last_ingestion_run == NOW
    assert status.total_prospects_processed == 2
    assert status.total_errors == 1


@pytest.mark.asyncio
async def test_repeat_ingestion_updates_existing_prospects(clock):
    scheduler = make_scheduler(clock)
    await scheduler.trigger_ingestion()
    ids = sorted(p.id for p in scheduler.get_prospects())

    clock.advance(3600)
    data = await scheduler.trigger_ingestion()

    assert data["prospects_created"] == 0
    assert data["prospects_updated"] == 2
    assert sorted(p.id for p in scheduler.get_prospects()) == ids
    assert all(len(p.filings) == 1 for p in scheduler.get_prospects())


@pytest.mark.asyncio
async def test_failed_ingestion_emits_error_and_counts_it(clock):
    scheduler = failing_scheduler(clock)
    events = record_events(scheduler)

    data = await scheduler.trigger_ingestion()

    assert data is None
    assert [e.type for e in events] == [SchedulerEventType.INGESTION_STARTED, SchedulerEventType.ERROR]
    assert events[1].error == "Ingestion error: upstream unavailable"
    status = scheduler.get_status()
    assert status.total_errors == 1
    assert status.last_ingestion_run is None


@pytest.mark.asyncio
async def test_failing_timer_keeps_scheduler_running(clock):
    scheduler = failing_scheduler(clock, ingestion_interval_ms=100)
    events = record_events(scheduler)

    scheduler.start()
    await asyncio.sleep(0.35)
    status = scheduler.get_status()
    scheduler.stop()

    assert status.running is True
    assert status.total_errors >= 2
    assert len(of_type(events, SchedulerEventType.ERROR)) == status.total_errors


@pytest.mark.asyncio
async def test_filings_for_same_debtor_merge_into_one_prospect(clock):
    scripts = {"demo-api": {"NY": [[
        raw_record("A1", debtor="Acme Manufacturing LLC", days_ago=900),
        raw_record("A2", debtor="ACME Manufacturing, LLC", days_ago=400),
        raw_record("B1", debtor="Hudson Cafe"),
    ]]}}
    scheduler = make_scheduler(clock, scripts=scripts)

    data = await scheduler.trigger_ingestion()

    assert data["filings_found"] == 3
    assert data["prospects_created"] == 2
    assert data["prospects_updated"] == 0
    assert scheduler.get_status().total_prospects_processed == 2

    acme = next(p for p in scheduler.get_prospects() if p.company_name.lower().startswith("acme"))
    assert sorted(f.id for f in acme.filings) == ["A1", "A2"]
    assert len(scheduler.get_prospects()) == 2


@pytest.mark.asyncio
async def test_batch_filings_merge_into_stored_prospect(clock):
    scripts = {"demo-api": {"NY": [[raw_record("A3"), raw_record("A4", days_ago=100)]]}}
    scheduler = make_scheduler(clock, scripts=scripts)
    earlier, _ = await scheduler.enrichment.enrich(make_filing("A1", debtor="Acme Manufacturing LLC"))
    scheduler.store.upsert(earlier)

    data = await scheduler.trigger_ingestion()

    assert data["prospects_created"] == 0
    assert data["prospects_updated"] == 1
    [prospect] = scheduler.get_prospects()
    assert prospect.id == earlier.id
    assert sorted(f.id for f in prospect.filings) == ["A1", "A3", "A4"]


# --- Enrichment ---

@pytest.mark.asyncio
async def test_trigger_enrichment_fills_incomplete_prospects(clock):
    scheduler = make_scheduler(clock, enrichment_batch_size=2)
    bare = EnrichmentService([], clock=clock)
    for i in range(3):
        prospect, _ = await bare.enrich(make_filing(f"F-{i}", debtor=f"Debtor {i} LLC"))
        scheduler.store.upsert(prospect)

    data = await scheduler.trigger_enrichment()

    assert data == {"prospects_enriched": 2, "remaining": 1, "failures": 0}
    enriched = [p for p in scheduler.get_prospects() if p.estimated_revenue is not None]
    assert len(enriched) == 2
    assert scheduler.get_status().last_enrichment_run == NOW
    assert scheduler.get_status().total_prospects_processed == 2


@pytest.mark.asyncio
async def test_explicit_ids_are_not_capped_by_batch_size(clock):
    scheduler = make_scheduler(clock, enrichment_batch_size=1)
    bare = EnrichmentService([], clock=clock)
    ids = []
    for i in range(3):
        prospect, _ = await bare.enrich(make_filing(f"F-{i}", debtor=f"Debtor {i} LLC"))
        scheduler.store.upsert(prospect)
        ids.append(prospect.id)

    data = await scheduler.trigger_enrichment(ids)

    assert data == {"prospects_enriched": 3, "remaining": 0, "failures": 0}
    assert all(scheduler.store.get(i).estimated_revenue is not None for i in ids)


@pytest.mark.asyncio
async def test_trigger_enrichment_for_specific_ids(clock):
    scheduler = make_scheduler(clock)
    bare = EnrichmentService([], clock=clock)
    prospect, _ = await bare.enrich(make_filing())
    scheduler.store.upsert(prospect)

    data = await scheduler.trigger_enrichment([prospect.id, "missing"])

    assert data["prospects_enriched"] == 1
    assert scheduler.store.get(prospect.id).estimated_revenue is not None


# --- Refresh ---

@pytest.mark.asyncio
async def test_stale_prospects_are_refreshed(clock):
    scheduler = make_scheduler(clock, stale_data_threshold_days=7)
    await scheduler.trigger_ingestion()
    assert scheduler.find_stale_prospects() == []

    clock.advance(timedelta(days=8).total_seconds())
    stale = scheduler.find_stale_prospects()
    assert len(stale) == 2

    data = await scheduler.trigger_refresh()

    assert data == {"prospects_refreshed": 2, "remaining": 0, "failures": 0}
    assert scheduler.find_stale_prospects() == []
    for prospect in scheduler.get_prospects():
        assert prospect.health_score.last_updated == NOW + timedelta(days=8)
    assert {p.id for p in scheduler.get_prospects()} == {p.id for p in stale}


@pytest.mark.asyncio
async def test_fresh_prospects_are_skipped(clock):
    scheduler = make_scheduler(clock, stale_data_threshold_days=7)
    await scheduler.trigger_ingestion()
    before = {p.id: p.narrative for p in scheduler.get_prospects()}

    data = await scheduler.trigger_refresh()

    assert data["prospects_refreshed"] == 0
    assert {p.id: p.narrative for p in scheduler.get_prospects()} == before


@pytest.mark.asyncio
async def test_refresh_prospect(clock):
    scheduler = make_scheduler(clock)
    await scheduler.trigger_ingestion()
    target = scheduler.get_prospects()[0]

    clock.advance(86400)
    refreshed = await scheduler.refresh_prospect(target.id)

    assert refreshed.id == target.id
    assert refreshed.health_score.last_updated == NOW + timedelta(days=1)
    assert scheduler.store.get(target.id) is refreshed
    assert await scheduler.refresh_prospect("unknown") is None


# --- Status ---

@pytest.mark.asyncio
async def test_get_status_returns_a_snapshot(clock):
    scheduler = make_scheduler(clock)
    status = scheduler.get_status()
    status.total_errors = 99
    status.running = True

    assert scheduler.get_status().total_errors == 0
    assert scheduler.get_status().running is False


@pytest.mark.asyncio
async def test_prospect_store_upsert_reports_new_ids(clock):
    service = EnrichmentService(clock=clock)
    first, _ = await service.enrich(make_filing("F-1", debtor="Alpha Tech"))
    second, _ = await service.enrich(make_filing("F-2", debtor="Beta Foods"))
    store = ProspectStore()

    assert store.upsert(first) is True
    assert store.upsert(second) is True
    assert store.upsert(first.copy(narrative="updated")) is False

    assert store.ids() == [first.id, second.id]
    assert store.get(first.id).narrative == "updated"
    assert first.id in store
    assert len(store) == 2
    assert store.remove(second.id) is second
    assert store.remove(second.id) is None
    assert [p.id for p in store] == [first.id]
