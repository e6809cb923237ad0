"""
Refresh scheduler: keeps the prospect index fresh on three recurring timers.

- ingestion: pull filings from every source, enrich them into prospects
- enrichment: fill prospects missing revenue or growth signals
- refresh: re-score prospects whose health data is older than the threshold

Timers are APScheduler interval jobs on an AsyncIOScheduler; the first tick of
each fires one interval after start(). Every tick (timer or manual trigger)
emits *-started then *-completed or error, updates SchedulerStatus, and never
raises.

Usage:
    scheduler = RefreshScheduler.from_config(PipelineConfig.for_environment("development"))
    unsubscribe = scheduler.on(lambda event: print(event.to_dict()))
    scheduler.start()
    ...
    scheduler.stop()
    await scheduler.wait_idle()   # let ticks already running finish
"""
import asyncio
import logging
from dataclasses import replace
from datetime import timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set, Tuple

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from lienscout.core.clock import Clock, system_clock
from lienscout.core.data_types import NormalizedFiling, Prospect, SchedulerEvent, SchedulerStatus
from lienscout.core.models import SchedulerEventType
from lienscout.core.pipeline import PipelineConfig, ScheduleConfig
from lienscout.enrichment.service import EnrichmentService, prospect_id_for
from lienscout.ingestion.service import IngestionService
from lienscout.scheduler.events import EventBus, EventHandler
from lienscout.scheduler.store import ProspectStore

logger = logging.getLogger(__name__)

INGESTION_JOB = "ingestion"
ENRICHMENT_JOB = "enrichment"
REFRESH_JOB = "refresh"

DEFAULT_CONCURRENCY = 5


class RefreshScheduler:

    def __init__(
        self,
        schedule: ScheduleConfig,
        ingestion_service: IngestionService,
        enrichment_service: EnrichmentService,
        clock: Clock = system_clock,
        store: Optional[ProspectStore] = None,
        events: Optional[EventBus] = None,
        concurrency: int = DEFAULT_CONCURRENCY,
    ):
        self.schedule = schedule
        self.ingestion = ingestion_service
        self.enrichment = enrichment_service
        self.clock = clock
        self.store = store or ProspectStore()
        self.events = events or EventBus()
        self.concurrency = concurrency

        self.status = SchedulerStatus()
        self.paused = False
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._inflight: Set[asyncio.Task] = set()

    @classmethod
    def from_config(
        cls,
        config: PipelineConfig,
        clock: Clock = system_clock,
        client_factory: Optional[Callable] = None,
        timeout_seconds: float = 30.0,
    ) -> "RefreshScheduler":
        """Wire ingestion and enrichment services from one PipelineConfig."""
        ingestion = IngestionService(
            config.ingestion, clock=clock, client_factory=client_factory, timeout_seconds=timeout_seconds
        )
        enrichment = EnrichmentService(config.enrichment_sources, clock=clock)
        return cls(config.schedule, ingestion, enrichment, clock=clock)

    # =================================================================
    # LIFECYCLE
    # =================================================================

    def start(self) -> None:
        """Arm the three timers. Must be called from inside a running event loop."""
        if self.status.running:
            logger.warning("Scheduler is already running")
            return

        self.status.running = True
        self.paused = False

        if not self.schedule.enabled:
            logger.info("Scheduler started with timers disabled; manual triggers only")
            return

        scheduler = AsyncIOScheduler(
            timezone=timezone.utc,
            job_defaults={"coalesce": True, "max_instances": 1},
        )
        jobs = (
            (INGESTION_JOB, self._ingestion_tick, self.schedule.ingestion_interval_ms),
            (ENRICHMENT_JOB, self._enrichment_tick, self.schedule.enrichment_interval_ms),
            (REFRESH_JOB, self._refresh_tick, self.schedule.refresh_interval_ms),
        )
        for job_id, func, interval_ms in jobs:
            scheduler.add_job(
                func,
                IntervalTrigger(seconds=interval_ms / 1000, timezone=timezone.utc),
                id=job_id,
                replace_existing=True,
            )
        scheduler.start()
        self._scheduler = scheduler
        self._update_next_run()

        logger.info(
            f"Scheduler started: ingestion every {self.schedule.ingestion_interval_ms / 1000:.0f}s, "
            f"enrichment every {self.schedule.enrichment_interval_ms / 1000:.0f}s, "
            f"refresh every {self.schedule.refresh_interval_ms / 1000:.0f}s"
        )

    def start_if_configured(self) -> bool:
        """Start when schedule.auto_start is set. Returns whether the scheduler is running."""
        if self.schedule.auto_start:
            self.start()
        return self.status.running

    def stop(self) -> None:
        """
        Cancel all timers. Ticks already running are not cancelled; they finish
        and still update status (see wait_idle()).
        """
        if not self.status.running:
            logger.debug("Scheduler is not running")
            return

        self.status.running = False
        self.paused = False
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
        self.status.next_scheduled_run = None
        logger.info("Scheduler stopped")

    def pause(self) -> None:
        if not self.status.running or self.paused:
            return
        self.paused = True
        if self._scheduler is not None:
            self._scheduler.pause()
        self.status.next_scheduled_run = None
        logger.info("Scheduler paused")

    def resume(self) -> None:
        if not self.status.running or not self.paused:
            return
        self.paused = False
        if self._scheduler is not None:
            self._scheduler.resume()
            self._update_next_run()
        logger.info("Scheduler resumed")

    def update_config(self, **changes: Any) -> ScheduleConfig:
        """Merge schedule changes; running timers are re-armed with the new values."""
        self.schedule = ScheduleConfig(**{**self.schedule.model_dump(), **changes})
        if self.status.running:
            self.stop()
            self.start()
        return self.schedule

    async def wait_idle(self) -> None:
        """Wait for ticks that were running when the timers were stopped or paused."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    def _update_next_run(self) -> None:
        if self._scheduler is None or self.paused:
            self.status.next_scheduled_run = None
            return
        run_times = [job.next_run_time for job in self._scheduler.get_jobs() if job.next_run_time]
        self.status.next_scheduled_run = min(run_times) if run_times else None

    # =================================================================
    # EVENTS
    # =================================================================

    def on(self, handler: EventHandler) -> Callable[[], None]:
        return self.events.on(handler)

    def _emit(self, event_type: SchedulerEventType, data: Optional[Dict[str, Any]] = None, error: Optional[str] = None):
        self.events.emit(SchedulerEvent(type=event_type, timestamp=self.clock.now(), data=data, error=error))

    def _fail(self, label: str, error: Exception) -> None:
        self.status.total_errors += 1
        logger.error(f"{label} error: {error}", exc_info=True)
        self._emit(SchedulerEventType.ERROR, error=f"{label} error: {error}")

    # =================================================================
    # TIMER CALLBACKS
    # =================================================================

    async def _run_tick(self, trigger: Callable[[], Awaitable[Any]]) -> None:
        if not self.status.running:
            return
        # The trigger runs as its own task: shutting the scheduler down cancels
        # the job coroutine, but the shielded task still completes.
        task = asyncio.ensure_future(self._tick_body(trigger))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        await asyncio.shield(task)

    async def _tick_body(self, trigger: Callable[[], Awaitable[Any]]) -> None:
        await trigger()
        self._update_next_run()

    async def _ingestion_tick(self) -> None:
        await self._run_tick(self.trigger_ingestion)

    async def _enrichment_tick(self) -> None:
        await self._run_tick(self.trigger_enrichment)

    async def _refresh_tick(self) -> None:
        await self._run_tick(self.trigger_refresh)

    # =================================================================
    # OPERATIONS
    # =================================================================

    async def trigger_ingestion(self, regions: Optional[Iterable[str]] = None) -> Optional[Dict[str, Any]]:
        """Ingest, enrich the new filings and store the prospects. Returns the completion payload."""
        regions = list(regions) if regions else self.schedule.ingestion_regions
        self._emit(SchedulerEventType.INGESTION_STARTED, data={"regions": regions})
        logger.info("Running ingestion...")

        try:
            results = await self.ingestion.ingest(regions)
            self.status.last_ingestion_run = self.clock.now()

            filings = [filing for result in results for filing in result.filings]
            touched, enrichment_failures = await self._enrich_filings(filings)
            created = sum(1 for is_new in touched.values() if is_new)

            failures = sum(1 for r in results if not r.success) + enrichment_failures
            self.status.total_prospects_processed += len(touched)
            self.status.total_errors += failures
        except Exception as e:
            self._fail("Ingestion", e)
            return None

        data = {
            "sources": len(results),
            "filings_found": len(filings),
            "prospects_created": created,
            "prospects_updated": len(touched) - created,
            "failures": failures,
        }
        self._emit(SchedulerEventType.INGESTION_COMPLETED, data=data)
        logger.info(f"Ingestion complete: {len(filings)} filings, {len(touched)} prospects processed")
        return data

    async def _enrich_filings(self, filings: List[NormalizedFiling]) -> Tuple[Dict[str, bool], int]:
        """
        Enrich filings into the store. Filings of the same prospect go in
        successive waves so each one merges into the result of the previous.

        Returns ({prospect_id: created}, failed enrichment count).
        """
        groups: Dict[str, List[NormalizedFiling]] = {}
        for filing in filings:
            groups.setdefault(prospect_id_for(filing), []).append(filing)

        touched: Dict[str, bool] = {}
        failures = 0
        depth = max((len(group) for group in groups.values()), default=0)
        for wave in range(depth):
            batch = [group[wave] for group in groups.values() if len(group) > wave]
            prospects, results = await self.enrichment.enrich_batch(
                batch, concurrency=self.concurrency, existing=self.store.as_mapping()
            )
            for prospect in prospects:
                created = self.store.upsert(prospect)
                touched[prospect.id] = touched.get(prospect.id, False) or created
            failures += sum(1 for r in results if not r.success)
        return touched, failures

    def _needs_enrichment(self, prospect: Prospect) -> bool:
        return bool(prospect.filings) and (prospect.estimated_revenue is None or not prospect.growth_signals)

    async def trigger_enrichment(self, prospect_ids: Optional[Iterable[str]] = None) -> Optional[Dict[str, Any]]:
        """
        Enrich incomplete prospects (missing revenue or growth signals), up to
        enrichment_batch_size. Pass prospect_ids to enrich exactly those prospects, uncapped.
        """
        self._emit(SchedulerEventType.ENRICHMENT_STARTED)
        logger.info("Running enrichment...")

        try:
            if prospect_ids is not None:
                # explicit requests are not capped by enrichment_batch_size
                candidates = [p for p in (self.store.get(i) for i in prospect_ids) if p is not None and p.filings]
                batch = candidates
            else:
                candidates = [p for p in self.store.values() if self._needs_enrichment(p)]
                batch = candidates[: self.schedule.enrichment_batch_size]

            enriched = 0
            failures = 0
            for prospect in batch:
                updated, result = await self.enrichment.enrich(prospect.filings[0], existing=prospect)
                self.store.upsert(updated)
                enriched += 1
                if not result.success:
                    failures += 1

            self.status.last_enrichment_run = self.clock.now()
            self.status.total_prospects_processed += enriched
            self.status.total_errors += failures
        except Exception as e:
            self._fail("Enrichment", e)
            return None

        data = {"prospects_enriched": enriched, "remaining": len(candidates) - enriched, "failures": failures}
        self._emit(SchedulerEventType.ENRICHMENT_COMPLETED, data=data)
        logger.info(f"Enrichment complete: {enriched} prospects enriched")
        return data

    def find_stale_prospects(self) -> List[Prospect]:
        threshold = timedelta(days=self.schedule.stale_data_threshold_days)
        now = self.clock.now()
        return [p for p in self.store.values() if now - p.health_score.last_updated > threshold]

    async def trigger_refresh(self) -> Optional[Dict[str, Any]]:
        """Refresh stale prospects, up to enrichment_batch_size per run. Fresh ones are skipped."""
        self._emit(SchedulerEventType.REFRESH_STARTED)
        logger.info("Running refresh...")

        try:
            stale = self.find_stale_prospects()
            batch = stale[: self.schedule.enrichment_batch_size]

            refreshed = 0
            failures = 0
            for prospect in batch:
                updated, result = await self.enrichment.refresh(prospect)
                self.store.upsert(updated)
                refreshed += 1
                if not result.success:
                    failures += 1

            self.status.last_refresh_run = self.clock.now()
            self.status.total_prospects_processed += refreshed
            self.status.total_errors += failures
        except Exception as e:
            self._fail("Refresh", e)
            return None

        data = {"prospects_refreshed": refreshed, "remaining": len(stale) - refreshed, "failures": failures}
        self._emit(SchedulerEventType.REFRESH_COMPLETED, data=data)
        logger.info(f"Refresh complete: {refreshed} prospects refreshed")
        return data

    async def refresh_prospect(self, prospect_id: str) -> Optional[Prospect]:
        prospect = self.store.get(prospect_id)
        if prospect is None:
            logger.warning(f"Prospect {prospect_id} not found")
            return None
        refreshed, _ = await self.enrichment.refresh(prospect)
        self.store.upsert(refreshed)
        return refreshed

    # =================================================================
    # QUERIES
    # =================================================================

    def get_prospects(self) -> List[Prospect]:
        return self.store.values()

    def get_status(self) -> SchedulerStatus:
        """Snapshot of the current status."""
        self._update_next_run()
        return replace(self.status)
