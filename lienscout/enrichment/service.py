"""
Enrichment service: turn a NormalizedFiling into a scored Prospect.

Steps, each gated on an enrichment source advertising the capability:
    industry-classification -> growth-signals -> health-score -> revenue-estimate
followed by priority score and narrative, which are always recomputed.

A failing step adds an error entry and lowers coverage; it never aborts the
prospect.
"""
import asyncio
import logging
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

from lienscout.core.clock import Clock, system_clock
from lienscout.core.data_types import EnrichmentResult, NormalizedFiling, Prospect
from lienscout.core.models import Capability, EnrichmentSourceKind
from lienscout.core.pipeline import EnrichmentSource
from lienscout.core.utils import days_between, normalize_name, stable_id
from lienscout.enrichment.health import HealthProvider, SimulatedHealthProvider, unscored_health
from lienscout.enrichment.industry import DEFAULT_INDUSTRY, classify_industry
from lienscout.enrichment.revenue import estimate_revenue
from lienscout.enrichment.scoring import calculate_priority, generate_narrative
from lienscout.enrichment.signals import SignalProvider, SimulatedSignalProvider

logger = logging.getLogger(__name__)

HEALTH_CONFIDENCE = 0.8
REVENUE_CONFIDENCE = 0.7

GROWTH_SIGNALS = "growth_signals"
HEALTH_SCORE = "health_score"
ESTIMATED_REVENUE = "estimated_revenue"
INDUSTRY = "industry"
PRIORITY_SCORE = "priority_score"
NARRATIVE = "narrative"

REFRESHABLE_FIELDS = (GROWTH_SIGNALS, HEALTH_SCORE, ESTIMATED_REVENUE)
DEFAULT_REFRESH_FIELDS = (GROWTH_SIGNALS, HEALTH_SCORE)


def default_enrichment_sources() -> List[EnrichmentSource]:
    return [
        EnrichmentSource(
            id="web-scraper",
            name="Web Scraper",
            kind=EnrichmentSourceKind.WEB_SCRAPING,
            capabilities=[Capability.GROWTH_SIGNALS, Capability.HEALTH_SCORE],
        ),
        EnrichmentSource(
            id="ml-inference",
            name="ML Inference Engine",
            kind=EnrichmentSourceKind.ML_INFERENCE,
            capabilities=[Capability.REVENUE_ESTIMATE, Capability.INDUSTRY_CLASSIFICATION],
        ),
    ]


def prospect_id_for(filing: NormalizedFiling) -> str:
    """Same debtor in the same jurisdiction maps to the same prospect."""
    return stable_id("prospect", filing.jurisdiction, normalize_name(filing.debtor_name) or filing.debtor_name)


class _Pass:
    """Accumulates fields, errors and confidences for one enrichment pass."""

    def __init__(self):
        self.fields: List[str] = []
        self.errors: List[str] = []
        self.confidences: List[float] = []

    def produced(self, field_name: str, confidence: Optional[float] = None) -> None:
        self.fields.append(field_name)
        if confidence is not None:
            self.confidences.append(confidence)

    def failed(self, label: str, error: Exception) -> None:
        self.errors.append(f"{label}: {error}")

    def result(self, prospect_id: str, timestamp) -> EnrichmentResult:
        confidence = sum(self.confidences) / len(self.confidences) if self.confidences else 0.0
        return EnrichmentResult(
            prospect_id=prospect_id,
            success=not self.errors,
            enriched_fields=tuple(self.fields),
            errors=tuple(self.errors),
            confidence=confidence,
            timestamp=timestamp,
        )


class EnrichmentService:
    """
    Usage:
        service = EnrichmentService(config.enrichment_sources)
        prospect, result = await service.enrich(filing)
        prospects, results = await service.enrich_batch(filings, concurrency=5)
        prospect, result = await service.refresh(prospect)
    """

    def __init__(
        self,
        sources: Optional[Iterable[EnrichmentSource]] = None,
        signal_provider: Optional[SignalProvider] = None,
        health_provider: Optional[HealthProvider] = None,
        clock: Clock = system_clock,
    ):
        self.sources = list(sources) if sources is not None else default_enrichment_sources()
        self.clock = clock
        self.signal_provider = signal_provider or SimulatedSignalProvider(clock)
        self.health_provider = health_provider or SimulatedHealthProvider(clock)

    def has_capability(self, capability: Capability) -> bool:
        return any(capability in source.capabilities for source in self.sources)

    # =================================================================
    # STEPS
    # =================================================================

    async def _apply_signals(self, prospect: Prospect, run: _Pass, keep_empty: bool) -> None:
        try:
            signals = await self.signal_provider.detect(prospect.company_name, prospect.jurisdiction)
        except Exception as e:
            logger.warning(f"{prospect.company_name}: growth signal detection failed: {e}")
            run.failed("Growth signals", e)
            return
        if not signals and not keep_empty:
            return
        prospect.growth_signals = list(signals)
        confidence = sum(s.confidence for s in signals) / len(signals) if signals else None
        run.produced(GROWTH_SIGNALS, confidence)

    async def _apply_health(self, prospect: Prospect, run: _Pass) -> None:
        try:
            prospect.health_score = await self.health_provider.assess(prospect.company_name, prospect.jurisdiction)
        except Exception as e:
            logger.warning(f"{prospect.company_name}: health scoring failed: {e}")
            run.failed("Health score", e)
            return
        run.produced(HEALTH_SCORE, HEALTH_CONFIDENCE)

    def _apply_revenue(self, prospect: Prospect, run: _Pass, lien_amount: Optional[float]) -> None:
        try:
            prospect.estimated_revenue = estimate_revenue(prospect.company_name, prospect.industry, lien_amount)
        except Exception as e:
            logger.warning(f"{prospect.company_name}: revenue estimate failed: {e}")
            run.failed("Revenue estimate", e)
            return
        run.produced(ESTIMATED_REVENUE, REVENUE_CONFIDENCE)

    def _finish(self, prospect: Prospect, run: _Pass) -> None:
        prospect.priority_score = calculate_priority(prospect)
        run.produced(PRIORITY_SCORE)
        prospect.narrative = generate_narrative(prospect)
        run.produced(NARRATIVE)

    # =================================================================
    # ENRICH
    # =================================================================

    async def enrich(
        self, filing: NormalizedFiling, existing: Optional[Prospect] = None
    ) -> Tuple[Prospect, EnrichmentResult]:
        """
        Build (or update) the prospect for a filing.

        With ``existing``, its id is kept and only the fields produced in this
        pass are overwritten; everything else carries over.
        """
        run = _Pass()
        now = self.clock.now()
        days = days_between(filing.filing_date, now)

        if existing is not None:
            filings = list(existing.filings)
            if all(f.id != filing.id for f in filings):
                filings.insert(0, filing)
            prospect = existing.copy(
                filings=filings,
                default_date=filing.filing_date,
                days_since_default=days,
            )
        else:
            prospect = Prospect(
                id=prospect_id_for(filing),
                company_name=filing.debtor_name,
                industry=DEFAULT_INDUSTRY,
                jurisdiction=filing.jurisdiction,
                default_date=filing.filing_date,
                days_since_default=days,
                health_score=unscored_health(),
                filings=[filing],
            )

        if existing is None and self.has_capability(Capability.INDUSTRY_CLASSIFICATION):
            prospect.industry, confidence = classify_industry(prospect.company_name)
            run.produced(INDUSTRY, confidence)

        if self.has_capability(Capability.GROWTH_SIGNALS):
            await self._apply_signals(prospect, run, keep_empty=False)

        if self.has_capability(Capability.HEALTH_SCORE):
            await self._apply_health(prospect, run)

        if prospect.estimated_revenue is None and self.has_capability(Capability.REVENUE_ESTIMATE):
            self._apply_revenue(prospect, run, filing.lien_amount)

        self._finish(prospect, run)
        result = run.result(prospect.id, now)
        logger.debug(
            f"Enriched {prospect.company_name}: priority {prospect.priority_score:.0f}, "
            f"confidence {result.confidence:.2f}, fields {list(result.enriched_fields)}"
        )
        return prospect, result

    async def enrich_batch(
        self,
        filings: Sequence[NormalizedFiling],
        concurrency: int = 5,
        existing: Optional[Mapping[str, Prospect]] = None,
    ) -> Tuple[List[Prospect], List[EnrichmentResult]]:
        """
        Enrich filings with at most ``concurrency`` in flight.

        Results come back one per filing in input order. A filing whose
        enrichment raised gets a failed result and no prospect.
        ``existing`` maps prospect id -> prospect to merge into.
        """
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")

        semaphore = asyncio.Semaphore(concurrency)
        existing = existing or {}

        async def enrich_one(filing: NormalizedFiling):
            async with semaphore:
                prospect_id = prospect_id_for(filing)
                try:
                    return await self.enrich(filing, existing.get(prospect_id))
                except Exception as e:
                    logger.error(f"Enrichment of filing {filing.id} failed: {e}", exc_info=True)
                    return None, EnrichmentResult(
                        prospect_id=prospect_id,
                        success=False,
                        enriched_fields=(),
                        errors=(str(e),),
                        confidence=0.0,
                        timestamp=self.clock.now(),
                    )

        outcomes = await asyncio.gather(*(enrich_one(f) for f in filings))

        prospects = [p for p, _ in outcomes if p is not None]
        results = [r for _, r in outcomes]
        failed = sum(1 for r in results if not r.success)
        logger.info(f"Enriched {len(prospects)}/{len(filings)} filings ({failed} with errors)")
        return prospects, results

    # =================================================================
    # REFRESH
    # =================================================================

    async def refresh(
        self, prospect: Prospect, fields: Optional[Iterable[str]] = None
    ) -> Tuple[Prospect, EnrichmentResult]:
        """
        Re-run selected steps on a copy of ``prospect``; defaults to growth
        signals and health score. Priority and narrative are recomputed after.
        """
        targets = tuple(fields) if fields is not None else DEFAULT_REFRESH_FIELDS
        unknown = [f for f in targets if f not in REFRESHABLE_FIELDS]
        if unknown:
            raise ValueError(f"Cannot refresh fields {unknown}; choose from {list(REFRESHABLE_FIELDS)}")

        run = _Pass()
        now = self.clock.now()
        updated = prospect.copy(days_since_default=days_between(prospect.default_date, now))

        if GROWTH_SIGNALS in targets and self.has_capability(Capability.GROWTH_SIGNALS):
            await self._apply_signals(updated, run, keep_empty=True)

        if HEALTH_SCORE in targets and self.has_capability(Capability.HEALTH_SCORE):
            await self._apply_health(updated, run)

        if ESTIMATED_REVENUE in targets and self.has_capability(Capability.REVENUE_ESTIMATE):
            lien_amount = updated.filings[0].lien_amount if updated.filings else None
            self._apply_revenue(updated, run, lien_amount)

        self._finish(updated, run)
        return updated, run.result(updated.id, now)
