"""CLI entry point for LienScout."""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import List

from rich.console import Console
from rich.table import Table

from lienscout.core.config import settings
from lienscout.core.data_types import IngestionRunResult, NormalizedFiling, SchedulerEvent
from lienscout.core.errors import ConfigError
from lienscout.core.pipeline import PipelineConfig
from lienscout.ingestion.service import IngestionService
from lienscout.scheduler.service import RefreshScheduler

logger = logging.getLogger("lienscout")

console = Console()


def _load_config(args) -> PipelineConfig:
    if args.config:
        config = PipelineConfig.from_yaml(Path(args.config))
        return config.with_overrides(
            api_endpoint=settings.ucc_api_endpoint,
            api_key=settings.ucc_api_key,
            database_url=settings.ucc_database_url,
        )
    return PipelineConfig.from_settings(settings)


def _print_results(results: List[IngestionRunResult]) -> None:
    table = Table(title="Ingestion Results")
    table.add_column("Source", style="cyan")
    table.add_column("Region")
    table.add_column("Status")
    table.add_column("Filings", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Time (ms)", justify="right")
    table.add_column("Errors", style="red")

    for result in results:
        meta = result.metadata
        table.add_row(
            meta.source,
            meta.region or "-",
            "[green]OK[/green]" if result.success else "[red]FAILED[/red]",
            str(meta.record_count),
            str(meta.skipped_records),
            f"{meta.processing_time_ms:.0f}",
            result.errors[-1] if result.errors else "",
        )
    console.print(table)

    stats = IngestionService.get_statistics(results)
    console.print(
        f"\n[bold]Total records:[/bold] {stats.total_records}  "
        f"[bold]Success rate:[/bold] {stats.success_rate:.1f}%  "
        f"[bold]Avg time:[/bold] {stats.avg_processing_time:.0f} ms  "
        f"[bold]Errors:[/bold] {stats.error_count}"
    )


def _print_filings(filings: List[NormalizedFiling]) -> None:
    table = Table(title=f"Lapsed Filings ({len(filings)})")
    table.add_column("Filing ID", style="cyan")
    table.add_column("Filed")
    table.add_column("Debtor")
    table.add_column("Secured Party")
    table.add_column("State")
    table.add_column("Amount", justify="right")

    for filing in filings:
        table.add_row(
            filing.id,
            filing.filing_date.isoformat(),
            filing.debtor_name,
            filing.secured_party_name,
            filing.jurisdiction,
            f"${filing.lien_amount:,.0f}" if filing.lien_amount else "-",
        )
    console.print(table)


async def cmd_ingest(args) -> int:
    config = _load_config(args)
    service = IngestionService(config.ingestion, timeout_seconds=settings.http_timeout_seconds)
    results = await service.ingest(args.regions)
    _print_results(results)
    return 0 if all(r.success for r in results) else 1


async def cmd_lapsed(args) -> int:
    config = _load_config(args)
    service = IngestionService(config.ingestion, timeout_seconds=settings.http_timeout_seconds)
    filings = await service.find_lapsed_filings(args.max_age_days, args.regions)
    _print_filings(filings)
    return 0


async def cmd_run(args) -> int:
    config = _load_config(args)
    if args.regions:
        config.schedule.ingestion_regions = args.regions
    scheduler = RefreshScheduler.from_config(config, timeout_seconds=settings.http_timeout_seconds)

    def log_event(event: SchedulerEvent) -> None:
        if event.error:
            logger.error(f"[{event.type.value}] {event.error}")
        else:
            logger.info(f"[{event.type.value}] {event.data or ''}")

    scheduler.on(log_event)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            pass  # Windows

    scheduler.start()
    if args.now:
        await scheduler.trigger_ingestion()

    console.print("[bold green]Scheduler running.[/bold green] Press Ctrl+C to stop.")
    await stop_event.wait()

    scheduler.stop()
    await scheduler.wait_idle()
    status = scheduler.get_status()
    console.print(
        f"Processed {status.total_prospects_processed} prospects, {status.total_errors} errors, "
        f"{len(scheduler.get_prospects())} prospects in index"
    )
    return 0


def main():
    """Main CLI function."""
    parser = argparse.ArgumentParser(
        description="LienScout: UCC lien ingestion, enrichment and refresh scheduling",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # One ingestion pass over two states
  python -m lienscout ingest --regions NY CA

  # Lapsed filings from the last 2 years
  python -m lienscout lapsed --max-age-days 730

  # Run the scheduler with a YAML pipeline config, ingesting immediately
  python -m lienscout run --config config/pipeline.yaml --now
        """,
    )
    parser.add_argument("--config", help="Pipeline YAML (default: settings / environment defaults)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Run one ingestion pass")
    ingest.add_argument("--regions", nargs="+", help="States to ingest (space-separated)")

    lapsed = subparsers.add_parser("lapsed", help="List recent lapsed filings")
    lapsed.add_argument("--max-age-days", type=int, default=365, help="Maximum filing age (default: 365)")
    lapsed.add_argument("--regions", nargs="+", help="States to ingest (space-separated)")

    run = subparsers.add_parser("run", help="Start the refresh scheduler")
    run.add_argument("--regions", nargs="+", help="States to ingest on each run")
    run.add_argument("--now", action="store_true", help="Run an ingestion immediately after starting")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    commands = {"ingest": cmd_ingest, "lapsed": cmd_lapsed, "run": cmd_run}
    try:
        return asyncio.run(commands[args.command](args))
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
