"""
Filing-source clients, one per source kind.

    client = build_client(source, batch_size=100)
    async with client:
        records = await client.fetch("NY")
"""
from typing import Any

from lienscout.core.models import SourceKind
from lienscout.core.pipeline import DataSource
from lienscout.ingestion.clients.api_client import ApiFilingClient
from lienscout.ingestion.clients.base import FilingClient, HttpFilingClient
from lienscout.ingestion.clients.database_client import DatabaseFilingClient
from lienscout.ingestion.clients.portal_scraper import PortalFilingClient, parse_results_table

CLIENTS = {
    SourceKind.API: ApiFilingClient,
    SourceKind.STATE_PORTAL: PortalFilingClient,
    SourceKind.DATABASE: DatabaseFilingClient,
}


def build_client(source: DataSource, **kwargs: Any) -> FilingClient:
    """Default client factory: pick the client class by source kind."""
    try:
        client_cls = CLIENTS[source.kind]
    except KeyError:
        raise ValueError(f"No client for source kind {source.kind!r}") from None
    return client_cls(source, **kwargs)


__all__ = [
    "ApiFilingClient",
    "DatabaseFilingClient",
    "FilingClient",
    "HttpFilingClient",
    "PortalFilingClient",
    "build_client",
    "parse_results_table",
]
