"""
State UCC portal scraper.

Portals publish search results as an HTML table. Columns are located by header
text so a reordered or extended table still parses; rows are returned as raw
dicts keyed by snake_cased header ("Debtor Name" -> "debtor_name") and left
to the normalizer.
"""
import logging
import re
from typing import Any, Dict, List

from bs4 import BeautifulSoup

from lienscout.core.errors import PermanentFetchError
from lienscout.ingestion.clients.base import HttpFilingClient

logger = logging.getLogger(__name__)

TABLE_SELECTOR = "table.results, table#results, table"


def _header_key(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", text.strip().lower()).strip("_")


def parse_results_table(html: str) -> List[Dict[str, Any]]:
    """Extract rows of the first results table that has a header row."""
    soup = BeautifulSoup(html, "html.parser")

    for table in soup.select(TABLE_SELECTOR):
        header_cells = table.find_all("th")
        if not header_cells:
            continue
        headers = [_header_key(th.get_text(" ", strip=True)) for th in header_cells]

        rows: List[Dict[str, Any]] = []
        for tr in table.find_all("tr"):
            cells = tr.find_all("td")
            if not cells:
                continue
            values = [td.get_text(" ", strip=True) for td in cells]
            rows.append({h: v for h, v in zip(headers, values) if h and v})
        return rows

    return []


class PortalFilingClient(HttpFilingClient):
    """Scrapes a state portal search page for lapsed filings in one state."""

    def __init__(self, source, **kwargs):
        kwargs.setdefault("headers", {"Accept": "text/html", "User-Agent": "lienscout/0.1"})
        super().__init__(source, **kwargs)

    async def fetch(self, region: str) -> List[Dict[str, Any]]:
        html = await self._get_text(params={"state": region, "status": "lapsed"})
        if not html or "<" not in html:
            raise PermanentFetchError(f"Empty response from {self.source.name}", source_id=self.source.id)

        rows = parse_results_table(html)
        for row in rows:
            row.setdefault("jurisdiction", region)

        if len(rows) > self.batch_size:
            rows = rows[: self.batch_size]
        logger.debug(f"{self.source.name}: parsed {len(rows)} rows for {region}")
        return rows
