"""
Client for REST filing providers.
GET {endpoint}/filings?state=XX&status=lapsed, Bearer auth, JSON body.
"""
import logging
from typing import Any, Dict, List

from lienscout.core.errors import PermanentFetchError
from lienscout.ingestion.clients.base import HttpFilingClient

logger = logging.getLogger(__name__)


class ApiFilingClient(HttpFilingClient):

    def __init__(self, source, **kwargs):
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if source.credential:
            headers["Authorization"] = f"Bearer {source.credential}"
        kwargs.setdefault("headers", headers)
        super().__init__(source, **kwargs)

    async def fetch(self, region: str) -> List[Dict[str, Any]]:
        data = await self._get_json(
            "/filings",
            params={"state": region, "status": "lapsed", "limit": self.batch_size},
        )

        # Providers return either a bare array or {"filings": [...]} / {"data": [...]}
        if isinstance(data, dict):
            data = data.get("filings", data.get("data"))
        if data is None:
            return []
        if not isinstance(data, list):
            raise PermanentFetchError(
                f"Unexpected payload from {self.source.name}: {type(data).__name__}",
                source_id=self.source.id,
            )

        logger.debug(f"{self.source.name}: {len(data)} raw records for {region}")
        return data
