"""
Shared bases for filing-source clients.

- FilingClient: the contract every source kind implements (async context
  manager + fetch(region) -> raw provider records).
- HttpFilingClient: aiohttp session lifecycle and single-shot GET helpers that
  translate HTTP/network failures into the fetch error taxonomy.

Clients make exactly one attempt per call. Retries, rate limiting and circuit
breaking are layered on by IngestionService.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import aiohttp

from lienscout.core.errors import FetchError, PermanentFetchError, TransientFetchError, classify_http_status
from lienscout.core.pipeline import DataSource

logger = logging.getLogger(__name__)

__all__ = ["FilingClient", "HttpFilingClient"]


class FilingClient(ABC):
    """
    Base for all filing-source clients. Use as async context manager:

        async with client:
            records = await client.fetch("NY")
    """

    def __init__(self, source: DataSource, batch_size: int = 100):
        self.source = source
        self.batch_size = batch_size

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False

    @abstractmethod
    async def fetch(self, region: str) -> List[Dict[str, Any]]:
        """Fetch raw provider records for one region. Raises FetchError subclasses."""
        pass


class HttpFilingClient(FilingClient):
    """
    Base for clients that talk HTTP with aiohttp.

    A session can be injected (shared pool, tests); otherwise one is opened on
    __aenter__ and closed on __aexit__.
    """

    def __init__(
        self,
        source: DataSource,
        batch_size: int = 100,
        timeout_seconds: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(source, batch_size)
        self.timeout_seconds = timeout_seconds
        self.session = session
        self._owns_session = session is None
        self._headers = headers or {}

    async def __aenter__(self):
        if self.session is None:
            self.session = aiohttp.ClientSession(headers=self._headers)
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._owns_session and self.session is not None:
            await self.session.close()
            self.session = None
        return False

    def _full_url(self, path: str = "") -> str:
        base = (self.source.endpoint or "").rstrip("/")
        if not base:
            raise PermanentFetchError(f"Source {self.source.id} has no endpoint configured", source_id=self.source.id)
        if not path:
            return base
        return f"{base}/{path.lstrip('/')}"

    async def _request(self, url: str, params: Optional[Dict[str, Any]], as_json: bool) -> Any:
        if self.session is None:
            raise RuntimeError("Client context not entered.")

        try:
            async with self.session.get(
                url,
                params=params,
                headers=self._headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            ) as response:
                if response.status >= 400:
                    text = await response.text()
                    logger.debug(f"GET {url} -> {response.status}: {text[:300]}")
                    raise classify_http_status(response.status, self.source.id, text)
                if not as_json:
                    return await response.text()
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise PermanentFetchError(
                        f"Malformed JSON from {self.source.name}: {e}", source_id=self.source.id
                    ) from e
        except FetchError:
            raise
        except asyncio.TimeoutError as e:
            raise TransientFetchError(
                f"Timeout after {self.timeout_seconds:.0f}s fetching {url}", source_id=self.source.id
            ) from e
        except aiohttp.ClientError as e:
            raise TransientFetchError(f"Network error fetching {url}: {e}", source_id=self.source.id) from e

    async def _get_json(self, path: str = "", params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._request(self._full_url(path), params, as_json=True)

    async def _get_text(self, path: str = "", params: Optional[Dict[str, Any]] = None) -> str:
        return await self._request(self._full_url(path), params, as_json=False)
