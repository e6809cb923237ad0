"""
Shared pytest fixtures for the LienScout test suite.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from lienscout.core.clock import FakeClock
from lienscout.core.data_types import NormalizedFiling
from lienscout.core.database import Base
from lienscout.core.models import FilingStatus, FilingType, SourceKind
from lienscout.core.pipeline import DataSource, IngestionConfig
from lienscout.ingestion.clients.base import FilingClient

import lienscout.ingestion.database  # noqa: F401  (registers ucc_filings on Base.metadata)


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


# --- Clock ---

@pytest.fixture
def clock():
    """Virtual clock pinned to 2024-06-01 12:00 UTC."""
    return FakeClock(start=NOW)


# --- Config ---

def make_source(source_id: str = "demo-api", kind: SourceKind = SourceKind.API, rate: int = 60, **kwargs) -> DataSource:
    return DataSource(
        id=source_id,
        name=kwargs.pop("name", source_id.replace("-", " ").title()),
        kind=kind,
        endpoint=kwargs.pop("endpoint", f"https://{source_id}.example.com/v1"),
        rate_limit_per_minute=rate,
        **kwargs,
    )


def make_ingestion_config(sources=None, regions=None, **kwargs) -> IngestionConfig:
    return IngestionConfig(
        sources=sources if sources is not None else [make_source()],
        regions=regions or ["NY"],
        **kwargs,
    )


# --- Records / filings ---

def raw_record(filing_id: str, debtor: str = "Acme Manufacturing LLC", days_ago: int = 400, **overrides) -> Dict[str, Any]:
    record = {
        "id": filing_id,
        "filingDate": (NOW.date() - timedelta(days=days_ago)).isoformat(),
        "debtorName": debtor,
        "securedPartyName": "First Capital Bank",
        "status": "lapsed",
        "filingType": "UCC-1",
        "lienAmount": 250000,
    }
    record.update(overrides)
    return record


def make_filing(
    filing_id: str = "F-1",
    debtor: str = "Acme Manufacturing LLC",
    days_ago: int = 1500,
    lien_amount: Optional[float] = 500000,
    jurisdiction: str = "NY",
) -> NormalizedFiling:
    return NormalizedFiling(
        id=filing_id,
        filing_date=NOW.date() - timedelta(days=days_ago),
        debtor_name=debtor,
        secured_party_name="First Capital Bank",
        jurisdiction=jurisdiction,
        status=FilingStatus.LAPSED,
        filing_type=FilingType.UCC_1,
        lien_amount=lien_amount,
    )


# --- Filing client doubles ---

class FakeFilingClient(FilingClient):
    """
    Scripted client. ``script`` maps region -> list of outcomes consumed one per
    fetch; an outcome is either a list of raw records or an exception to raise.
    The last outcome repeats once the list is exhausted.
    """

    def __init__(self, source: DataSource, script: Dict[str, List[Any]], **_):
        super().__init__(source)
        self.script = {region: list(outcomes) for region, outcomes in script.items()}
        self.calls: List[str] = []
        self.entered = False
        self.exited = False

    async def __aenter__(self):
        self.entered = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.exited = True
        return False

    async def fetch(self, region: str) -> List[Dict[str, Any]]:
        self.calls.append(region)
        outcomes = self.script.get(region, [[]])
        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def scripted_factory(scripts: Dict[str, Dict[str, List[Any]]]):
    """client_factory that hands each source its own FakeFilingClient; clients are kept on .clients."""
    clients: Dict[str, FakeFilingClient] = {}

    def factory(source: DataSource, **kwargs) -> FakeFilingClient:
        client = clients.get(source.id)
        if client is None:
            client = FakeFilingClient(source, scripts.get(source.id, {}))
            clients[source.id] = client
        return client

    factory.clients = clients
    return factory


# --- aiohttp doubles ---

class FakeResponse:
    def __init__(self, status: int = 200, json_data: Any = None, text: str = "", json_error: Optional[Exception] = None):
        self.status = status
        self._json = json_data
        self._text = text
        self._json_error = json_error

    async def json(self, content_type=None):
        if self._json_error:
            raise self._json_error
        return self._json

    async def text(self):
        return self._text


class _RequestContext:
    def __init__(self, outcome):
        self.outcome = outcome

    async def __aenter__(self):
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


class FakeSession:
    """Stands in for aiohttp.ClientSession.get(); records every request."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.requests: List[Dict[str, Any]] = []
        self.closed = False

    def get(self, url, params=None, headers=None, timeout=None):
        self.requests.append({"url": url, "params": params, "headers": headers})
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        return _RequestContext(outcome)

    async def close(self):
        self.closed = True


# --- Database Fixtures ---

@pytest.fixture
async def session_factory():
    """Async in-memory SQLite session factory with the ucc_filings table created."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()
