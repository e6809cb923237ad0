"""
Client for filing mirrors held in a SQL database (PostgreSQL in production,
SQLite in tests). Reads the ucc_filings table for one jurisdiction.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from lienscout.core.database import create_engine_for, create_session_factory, session_scope
from lienscout.core.errors import PermanentFetchError, TransientFetchError
from lienscout.ingestion.clients.base import FilingClient
from lienscout.ingestion.database import FilingRecordModel

logger = logging.getLogger(__name__)


class DatabaseFilingClient(FilingClient):
    """
    Pass session_factory to share an engine (tests, long-lived workers);
    otherwise an engine is opened from source.endpoint for the context lifetime.
    """

    def __init__(self, source, batch_size: int = 100, session_factory: Optional[async_sessionmaker] = None, **_):
        super().__init__(source, batch_size)
        self.session_factory = session_factory
        self._engine: Optional[AsyncEngine] = None

    async def __aenter__(self):
        if self.session_factory is None:
            if not self.source.endpoint:
                raise PermanentFetchError(
                    f"Source {self.source.id} has no database URL configured", source_id=self.source.id
                )
            self._engine = create_engine_for(self.source.endpoint)
            self.session_factory = create_session_factory(self._engine)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self.session_factory = None
        return False

    async def fetch(self, region: str) -> List[Dict[str, Any]]:
        if self.session_factory is None:
            raise RuntimeError("Client context not entered.")

        stmt = (
            select(FilingRecordModel)
            .where(FilingRecordModel.jurisdiction == region)
            .order_by(FilingRecordModel.filing_date.desc())
            .limit(self.batch_size)
        )
        try:
            async with session_scope(self.session_factory) as session:
                rows = (await session.execute(stmt)).scalars().all()
        except (OperationalError, InterfaceError, PoolTimeoutError) as e:
            raise TransientFetchError(f"Database unavailable: {e}", source_id=self.source.id) from e
        except SQLAlchemyError as e:
            raise PermanentFetchError(f"Database query failed: {e}", source_id=self.source.id) from e

        logger.debug(f"{self.source.name}: {len(rows)} rows for {region}")
        return [row.to_dict() for row in rows]
