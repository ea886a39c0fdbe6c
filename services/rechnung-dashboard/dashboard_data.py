"""Load/refresh controller for the in-memory Rechnung collection.

Owns the collection, the loading flag and the last load error. The remote
service stays the source of truth; every load replaces the collection.
"""

import logging
from enum import Enum

from models import Rechnung, RechnungFields
from records_client import MissingRecordIdError, RecordClient, RecordClientError

logger = logging.getLogger(__name__)


class LoadState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class DashboardData:
    """Collection state for the dashboard views.

    Overlapping loads are superseded: each refresh() takes a generation number
    and only the newest generation may write state, so a slow stale response
    never overwrites a fresher one.
    """

    def __init__(self, client: RecordClient):
        self._client = client
        self.records: list[Rechnung] = []
        self.error: RecordClientError | None = None
        self.state = LoadState.IDLE
        self._generation = 0

    @property
    def loading(self) -> bool:
        return self.state is LoadState.LOADING

    async def refresh(self) -> list[Rechnung]:
        """Fetch the full collection and return what this call fetched.

        Only the newest call writes ``records``/``state``/``error``; a
        superseded call still returns its own result or raises its own
        error, so callers never read shared state after the await.
        """
        self._generation += 1
        generation = self._generation
        self.error = None
        self.state = LoadState.LOADING

        try:
            records = await self._client.list()
        except RecordClientError as e:
            if generation == self._generation:
                logger.error("Loading records failed: %s", e)
                self.error = e
                self.state = LoadState.ERROR
            else:
                logger.debug("Failure of superseded load %d not stored", generation)
            raise

        if generation == self._generation:
            self.records = records
            self.state = LoadState.READY
        else:
            logger.debug("Result of superseded load %d not stored", generation)
        return records

    async def load(self) -> list[Rechnung]:
        """Like refresh(), but on failure return the last-known collection.

        The error stays in ``error`` so a view can offer a retry without
        losing context.
        """
        try:
            return await self.refresh()
        except RecordClientError:
            return self.records

    def find(self, record_id: str) -> Rechnung | None:
        return next((r for r in self.records if r.record_id == record_id), None)

    def remove_local(self, record_id: str):
        """Drop a record locally. Loads still in flight may predate the
        removal, so they are superseded."""
        self._generation += 1
        if self.state is LoadState.LOADING:
            self.state = LoadState.READY
        self.records = [r for r in self.records if r.record_id != record_id]

    async def create(self, fields: RechnungFields) -> Rechnung:
        """Create, then refetch. Errors from the create call propagate.

        If the service accepted the record but did not identify it, the
        collection is still refetched before the error is raised.
        """
        try:
            record = await self._client.create(fields)
        except MissingRecordIdError:
            await self.load()
            raise
        await self.load()
        return record

    async def update(self, record_id: str, patch: RechnungFields) -> Rechnung:
        """Apply a partial update, then refetch. Errors propagate."""
        record = await self._client.update(record_id, patch)
        await self.load()
        return record

    async def delete(self, record_id: str):
        """Delete remotely, then drop the record locally without a refetch."""
        await self._client.delete(record_id)
        self.remove_local(record_id)
