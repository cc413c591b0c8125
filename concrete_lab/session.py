"""
Upload / restore / reset orchestration for one dashboard user.

LabSession holds the authoritative sample collection. It is replaced
wholesale and only after the store call it depends on has finished.
"""

import asyncio
import logging

import pandas as pd

from .loaders import IngestResult, ingest_workbook
from .models import empty_samples_frame
from .store import SampleStore

logger = logging.getLogger(__name__)


class OperationInProgressError(RuntimeError):
    """Raised when an upload, restore or reset is already running."""


class LabSession:
    def __init__(self, store: SampleStore) -> None:
        self.store = store
        self._samples = empty_samples_frame()
        self._lock = asyncio.Lock()

    @property
    def samples(self) -> pd.DataFrame:
        return self._samples

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def _claim(self) -> None:
        if self._lock.locked():
            raise OperationInProgressError("Another data operation is still running")

    async def restore(self) -> pd.DataFrame:
        """Load the persisted collection, or start empty."""
        self._claim()
        async with self._lock:
            stored = await self.store.load()
            self._samples = stored if stored is not None else empty_samples_frame()
        return self._samples

    async def upload(self, data: bytes) -> IngestResult:
        """Parse `data`, persist it, then make it the current collection.

        IngestionError propagates and leaves the current collection as it
        was. A failed save is logged by the store; the new samples are still
        used for this session.
        """
        self._claim()
        async with self._lock:
            result = await ingest_workbook(data)
            if not await self.store.save(result.samples):
                logger.warning("Samples kept in memory only; local store unavailable")
            self._samples = result.samples
        return result

    async def reset(self) -> None:
        """Forget all samples, persisted and in memory."""
        self._claim()
        async with self._lock:
            await self.store.clear()
            self._samples = empty_samples_frame()
