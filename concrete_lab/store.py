"""
Local persistence of the sample collection.

BlobStore is a single-table SQLite key-value store. SampleStore keeps the
whole collection under one versioned key. Every failure is logged and
reported as "no persisted data", so the dashboard can always start empty.
"""

import asyncio
import contextlib
import datetime as dt
import json
import logging
import pathlib
import sqlite3
from typing import Any, Iterator

import numpy as np
import pandas as pd

from .config import DATE_FIELDS, SCHEMA_VERSION, STORE_KEY, STORE_PATH, STORE_TIMEOUT_S
from .loaders.utils import normalise_date
from .models import (
    SAMPLE_COLUMNS,
    StaleSchemaError,
    conform_samples,
    empty_samples_frame,
    validate_samples,
)

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS blobs (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class BlobStore:
    """Durable string values keyed by name, one transaction per call."""

    def __init__(self, db_path: str | pathlib.Path = STORE_PATH) -> None:
        self.db_path = pathlib.Path(db_path)

    @contextlib.contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        if self.db_path.parent and not self.db_path.parent.exists():
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        try:
            with conn:
                conn.execute(_SCHEMA)
                yield conn
        finally:
            conn.close()

    def get(self, key: str) -> str | None:
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM blobs WHERE key = ?", (key,)).fetchone()
        return None if row is None else row[0]

    def put(self, key: str, value: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO blobs (key, value, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                "updated_at = excluded.updated_at",
                (key, value, _utc_now()),
            )

    def delete(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM blobs WHERE key = ?", (key,))


def _utc_now() -> str:
    return dt.datetime.now(tz=dt.timezone.utc).isoformat()


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (pd.Timestamp, dt.datetime, dt.date)):
        return obj.isoformat()
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def serialise_samples(samples: pd.DataFrame) -> str:
    """Encode a collection as JSON; dates become ISO strings."""
    payload = {
        "schema_version": SCHEMA_VERSION,
        "samples": samples[SAMPLE_COLUMNS].to_dict(orient="records"),
    }
    return json.dumps(payload, default=_json_default, ensure_ascii=False)


def deserialise_samples(text: str, now: pd.Timestamp | None = None) -> pd.DataFrame:
    """Decode a payload written by serialise_samples.

    Date fields are rebuilt as timestamps whatever form they were stored in;
    values that cannot be read fall back to `now`.

    Raises
    ------
    StaleSchemaError
        If the payload was written with another schema version.
    SchemaError
        If the decoded rows break the sample invariants.
    """
    payload = json.loads(text)
    version = payload.get("schema_version")
    if version != SCHEMA_VERSION:
        raise StaleSchemaError(
            f"Stored samples use schema version {version}, expected {SCHEMA_VERSION}"
        )

    rows = payload.get("samples") or []
    if not rows:
        return empty_samples_frame()

    if now is None:
        now = pd.Timestamp.now().normalize()

    df = pd.DataFrame(rows)
    for col in DATE_FIELDS:
        if col not in df.columns:
            continue
        restored = []
        for value in df[col]:
            ts = normalise_date(value)
            if ts is None:
                logger.warning("Stored %s value %r is not a date, using %s", col, value, now.date())
                ts = now
            restored.append(ts)
        df[col] = restored

    return validate_samples(conform_samples(df))


class SampleStore:
    """Async save/load/clear of the full sample collection.

    Calls run in a worker thread and are bounded by `timeout` seconds.
    Failures never propagate: save/clear return False, load returns None.

    A timed-out call only stops waiting. The worker thread cannot be
    interrupted, so a timed-out save or clear may still commit afterwards;
    False then means "not confirmed", not "did not happen".
    """

    def __init__(
        self,
        blob_store: BlobStore | None = None,
        key: str = STORE_KEY,
        timeout: float | None = STORE_TIMEOUT_S,
    ) -> None:
        self.blob_store = blob_store or BlobStore()
        self.key = key
        self.timeout = timeout

    async def _run(self, func, *args):
        return await asyncio.wait_for(asyncio.to_thread(func, *args), self.timeout)

    async def save(self, samples: pd.DataFrame) -> bool:
        """Replace the stored collection with `samples`.

        Returns True once the write has committed.
        """
        try:
            text = serialise_samples(samples)
            await self._run(self.blob_store.put, self.key, text)
        except asyncio.TimeoutError:
            logger.warning(
                "Saving %d samples timed out after %ss; the write may still complete",
                len(samples), self.timeout,
            )
            return False
        except Exception:
            logger.exception("Failed to save %d samples to local store", len(samples))
            return False
        logger.info("Saved %d samples to local store", len(samples))
        return True

    async def load(self) -> pd.DataFrame | None:
        """Return the stored collection, or None when absent or unreadable."""
        try:
            text = await self._run(self.blob_store.get, self.key)
            if text is None:
                logger.info("No stored samples under '%s'", self.key)
                return None
            samples = deserialise_samples(text)
        except StaleSchemaError as exc:
            logger.warning("Ignoring stored samples: %s", exc)
            return None
        except Exception:
            logger.exception("Failed to load samples from local store")
            return None
        logger.info("Loaded %d samples from local store", len(samples))
        return samples

    async def clear(self) -> bool:
        try:
            await self._run(self.blob_store.delete, self.key)
        except Exception:
            logger.exception("Failed to clear local store")
            return False
        logger.info("Cleared stored samples")
        return True
