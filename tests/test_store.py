from __future__ import annotations

import asyncio
import json
import logging
import pathlib
import threading

import pandas as pd
import pytest

from concrete_lab.config import STORE_KEY
from concrete_lab.models import StaleSchemaError, empty_samples_frame
from concrete_lab.store import BlobStore, SampleStore, deserialise_samples, serialise_samples


def test_blob_store_put_get_delete(test_db_path: pathlib.Path) -> None:
    store = BlobStore(test_db_path)

    assert store.get("k") is None
    store.put("k", "one")
    store.put("k", "two")
    assert store.get("k") == "two"
    store.delete("k")
    assert store.get("k") is None


def test_blob_store_creates_parent_directory(tmp_path: pathlib.Path) -> None:
    store = BlobStore(tmp_path / "nested" / "dir" / "store.sqlite")

    store.put("k", "v")

    assert (tmp_path / "nested" / "dir" / "store.sqlite").exists()


def test_save_then_load_round_trip(sample_store: SampleStore, make_samples) -> None:
    samples = make_samples(
        {"client": "Ñandú Obras", "guide_number": "0042"},
        {"design_type": "", "test_age": 7, "rupture_strength": 150.5},
        {"test_date": "2025-03-01 14:30"},
    )

    assert asyncio.run(sample_store.save(samples)) is True
    loaded = asyncio.run(sample_store.load())

    pd.testing.assert_frame_equal(loaded, samples)


def test_save_replaces_previous_collection(sample_store: SampleStore, make_samples) -> None:
    asyncio.run(sample_store.save(make_samples({}, {}, {})))
    asyncio.run(sample_store.save(make_samples({"client": "Solo"})))

    loaded = asyncio.run(sample_store.load())

    assert loaded["client"].tolist() == ["Solo"]


def test_load_missing_key_returns_none(sample_store: SampleStore) -> None:
    assert asyncio.run(sample_store.load()) is None


def test_load_stale_version_returns_none(sample_store: SampleStore, make_samples) -> None:
    payload = json.loads(serialise_samples(make_samples({})))
    payload["schema_version"] = 0
    sample_store.blob_store.put(STORE_KEY, json.dumps(payload))

    assert asyncio.run(sample_store.load()) is None


def test_load_corrupt_payload_returns_none(sample_store: SampleStore) -> None:
    sample_store.blob_store.put(STORE_KEY, "{not json")

    assert asyncio.run(sample_store.load()) is None


def test_clear_removes_collection(sample_store: SampleStore, make_samples) -> None:
    asyncio.run(sample_store.save(make_samples({})))

    assert asyncio.run(sample_store.clear()) is True
    assert asyncio.run(sample_store.load()) is None


def test_save_failure_returns_false(tmp_path: pathlib.Path, make_samples) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory", encoding="utf-8")
    store = SampleStore(BlobStore(blocker / "store.sqlite"))

    assert asyncio.run(store.save(make_samples({}))) is False
    assert asyncio.run(store.load()) is None


def test_deserialise_stale_version_raises() -> None:
    with pytest.raises(StaleSchemaError, match="schema version 99"):
        deserialise_samples(json.dumps({"schema_version": 99, "samples": []}))


def test_deserialise_empty_collection() -> None:
    samples = deserialise_samples(serialise_samples(empty_samples_frame()))

    assert samples.empty


class _SlowBlobStore(BlobStore):
    def __init__(self, db_path: pathlib.Path, release: threading.Event) -> None:
        super().__init__(db_path)
        self.release = release

    def put(self, key: str, value: str) -> None:
        self.release.wait(timeout=5)
        super().put(key, value)


def test_timed_out_save_is_unconfirmed_but_may_still_commit(
    test_db_path: pathlib.Path,
    make_samples,
    caplog: pytest.LogCaptureFixture,
) -> None:
    release = threading.Event()
    store = SampleStore(_SlowBlobStore(test_db_path, release), timeout=0.05)

    async def scenario() -> bool:
        saved = await store.save(make_samples({}))
        release.set()
        return saved

    with caplog.at_level(logging.WARNING, logger="concrete_lab.store"):
        assert asyncio.run(scenario()) is False

    assert "the write may still complete" in caplog.text
    # asyncio.run waits for the worker thread, whose write then lands
    assert store.blob_store.get(STORE_KEY) is not None
