from __future__ import annotations

import asyncio

import pytest

from concrete_lab.loaders import IngestionError
from concrete_lab.session import LabSession, OperationInProgressError
from concrete_lab.store import SampleStore

from conftest import HEADER, build_workbook, lab_row


@pytest.fixture()
def workbook() -> bytes:
    return build_workbook({"ENE": [HEADER, lab_row(client="A"), lab_row(client="B")]})


def test_restore_without_data_starts_empty(sample_store: SampleStore) -> None:
    session = LabSession(sample_store)

    restored = asyncio.run(session.restore())

    assert restored.empty
    assert session.samples.empty


def test_upload_persists_and_replaces_collection(sample_store: SampleStore, workbook: bytes) -> None:
    session = LabSession(sample_store)

    result = asyncio.run(session.upload(workbook))

    assert session.samples is result.samples
    assert session.samples["client"].tolist() == ["A", "B"]

    fresh = LabSession(sample_store)
    asyncio.run(fresh.restore())
    assert fresh.samples["id"].tolist() == result.samples["id"].tolist()


def test_failed_upload_keeps_previous_collection(sample_store: SampleStore, workbook: bytes) -> None:
    session = LabSession(sample_store)
    asyncio.run(session.upload(workbook))
    before = session.samples

    with pytest.raises(IngestionError):
        asyncio.run(session.upload(b"not a workbook"))

    assert session.samples is before
    assert not session.busy


def test_reset_clears_memory_and_store(sample_store: SampleStore, workbook: bytes) -> None:
    session = LabSession(sample_store)
    asyncio.run(session.upload(workbook))

    asyncio.run(session.reset())

    assert session.samples.empty
    assert asyncio.run(sample_store.load()) is None


def test_concurrent_operations_are_rejected(sample_store: SampleStore, workbook: bytes) -> None:
    session = LabSession(sample_store)

    async def scenario() -> None:
        upload = asyncio.create_task(session.upload(workbook))
        await asyncio.sleep(0)
        assert session.busy
        with pytest.raises(OperationInProgressError):
            await session.reset()
        await upload

    asyncio.run(scenario())

    assert not session.busy
    assert len(session.samples) == 2
