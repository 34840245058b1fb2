import json

import pytest

from dal.blob_dal import ANNOTATIONS_KEY, HISTORY_KEY, BlobLedgerDAL
from dal.blob_store import JsonFileBlobStore, MemoryBlobStore
from services.annotation_ledger import AnnotationLedger
from services.record_store import RecordStore
from services.user_directory import UserDirectory
from utils.errors import PersistenceError


@pytest.mark.asyncio
async def test_json_file_store_round_trips_and_reports_absent(tmp_path):
    store = JsonFileBlobStore(tmp_path / "blobs")

    assert await store.get("users") is None
    await store.set("users", '{"a": 1}')

    assert await store.get("users") == '{"a": 1}'
    assert (tmp_path / "blobs" / "users.json").exists()


@pytest.mark.asyncio
async def test_json_file_store_rejects_path_like_keys(tmp_path):
    store = JsonFileBlobStore(tmp_path)

    with pytest.raises(ValueError):
        await store.set("../escape", "{}")


@pytest.mark.asyncio
async def test_annotations_document_is_nested_by_user_dataset_record(record_factory):
    store = MemoryBlobStore()
    dal = BlobLedgerDAL(store)
    users = UserDirectory(dal)
    records = RecordStore(dal)
    ledger = AnnotationLedger(dal, records)
    await users.register("alice", "annotator", "Tianjin Hospital")
    dataset = await records.create_dataset("D", "", "alice", record_factory(2))

    await ledger.save_annotation("alice", dataset.id, "rec2", "Normal", "confirmed")

    document = json.loads(await store.get(ANNOTATIONS_KEY))
    entry = document["alice"][dataset.id]["rec2"]
    assert entry["status"] == "confirmed"
    assert entry["annotator_role"] == "annotator"
    assert entry["institution"] == "Tianjin Hospital"


@pytest.mark.asyncio
async def test_corrupt_document_surfaces_persistence_error():
    store = MemoryBlobStore()
    await store.set("users", "{not json")
    dal = BlobLedgerDAL(store)

    with pytest.raises(PersistenceError):
        await dal.get_user("alice")


@pytest.mark.asyncio
async def test_failed_write_is_not_reported_as_success(record_factory):
    class FailingStore(MemoryBlobStore):
        async def set(self, key, blob):
            if key == ANNOTATIONS_KEY:
                raise PersistenceError("disk full")
            await super().set(key, blob)

    dal = BlobLedgerDAL(FailingStore())
    users = UserDirectory(dal)
    records = RecordStore(dal)
    ledger = AnnotationLedger(dal, records)
    await users.register("alice", "annotator")
    dataset = await records.create_dataset("D", "", "alice", record_factory(1))

    with pytest.raises(PersistenceError):
        await ledger.save_annotation("alice", dataset.id, "rec1", "Normal", "confirmed")
    assert await ledger.get_annotation("alice", dataset.id, "rec1") is None


@pytest.mark.asyncio
async def test_failed_history_append_keeps_the_saved_annotation(record_factory, caplog):
    class HistoryFailingStore(MemoryBlobStore):
        async def set(self, key, blob):
            if key == HISTORY_KEY:
                raise PersistenceError("disk full")
            await super().set(key, blob)

    dal = BlobLedgerDAL(HistoryFailingStore())
    users = UserDirectory(dal)
    records = RecordStore(dal)
    ledger = AnnotationLedger(dal, records)
    await users.register("alice", "annotator")
    dataset = await records.create_dataset("D", "", "alice", record_factory(1))

    saved = await ledger.save_annotation("alice", dataset.id, "rec1", "Normal", "confirmed")

    assert await ledger.get_annotation("alice", dataset.id, "rec1") == saved
    assert await ledger.history(saved.key) == []
    assert "without its created history entry" in caplog.text
