from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import List, Sequence

import pytest
import pytest_asyncio

from dal.blob_dal import BlobLedgerDAL
from dal.blob_store import MemoryBlobStore
from dal.sqlite_dal import SQLiteLedgerDAL
from models.dataset_models import Channel, RecordInput
from services.annotation_ledger import AnnotationLedger
from services.navigation import NavigationPolicy
from services.progress import ProgressAggregator
from services.record_store import RecordStore
from services.review import ReviewProjection
from services.user_directory import UserDirectory
from utils.database_init import AsyncDatabaseInitializer


class SteppingClock:
    """Deterministic clock: every call is one second after the previous one."""

    def __init__(self, start: datetime = datetime(2024, 10, 1, 9, 0, tzinfo=timezone.utc)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        self.now = self.now + timedelta(seconds=1)
        return self.now


def make_records(count: int, channels: Sequence[str] = ("I", "II", "III"), samples: int = 4) -> List[RecordInput]:
    return [
        RecordInput(
            patient_id=f"P{idx + 1:03d}",
            timestamp="2024-10-01T10:30:00",
            heart_rate=70 + idx,
            pr_interval=160,
            qrs_duration=90,
            qt_interval=380,
            auto_analysis="Normal sinus rhythm",
            channels=[Channel(name=name, samples=[0.1 * i for i in range(samples)]) for name in channels],
        )
        for idx in range(count)
    ]


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock()


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def dal(request, tmp_path):
    if request.param == "memory":
        store = BlobLedgerDAL(MemoryBlobStore())
    else:
        store = SQLiteLedgerDAL(AsyncDatabaseInitializer(tmp_path / "db"))
    await store.initialize()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def core(dal, clock):
    """Core services over one store, with alice/bob (annotators), carol (expert), dave (admin)."""
    users = UserDirectory(dal)
    records = RecordStore(dal)
    ledger = AnnotationLedger(dal, records, clock=clock)
    for username, role, institution in (
        ("alice", "annotator", "Tianjin Hospital"),
        ("bob", "annotator", "Qingdao Hospital"),
        ("carol", "expert", "Beijing Tsinghua Hospital"),
        ("dave", "admin", "System Administrator"),
    ):
        await users.register(username, role, institution)
    return SimpleNamespace(
        dal=dal,
        users=users,
        records=records,
        ledger=ledger,
        progress=ProgressAggregator(dal, records),
        local_progress=ProgressAggregator(dal, records, use_store_aggregates=False),
        navigation=NavigationPolicy(dal, records),
        review=ReviewProjection(ledger, records),
    )


@pytest_asyncio.fixture
async def dataset(core):
    """Three-record dataset r1..r3 (ids rec1..rec3)."""
    return await core.records.create_dataset("Resting ECG", "three records", "dave", make_records(3))


@pytest.fixture
def record_factory():
    return make_records
