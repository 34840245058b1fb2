"""Ledger adapter over a flat key/value blob store.

Persisted layout, one JSON document per key:

- `users`: username -> user profile
- `datasets`: dataset id -> dataset metadata with its records (channels included)
- `annotations`: username -> dataset id -> record id -> annotation
- `annotation_history`: list of history entries in write order

Every mutation is a read-modify-write of a whole document, guarded by a
per-document lock so concurrent writers to different annotation keys do not
overwrite each other.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from dal.blob_store import BlobStore
from dal.ledger_dal import LedgerDAL
from models.annotation_models import Annotation, AnnotationKey, HistoryEntry
from models.dataset_models import Dataset, Record
from models.user_models import UserProfile
from utils.errors import PersistenceError, ValidationError

LOGGER = logging.getLogger(__name__)

USERS_KEY = "users"
DATASETS_KEY = "datasets"
ANNOTATIONS_KEY = "annotations"
HISTORY_KEY = "annotation_history"


class BlobLedgerDAL(LedgerDAL):
    """`LedgerDAL` storing the whole graph as a few JSON documents."""

    backend_name = "blob"

    def __init__(self, store: BlobStore) -> None:
        self._store = store
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def _load(self, key: str, default: Any) -> Any:
        blob = await self._store.get(key)
        if blob is None:
            return default
        try:
            return json.loads(blob)
        except json.JSONDecodeError as exc:
            LOGGER.error("Stored document %r is not valid JSON: %s", key, exc)
            raise PersistenceError(f"Stored {key!r} data is corrupt.") from exc

    async def _save(self, key: str, document: Any) -> None:
        await self._store.set(key, json.dumps(document))

    @asynccontextmanager
    async def _editing(self, key: str, default: Any) -> AsyncIterator[Any]:
        """Load a document under its lock, yield it for mutation, then save it."""
        async with self._locks[key]:
            document = await self._load(key, default)
            yield document
            await self._save(key, document)

    # Users

    async def get_user(self, username: str) -> Optional[UserProfile]:
        users = await self._load(USERS_KEY, {})
        data = users.get(username)
        return UserProfile.from_dict(data) if data else None

    async def insert_user(self, user: UserProfile) -> None:
        async with self._editing(USERS_KEY, {}) as users:
            if user.username in users:
                raise ValidationError(f"Username {user.username!r} is already registered.")
            users[user.username] = user.to_dict()

    async def list_users(self) -> List[UserProfile]:
        users = await self._load(USERS_KEY, {})
        return sorted((UserProfile.from_dict(u) for u in users.values()), key=lambda u: u.username)

    # Datasets and records

    async def insert_dataset(self, dataset: Dataset, records: Sequence[Record]) -> None:
        entry = dataset.to_dict()
        entry.pop("record_count", None)
        entry["records"] = [r.to_dict(include_channels=True) for r in records]
        async with self._editing(DATASETS_KEY, {}) as datasets:
            datasets[dataset.id] = entry

    async def list_datasets(self) -> List[Dataset]:
        datasets = await self._load(DATASETS_KEY, {})
        # Newest ingest first; documents keep insertion order.
        return [Dataset.from_dict(d) for d in reversed(list(datasets.values()))]

    async def get_dataset(self, dataset_id: str) -> Optional[Dataset]:
        datasets = await self._load(DATASETS_KEY, {})
        data = datasets.get(dataset_id)
        return Dataset.from_dict(data) if data else None

    async def get_record(self, dataset_id: str, record_id: str, include_channels: bool = True) -> Optional[Record]:
        datasets = await self._load(DATASETS_KEY, {})
        data = datasets.get(dataset_id)
        if not data:
            return None
        for raw in data.get("records") or []:
            if raw["id"] == record_id:
                return Record.from_dict(raw, include_channels=include_channels)
        return None

    # Annotations

    async def get_annotation(self, key: AnnotationKey) -> Optional[Annotation]:
        annotations = await self._load(ANNOTATIONS_KEY, {})
        data = annotations.get(key.annotator, {}).get(key.dataset_id, {}).get(key.record_id)
        return Annotation.from_dict(data) if data else None

    async def write_annotation(self, annotation: Annotation, entry: HistoryEntry) -> None:
        """Store the annotation, then append its history entry.

        The two documents cannot change atomically, so the annotation goes
        first and a failed history append is logged rather than raised.
        """
        async with self._editing(ANNOTATIONS_KEY, {}) as annotations:
            by_dataset = annotations.setdefault(annotation.annotator, {})
            by_record = by_dataset.setdefault(annotation.dataset_id, {})
            by_record[annotation.record_id] = annotation.to_dict()
        try:
            async with self._editing(HISTORY_KEY, []) as history:
                history.append(entry.to_dict())
        except PersistenceError as exc:
            LOGGER.warning(
                "Annotation %s/%s by %s saved without its %s history entry: %s",
                entry.dataset_id,
                entry.record_id,
                entry.annotator,
                entry.action.value,
                exc,
            )

    async def list_record_annotations(self, dataset_id: str, record_id: str) -> List[Annotation]:
        annotations = await self._load(ANNOTATIONS_KEY, {})
        found = []
        for by_dataset in annotations.values():
            data = by_dataset.get(dataset_id, {}).get(record_id)
            if data:
                found.append(Annotation.from_dict(data))
        return found

    async def list_dataset_annotations(self, dataset_id: str) -> List[Annotation]:
        annotations = await self._load(ANNOTATIONS_KEY, {})
        return [
            Annotation.from_dict(data)
            for by_dataset in annotations.values()
            for data in by_dataset.get(dataset_id, {}).values()
        ]

    async def list_user_annotations(self, username: str, dataset_id: Optional[str] = None) -> List[Annotation]:
        annotations = await self._load(ANNOTATIONS_KEY, {})
        by_dataset = annotations.get(username, {})
        return [
            Annotation.from_dict(data)
            for ds_id, by_record in by_dataset.items()
            if dataset_id is None or ds_id == dataset_id
            for data in by_record.values()
        ]

    async def list_all_annotations(self) -> List[Annotation]:
        annotations = await self._load(ANNOTATIONS_KEY, {})
        return [
            Annotation.from_dict(data)
            for by_dataset in annotations.values()
            for by_record in by_dataset.values()
            for data in by_record.values()
        ]

    # History

    async def list_history(self, key: AnnotationKey) -> List[HistoryEntry]:
        history = await self._load(HISTORY_KEY, [])
        entries = (HistoryEntry.from_dict(h) for h in history)
        return [e for e in entries if e.key == key]
