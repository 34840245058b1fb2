"""Abstract persistence collaborator for users, datasets and annotations.

The core services only talk to a `LedgerDAL`. Concrete adapters live in
`dal.sqlite_dal` (relational) and `dal.blob_dal` (key/value JSON blobs).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from models.annotation_models import Annotation, AnnotationKey, HistoryEntry
from models.dataset_models import Dataset, Record
from models.stats_models import DatasetCoverage, UserStats
from models.user_models import UserProfile


class LedgerDAL(ABC):
    """Typed storage operations per entity.

    Every method may raise `utils.errors.PersistenceError` when the
    underlying store fails.
    """

    backend_name = "abstract"

    async def initialize(self) -> None:
        """Prepare the store (create schema, open files). Idempotent."""

    async def close(self) -> None:
        """Release resources held by the store."""

    # Users

    @abstractmethod
    async def get_user(self, username: str) -> Optional[UserProfile]:
        ...

    @abstractmethod
    async def insert_user(self, user: UserProfile) -> None:
        ...

    @abstractmethod
    async def list_users(self) -> List[UserProfile]:
        ...

    # Datasets and records

    @abstractmethod
    async def insert_dataset(self, dataset: Dataset, records: Sequence[Record]) -> None:
        """Store a dataset and all its records in one step."""

    @abstractmethod
    async def list_datasets(self) -> List[Dataset]:
        """Return dataset metadata, newest first, without channel samples."""

    @abstractmethod
    async def get_dataset(self, dataset_id: str) -> Optional[Dataset]:
        ...

    @abstractmethod
    async def get_record(self, dataset_id: str, record_id: str, include_channels: bool = True) -> Optional[Record]:
        ...

    # Annotations

    @abstractmethod
    async def get_annotation(self, key: AnnotationKey) -> Optional[Annotation]:
        ...

    @abstractmethod
    async def write_annotation(self, annotation: Annotation, entry: HistoryEntry) -> None:
        """Insert or overwrite the live annotation for `annotation.key` and log `entry`.

        A failure must never leave a history entry describing a write that
        did not happen, nor report failure for an annotation that was stored.
        """

    @abstractmethod
    async def list_record_annotations(self, dataset_id: str, record_id: str) -> List[Annotation]:
        ...

    @abstractmethod
    async def list_dataset_annotations(self, dataset_id: str) -> List[Annotation]:
        ...

    @abstractmethod
    async def list_user_annotations(self, username: str, dataset_id: Optional[str] = None) -> List[Annotation]:
        ...

    @abstractmethod
    async def list_all_annotations(self) -> List[Annotation]:
        ...

    # History

    @abstractmethod
    async def list_history(self, key: AnnotationKey) -> List[HistoryEntry]:
        """Return history entries for `key` in the order they were written."""

    # Aggregates a store may compute server-side. None means "fold locally".

    async def dataset_progress(self, dataset_id: str) -> Optional[DatasetCoverage]:
        return None

    async def user_annotation_stats(self, username: str) -> Optional[UserStats]:
        return None
