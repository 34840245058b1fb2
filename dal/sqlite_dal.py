"""Async relational adapter for the annotation ledger.

Provides `SQLiteLedgerDAL`, a `LedgerDAL` built on the tables created by
`utils.database_init.AsyncDatabaseInitializer`. Dataset progress and user
annotation stats are answered with SQL aggregates instead of folding rows.
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, List, Optional, Sequence

import aiosqlite

from dal.ledger_dal import LedgerDAL
from models.annotation_models import (
    Annotation,
    AnnotationKey,
    AnnotationStatus,
    HistoryAction,
    HistoryEntry,
)
from models.dataset_models import Channel, Dataset, Record
from models.stats_models import DatasetCoverage, UserStats
from models.user_models import Role, UserProfile
from utils.database_init import AsyncDatabaseInitializer
from utils.errors import PersistenceError, ValidationError

LOGGER = logging.getLogger(__name__)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat(timespec="microseconds") if value is not None else None


def _dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class SQLiteLedgerDAL(LedgerDAL):
    """Data access layer for users, datasets, records and annotations in SQLite.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`).
    """

    backend_name = "sqlite"

    _RECORD_COLUMNS = (
        "dataset_id",
        "id",
        "position",
        "patient_id",
        "timestamp",
        "heart_rate",
        "pr_interval",
        "qrs_duration",
        "qt_interval",
        "auto_analysis",
    )
    _ANNOTATION_COLUMNS = (
        "annotator",
        "dataset_id",
        "record_id",
        "content",
        "status",
        "timestamp",
        "annotator_role",
        "institution",
        "created_at",
        "version",
        "reviewed_by",
        "reviewed_at",
        "review_notes",
        "findings",
        "confidence_score",
    )
    _HISTORY_COLUMNS = (
        "annotator",
        "dataset_id",
        "record_id",
        "acting_user",
        "action",
        "created_at",
        "old_status",
        "new_status",
        "old_content",
        "new_content",
    )
    _RECORD_LIST = ", ".join(_RECORD_COLUMNS)
    _ANNOTATION_LIST = ", ".join(_ANNOTATION_COLUMNS)
    _HISTORY_LIST = ", ".join(_HISTORY_COLUMNS)

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Yield a connection, converting driver and file errors to PersistenceError."""
        try:
            async with self._db.connection() as conn:
                yield conn
        except (aiosqlite.Error, OSError) as exc:
            LOGGER.error("SQLite operation failed: %s", exc)
            raise PersistenceError("Annotation storage is unavailable.") from exc

    async def initialize(self) -> None:
        try:
            await self._db.ensure_database()
        except (aiosqlite.Error, OSError) as exc:
            LOGGER.error("Failed to initialize SQLite database at %s: %s", self._db.db_path, exc)
            raise PersistenceError("Annotation storage could not be initialized.") from exc

    # Users

    async def get_user(self, username: str) -> Optional[UserProfile]:
        async with self._connection() as conn:
            cur = await conn.execute(
                "SELECT username, role, institution, created_at FROM users WHERE username = ?",
                (username,),
            )
            row = await cur.fetchone()
            return self._row_to_user(row) if row else None

    async def insert_user(self, user: UserProfile) -> None:
        async with self._connection() as conn:
            try:
                await conn.execute(
                    "INSERT INTO users (username, role, institution, created_at) VALUES (?, ?, ?, ?)",
                    (user.username, user.role.value, user.institution, user.created_at),
                )
                await conn.commit()
            except aiosqlite.IntegrityError as exc:
                raise ValidationError(f"Username {user.username!r} is already registered.") from exc

    async def list_users(self) -> List[UserProfile]:
        async with self._connection() as conn:
            cur = await conn.execute(
                "SELECT username, role, institution, created_at FROM users ORDER BY username"
            )
            return [self._row_to_user(r) for r in await cur.fetchall()]

    # Datasets and records

    async def insert_dataset(self, dataset: Dataset, records: Sequence[Record]) -> None:
        """Insert the dataset row, its records and their channels in one transaction."""
        created_at = _iso(datetime.now(timezone.utc))
        record_rows = [
            (
                dataset.id,
                r.id,
                r.position,
                r.patient_id,
                r.timestamp,
                r.heart_rate,
                r.pr_interval,
                r.qrs_duration,
                r.qt_interval,
                r.auto_analysis,
            )
            for r in records
        ]
        channel_rows = [
            (dataset.id, r.id, idx, channel.name, json.dumps(channel.samples))
            for r in records
            for idx, channel in enumerate(r.channels)
        ]

        async with self._connection() as conn:
            try:
                await conn.execute(
                    "INSERT INTO datasets (id, name, description, uploaded_by, upload_date, channel_names, created_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        dataset.id,
                        dataset.name,
                        dataset.description,
                        dataset.uploaded_by,
                        dataset.upload_date,
                        json.dumps(dataset.channel_names),
                        created_at,
                    ),
                )
                await conn.executemany(
                    f"INSERT INTO records ({self._RECORD_LIST}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    record_rows,
                )
                await conn.executemany(
                    "INSERT INTO record_channels (dataset_id, record_id, channel_index, name, samples) "
                    "VALUES (?, ?, ?, ?, ?)",
                    channel_rows,
                )
                await conn.commit()
            except aiosqlite.Error:
                await conn.rollback()
                raise

    async def list_datasets(self) -> List[Dataset]:
        async with self._connection() as conn:
            cur = await conn.execute(
                "SELECT id, name, description, uploaded_by, upload_date, channel_names "
                "FROM datasets ORDER BY created_at DESC, rowid DESC"
            )
            rows = await cur.fetchall()
            datasets = []
            for row in rows:
                datasets.append(await self._dataset_with_ids(conn, row))
            return datasets

    async def get_dataset(self, dataset_id: str) -> Optional[Dataset]:
        async with self._connection() as conn:
            cur = await conn.execute(
                "SELECT id, name, description, uploaded_by, upload_date, channel_names FROM datasets WHERE id = ?",
                (dataset_id,),
            )
            row = await cur.fetchone()
            return await self._dataset_with_ids(conn, row) if row else None

    async def get_record(self, dataset_id: str, record_id: str, include_channels: bool = True) -> Optional[Record]:
        async with self._connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._RECORD_LIST} FROM records WHERE dataset_id = ? AND id = ?",
                (dataset_id, record_id),
            )
            row = await cur.fetchone()
            if not row:
                return None
            record = self._row_to_record(row)
            if include_channels:
                cur = await conn.execute(
                    "SELECT name, samples FROM record_channels "
                    "WHERE dataset_id = ? AND record_id = ? ORDER BY channel_index",
                    (dataset_id, record_id),
                )
                record.channels = [
                    Channel(name=name, samples=json.loads(samples)) for name, samples in await cur.fetchall()
                ]
            return record

    # Annotations

    async def get_annotation(self, key: AnnotationKey) -> Optional[Annotation]:
        async with self._connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._ANNOTATION_LIST} FROM annotations "
                "WHERE annotator = ? AND dataset_id = ? AND record_id = ?",
                tuple(key),
            )
            row = await cur.fetchone()
            return self._row_to_annotation(row) if row else None

    async def write_annotation(self, annotation: Annotation, entry: HistoryEntry) -> None:
        """Upsert the annotation and insert its history row in one transaction."""
        async with self._connection() as conn:
            try:
                await self._execute_upsert(conn, annotation)
                await self._execute_history(conn, entry)
                await conn.commit()
            except aiosqlite.Error:
                await conn.rollback()
                raise

    async def list_record_annotations(self, dataset_id: str, record_id: str) -> List[Annotation]:
        return await self._select_annotations(
            "WHERE dataset_id = ? AND record_id = ?", (dataset_id, record_id)
        )

    async def list_dataset_annotations(self, dataset_id: str) -> List[Annotation]:
        return await self._select_annotations("WHERE dataset_id = ?", (dataset_id,))

    async def list_user_annotations(self, username: str, dataset_id: Optional[str] = None) -> List[Annotation]:
        if dataset_id is None:
            return await self._select_annotations("WHERE annotator = ?", (username,))
        return await self._select_annotations(
            "WHERE annotator = ? AND dataset_id = ?", (username, dataset_id)
        )

    async def list_all_annotations(self) -> List[Annotation]:
        return await self._select_annotations("", ())

    # History

    async def list_history(self, key: AnnotationKey) -> List[HistoryEntry]:
        async with self._connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._HISTORY_LIST} FROM annotation_history "
                "WHERE annotator = ? AND dataset_id = ? AND record_id = ? ORDER BY id",
                tuple(key),
            )
            return [self._row_to_history(r) for r in await cur.fetchall()]

    # Server-side aggregates

    async def dataset_progress(self, dataset_id: str) -> Optional[DatasetCoverage]:
        async with self._connection() as conn:
            cur = await conn.execute(
                "SELECT "
                "(SELECT COUNT(*) FROM records WHERE dataset_id = ?), "
                "(SELECT COUNT(DISTINCT record_id) FROM annotations WHERE dataset_id = ?), "
                "(SELECT COUNT(DISTINCT annotator) FROM annotations WHERE dataset_id = ?)",
                (dataset_id, dataset_id, dataset_id),
            )
            row = await cur.fetchone()
            return DatasetCoverage(
                total_records=int(row[0] or 0),
                annotated_records=int(row[1] or 0),
                distinct_annotators=int(row[2] or 0),
            )

    async def user_annotation_stats(self, username: str) -> Optional[UserStats]:
        async with self._connection() as conn:
            cur = await conn.execute(
                "SELECT COUNT(*), COUNT(DISTINCT dataset_id) FROM annotations WHERE annotator = ?",
                (username,),
            )
            row = await cur.fetchone()
            return UserStats(total_annotations=int(row[0] or 0), datasets_worked_on=int(row[1] or 0))

    # Helpers

    async def _execute_upsert(self, conn: aiosqlite.Connection, annotation: Annotation) -> None:
        await conn.execute(
            f"INSERT INTO annotations ({self._ANNOTATION_LIST}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT (annotator, dataset_id, record_id) DO UPDATE SET "
            "content = excluded.content, status = excluded.status, timestamp = excluded.timestamp, "
            "annotator_role = excluded.annotator_role, institution = excluded.institution, "
            "created_at = excluded.created_at, version = excluded.version, "
            "reviewed_by = excluded.reviewed_by, reviewed_at = excluded.reviewed_at, "
            "review_notes = excluded.review_notes, findings = excluded.findings, "
            "confidence_score = excluded.confidence_score",
            (
                annotation.annotator,
                annotation.dataset_id,
                annotation.record_id,
                annotation.content,
                annotation.status.value,
                _iso(annotation.timestamp),
                annotation.annotator_role.value,
                annotation.institution,
                _iso(annotation.created_at),
                annotation.version,
                annotation.reviewed_by,
                _iso(annotation.reviewed_at),
                annotation.review_notes,
                annotation.findings,
                annotation.confidence_score,
            ),
        )

    async def _execute_history(self, conn: aiosqlite.Connection, entry: HistoryEntry) -> None:
        await conn.execute(
            f"INSERT INTO annotation_history ({self._HISTORY_LIST}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                entry.annotator,
                entry.dataset_id,
                entry.record_id,
                entry.acting_user,
                entry.action.value,
                _iso(entry.created_at),
                entry.old_status.value if entry.old_status else None,
                entry.new_status.value if entry.new_status else None,
                entry.old_content,
                entry.new_content,
            ),
        )

    async def _select_annotations(self, where: str, params: tuple) -> List[Annotation]:
        async with self._connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._ANNOTATION_LIST} FROM annotations {where} ORDER BY rowid",
                params,
            )
            return [self._row_to_annotation(r) for r in await cur.fetchall()]

    @staticmethod
    async def _dataset_with_ids(conn: aiosqlite.Connection, row: Sequence[object]) -> Dataset:
        cur = await conn.execute(
            "SELECT id FROM records WHERE dataset_id = ? ORDER BY position",
            (row[0],),
        )
        record_ids = [r[0] for r in await cur.fetchall()]
        return Dataset(
            id=row[0],
            name=row[1],
            description=row[2] or "",
            uploaded_by=row[3] or "",
            upload_date=row[4] or "",
            channel_names=json.loads(row[5]) if row[5] else [],
            record_ids=record_ids,
        )

    @staticmethod
    def _row_to_user(row: Sequence[object]) -> UserProfile:
        return UserProfile(
            username=row[0],
            role=Role.parse(row[1]),
            institution=row[2] or "",
            created_at=row[3],
        )

    @staticmethod
    def _row_to_record(row: Sequence[object]) -> Record:
        """Convert a records row tuple into a Record without channels."""
        return Record(
            dataset_id=row[0],
            id=row[1],
            position=row[2],
            patient_id=row[3] or "",
            timestamp=row[4],
            heart_rate=row[5],
            pr_interval=row[6],
            qrs_duration=row[7],
            qt_interval=row[8],
            auto_analysis=row[9] or "",
        )

    @staticmethod
    def _row_to_annotation(row: Sequence[object]) -> Annotation:
        """Convert an annotations row tuple into an Annotation."""
        return Annotation(
            annotator=row[0],
            dataset_id=row[1],
            record_id=row[2],
            content=row[3] or "",
            status=AnnotationStatus.parse(row[4]),
            timestamp=_dt(row[5]),
            annotator_role=Role.parse(row[6]),
            institution=row[7] or "",
            created_at=_dt(row[8]),
            version=int(row[9] or 1),
            reviewed_by=row[10],
            reviewed_at=_dt(row[11]),
            review_notes=row[12],
            findings=row[13],
            confidence_score=row[14],
        )

    @staticmethod
    def _row_to_history(row: Sequence[object]) -> HistoryEntry:
        return HistoryEntry(
            annotator=row[0],
            dataset_id=row[1],
            record_id=row[2],
            acting_user=row[3],
            action=HistoryAction(row[4]),
            created_at=_dt(row[5]),
            old_status=AnnotationStatus.parse(row[6]) if row[6] else None,
            new_status=AnnotationStatus.parse(row[7]) if row[7] else None,
            old_content=row[8],
            new_content=row[9],
        )
