import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS users (
        username TEXT PRIMARY KEY,
        role TEXT NOT NULL,
        institution TEXT,
        created_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS datasets (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        description TEXT,
        uploaded_by TEXT,
        upload_date TEXT,
        channel_names TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS records (
        dataset_id TEXT NOT NULL REFERENCES datasets(id),
        id TEXT NOT NULL,
        position INTEGER NOT NULL,
        patient_id TEXT,
        timestamp TEXT,
        heart_rate REAL,
        pr_interval REAL,
        qrs_duration REAL,
        qt_interval REAL,
        auto_analysis TEXT,
        PRIMARY KEY (dataset_id, id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS record_channels (
        dataset_id TEXT NOT NULL,
        record_id TEXT NOT NULL,
        channel_index INTEGER NOT NULL,
        name TEXT NOT NULL,
        samples TEXT NOT NULL,
        PRIMARY KEY (dataset_id, record_id, channel_index),
        FOREIGN KEY (dataset_id, record_id) REFERENCES records(dataset_id, id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS annotations (
        annotator TEXT NOT NULL,
        dataset_id TEXT NOT NULL,
        record_id TEXT NOT NULL,
        content TEXT,
        status TEXT NOT NULL,
        timestamp TEXT NOT NULL,
        annotator_role TEXT NOT NULL,
        institution TEXT,
        created_at TEXT,
        version INTEGER NOT NULL DEFAULT 1,
        reviewed_by TEXT,
        reviewed_at TEXT,
        review_notes TEXT,
        findings TEXT,
        confidence_score REAL,
        PRIMARY KEY (annotator, dataset_id, record_id),
        FOREIGN KEY (dataset_id, record_id) REFERENCES records(dataset_id, id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS annotation_history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        annotator TEXT NOT NULL,
        dataset_id TEXT NOT NULL,
        record_id TEXT NOT NULL,
        acting_user TEXT NOT NULL,
        action TEXT NOT NULL,
        created_at TEXT NOT NULL,
        old_status TEXT,
        new_status TEXT,
        old_content TEXT,
        new_content TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_annotations_record ON annotations(dataset_id, record_id)",
    "CREATE INDEX IF NOT EXISTS idx_history_key ON annotation_history(annotator, dataset_id, record_id)",
)


class AsyncDatabaseInitializer:
    """
    Manage the async SQLite database that backs the relational deployment.

    - The database file is located at: <db_dir>/app.db
    - On the first call to `ensure_database()` for a given instance the
      schema is created. When `reset=True` any existing file is deleted
      first, giving a clean database on startup.
    - Subsequent calls to `ensure_database()` on the same instance are no-ops,
      so it is safe for `connection()` to call it.
    """

    def __init__(self, db_dir: Path | str, reset: bool = False) -> None:
        self.db_dir = Path(db_dir).expanduser()
        self.db_path = self.db_dir / "app.db"
        self.reset = reset
        self._initialized = False
        self._init_lock = asyncio.Lock()

    async def ensure_database(self) -> None:
        """
        Ensure the SQLite database exists at `self.db_path` with the ledger schema.

        Subsequent calls on the same instance are no-ops.
        """
        if self._initialized:
            return

        async with self._init_lock:
            if self._initialized:
                return

            self.db_dir.mkdir(parents=True, exist_ok=True)
            if self.reset and self.db_path.exists():
                # OSError propagates so callers report it as a storage failure.
                self.db_path.unlink()

            max_attempts = 3
            for attempt in range(1, max_attempts + 1):
                try:
                    async with aiosqlite.connect(self.db_path) as db:
                        await db.execute("PRAGMA journal_mode=WAL;")
                        for statement in SCHEMA_STATEMENTS:
                            await db.execute(statement)
                        await db.commit()
                    break
                except FileNotFoundError:
                    # On some platforms a transient missing file error may occur; retry a few times.
                    if attempt >= max_attempts:
                        raise
                    await asyncio.sleep(0.1 * attempt)

            self._initialized = True

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Async context manager yielding an `aiosqlite.Connection` with foreign keys on.

        The schema is created on first use via `ensure_database()`.
        """
        await self.ensure_database()
        conn = await aiosqlite.connect(self.db_path)
        try:
            await conn.execute("PRAGMA foreign_keys=ON;")
            yield conn
        finally:
            await conn.close()
