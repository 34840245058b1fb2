"""Build the configured storage adapter."""

from __future__ import annotations

from dal.blob_dal import BlobLedgerDAL
from dal.blob_store import JsonFileBlobStore, MemoryBlobStore
from dal.ledger_dal import LedgerDAL
from dal.sqlite_dal import SQLiteLedgerDAL
from utils.config import Settings
from utils.database_init import AsyncDatabaseInitializer


def build_dal(settings: Settings) -> LedgerDAL:
    """Return a `LedgerDAL` for `settings.storage_backend`.

    Raises:
        RuntimeError: Unknown backend or missing database directory.
    """
    backend = settings.storage_backend
    if backend == "memory":
        return BlobLedgerDAL(MemoryBlobStore())
    if settings.database_dir is None:
        raise RuntimeError(f"Storage backend {backend!r} requires DATABASE_DIR.")
    if backend == "json":
        return BlobLedgerDAL(JsonFileBlobStore(settings.database_dir))
    if backend == "sqlite":
        return SQLiteLedgerDAL(AsyncDatabaseInitializer(settings.database_dir, reset=settings.database_reset))
    raise RuntimeError(f"Unsupported storage backend: {backend!r}")
