"""Environment-driven settings for the annotation service."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

STORAGE_BACKENDS = ("sqlite", "json", "memory")


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Runtime configuration collected from environment variables.

    Attributes:
        storage_backend: One of `sqlite`, `json` or `memory`.
        database_dir: Directory holding `app.db` or the JSON blob files.
        database_reset: Wipe the SQLite file on first initialization.
        seed_sample_data: Load the sample users and dataset into empty storage.
        registration_code: Code new users must present, if set.
        log_level: Root logging level name.
    """

    storage_backend: str = "sqlite"
    database_dir: Optional[Path] = None
    database_reset: bool = False
    seed_sample_data: bool = False
    registration_code: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Load `.env` (if present) and build settings from the environment.

        Raises:
            RuntimeError: If the backend is unknown or `DATABASE_DIR` is
                missing/invalid for a backend that needs it.
        """
        load_dotenv()

        backend = os.getenv("STORAGE_BACKEND", "sqlite").strip().lower()
        if backend not in STORAGE_BACKENDS:
            raise RuntimeError(
                f"STORAGE_BACKEND={backend!r} is not supported; use one of {', '.join(STORAGE_BACKENDS)}."
            )

        database_dir: Optional[Path] = None
        if backend != "memory":
            env_dir = os.getenv("DATABASE_DIR")
            if env_dir is None or not env_dir.strip():
                raise RuntimeError(
                    "DATABASE_DIR environment variable must be set to a writable "
                    "directory path where annotation data will be stored."
                )
            database_dir = Path(env_dir).expanduser()
            if database_dir.exists() and not database_dir.is_dir():
                raise RuntimeError(
                    f"DATABASE_DIR={env_dir!r} points to a file, not a directory "
                    f"({database_dir}). Please set DATABASE_DIR to a directory path."
                )
            try:
                database_dir.mkdir(parents=True, exist_ok=True)
            except Exception as exc:
                raise RuntimeError(f"Failed to create or access database directory at {database_dir}") from exc

        code = os.getenv("REGISTRATION_CODE")
        return cls(
            storage_backend=backend,
            database_dir=database_dir,
            database_reset=_env_flag("DATABASE_RESET"),
            seed_sample_data=_env_flag("SEED_SAMPLE_DATA"),
            registration_code=code.strip() if code and code.strip() else None,
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )
