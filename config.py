import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        read_workers: int,
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.read_workers = read_workers
        self.log_level = log_level


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("ENVELOPE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_url = os.getenv("ENVELOPE_DATABASE_URL")
    if not database_url:
        default_db = _ensure_data_dir() / "envelope.db"
        database_url = f"sqlite:///{default_db}"
    read_workers = max(1, int(os.getenv("ENVELOPE_READ_WORKERS", "4")))
    log_level = os.getenv("ENVELOPE_LOG_LEVEL", "INFO").upper()
    return Settings(
        database_url=database_url,
        read_workers=read_workers,
        log_level=log_level,
    )
