"""Configuration helpers for s2tldr."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_LIBRARY_ROOT = Path.home() / "s2tldr-library"
DEFAULT_S2_BASE_URL = "https://api.semanticscholar.org/graph/v1"


class Settings(BaseModel):
    """Runtime configuration loaded from env vars with sensible defaults."""

    data_dir: Path = Field(default_factory=lambda: DEFAULT_LIBRARY_ROOT)
    db_filename: str = "library.sqlite3"
    log_level: str = "INFO"
    s2_base_url: str = DEFAULT_S2_BASE_URL
    s2_api_key: str | None = None
    request_timeout: float = 30.0
    search_limit: int = 5
    pacing_delay: float = 1.0
    add_settle_delay: float = 3.0

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_filename

    def ensure_directories(self) -> None:
        """Create data directories if they are missing."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def load(cls) -> "Settings":
        load_dotenv()
        data_dir = Path(os.environ.get("S2TLDR_DATA_DIR", DEFAULT_LIBRARY_ROOT))
        return cls(
            data_dir=data_dir,
            db_filename=os.environ.get("S2TLDR_DB_FILENAME", "library.sqlite3"),
            log_level=os.environ.get("S2TLDR_LOG_LEVEL", "INFO"),
            s2_base_url=os.environ.get("S2TLDR_S2_URL", DEFAULT_S2_BASE_URL),
            s2_api_key=os.environ.get("S2TLDR_S2_API_KEY") or None,
            request_timeout=float(os.environ.get("S2TLDR_REQUEST_TIMEOUT", "30")),
            search_limit=int(os.environ.get("S2TLDR_SEARCH_LIMIT", "5")),
            pacing_delay=float(os.environ.get("S2TLDR_PACING_DELAY", "1.0")),
            add_settle_delay=float(os.environ.get("S2TLDR_ADD_SETTLE_DELAY", "3.0")),
        )


def get_settings() -> Settings:
    """Convenience accessor for lazy modules."""
    settings = Settings.load()
    settings.ensure_directories()
    return settings
