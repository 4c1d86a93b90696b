"""Configuration module for NoteGraph."""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

logger = logging.getLogger(__name__)

# Hard ceiling on results returned by one search
SEARCH_LIMIT_MAX = 50

# FTS5 snippet() accepts between 1 and 64 tokens
_SNIPPET_TOKENS_MAX = 64

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class NotegraphConfig(BaseModel):
    """Configuration for the note store, link graph and search index."""

    # Base directory for relative paths
    base_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("NOTEGRAPH_BASE_DIR", "."))
    )
    # Database configuration
    database_path: Path = Field(
        default_factory=lambda: Path(
            os.getenv("NOTEGRAPH_DATABASE_PATH", "data/notegraph.db")
        )
    )
    # When True, the whole store lives in one in-memory SQLite connection
    # and is lost when the process exits.
    in_memory_db: bool = Field(
        default_factory=lambda: _env_flag("NOTEGRAPH_IN_MEMORY_DB", "false")
    )
    # Search configuration
    search_limit: int = Field(
        default_factory=lambda: int(os.getenv("NOTEGRAPH_SEARCH_LIMIT", "50"))
    )
    snippet_tokens: int = Field(
        default_factory=lambda: int(os.getenv("NOTEGRAPH_SNIPPET_TOKENS", "32"))
    )
    highlight_open: str = Field(default="<mark>")
    highlight_close: str = Field(default="</mark>")
    # Note validation
    title_max_length: int = Field(default=255)
    # Logging configuration
    log_level: str = Field(
        default_factory=lambda: os.getenv("NOTEGRAPH_LOG_LEVEL", "INFO").upper()
    )
    log_dir: Optional[Path] = Field(
        default_factory=lambda: (
            Path(os.getenv("NOTEGRAPH_LOG_DIR"))
            if os.getenv("NOTEGRAPH_LOG_DIR")
            else None
        )
    )

    @model_validator(mode="after")
    def _validate_limits(self) -> "NotegraphConfig":
        """Reject values the storage and search layers cannot honour."""
        if not 1 <= self.search_limit <= SEARCH_LIMIT_MAX:
            raise ValueError(f"search_limit must be between 1 and {SEARCH_LIMIT_MAX}")
        if not 1 <= self.snippet_tokens <= _SNIPPET_TOKENS_MAX:
            raise ValueError(
                f"snippet_tokens must be between 1 and {_SNIPPET_TOKENS_MAX}"
            )
        if self.title_max_length < 1:
            raise ValueError("title_max_length must be >= 1")
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.log_level}")
        return self

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on base_dir."""
        if path.is_absolute():
            return path
        return self.base_dir / path

    def get_db_url(self) -> str:
        """Get the database URL for SQLite."""
        if self.in_memory_db:
            return "sqlite://"
        db_path = self.get_absolute_path(self.database_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{db_path}"


# Create a global config instance
config = NotegraphConfig()
