"""Centralised settings for the Lemma Chain service.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (one level up from the package)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)

# `o` and `0` are left out so addresses can be read back without confusion.
HASHID_ALPHABET = "abcdefghijklmnpqrstuvwxyz123456789"


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("LEMMA_WORKSPACE", Path.home() / ".lemma_data")
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.workspace_dir / "lemma.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # Addressing
    # ------------------------------------------------------------------
    # Once set in production, do not modify.
    hashid_salt: str = field(
        default_factory=lambda: os.environ.get(
            "HASHID_SALT", "ffb80dba55db4b7ab49cb83ed96eca29"
        )
    )
    hashid_min_length: int = field(
        default_factory=lambda: int(os.environ.get("HASHID_MIN_LENGTH", "6"))
    )
    hashid_alphabet: str = HASHID_ALPHABET

    # ------------------------------------------------------------------
    # Node creation limits
    # ------------------------------------------------------------------
    max_payload_kb: int = field(
        default_factory=lambda: int(os.environ.get("MAX_PAYLOAD_KB", "12"))
    )
    max_parent_refs: int = field(
        default_factory=lambda: int(os.environ.get("MAX_PARENT_REFS", "250"))
    )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    query_timeout_ms: int = field(
        default_factory=lambda: int(os.environ.get("QUERY_TIMEOUT", "300"))
    )
    cache_duration_min: int = field(
        default_factory=lambda: int(os.environ.get("CACHE_DURATION", "15"))
    )
    chain_max_depth: int = field(
        default_factory=lambda: int(os.environ.get("CHAIN_MAX_DEPTH", "100"))
    )
    search_limit: int = field(
        default_factory=lambda: int(os.environ.get("SEARCH_LIMIT", "50"))
    )

    # ------------------------------------------------------------------
    # Bot check (Google reCAPTCHA).  An empty secret disables the check.
    # ------------------------------------------------------------------
    recaptcha_secret: str = field(
        default_factory=lambda: os.environ.get("RECAPTCHA_SECRET", "")
    )
    recaptcha_verify_url: str = field(
        default_factory=lambda: os.environ.get(
            "RECAPTCHA_VERIFY_URL", "https://www.google.com/recaptcha/api/siteverify"
        )
    )
    recaptcha_timeout: float = field(
        default_factory=lambda: float(os.environ.get("RECAPTCHA_TIMEOUT", "10.0"))
    )

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------
    website: str = field(
        default_factory=lambda: os.environ.get("WEBSITE", "http://localhost:3000")
    )
    server_host_url: str = field(
        default_factory=lambda: os.environ.get("SERVER_HOST_URL", "http://localhost:1323")
    )
    unvalidated_grace_hours: int = field(
        default_factory=lambda: int(os.environ.get("UNVALIDATED_GRACE_HOURS", "48"))
    )
    cleanup_interval_hours: int = field(
        default_factory=lambda: int(os.environ.get("CLEANUP_INTERVAL_HOURS", "24"))
    )

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------
    log_level: str = field(
        default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO")
    )
    listen_host: str = field(
        default_factory=lambda: os.environ.get("LISTEN_HOST", "127.0.0.1")
    )
    listen_port: int = field(
        default_factory=lambda: int(os.environ.get("LISTEN_PORT", "1323"))
    )

    @property
    def max_payload_bytes(self) -> int:
        return self.max_payload_kb * 1024

    @property
    def cache_ttl(self) -> float:
        """Response cache TTL in seconds (0 means caching is disabled)."""
        return self.cache_duration_min * 60.0

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


# Module-level singleton, import this everywhere:
#   from lemma.config import settings
settings = Settings()
