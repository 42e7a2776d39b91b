"""Environment-based settings.

Values come from environment variables, optionally loaded from a ``.env``
file in the working directory.
"""

import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from networth.mail.imap import ImapConfig


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or not value.strip():
        return None
    return float(value)


@dataclass
class Settings:
    """Runtime settings for ingestion and storage."""

    db_path: Optional[str] = None
    rules_path: Optional[str] = None
    api_token: Optional[str] = None
    imap_server: str = "imap.gmail.com"
    imap_port: int = 993
    imap_username: Optional[str] = None
    imap_password: Optional[str] = None
    ingest_interval_hours: float = 4
    max_messages: int = 10
    pass_timeout: Optional[float] = None

    @classmethod
    def from_environment(cls) -> "Settings":
        """Create settings from environment variables."""
        return cls(
            db_path=os.getenv("NETWORTH_DB_PATH"),
            rules_path=os.getenv("NETWORTH_RULES_PATH"),
            api_token=os.getenv("NETWORTH_API_TOKEN"),
            imap_server=os.getenv("NETWORTH_IMAP_SERVER", "imap.gmail.com"),
            imap_port=int(os.getenv("NETWORTH_IMAP_PORT", "993")),
            imap_username=os.getenv("NETWORTH_IMAP_USERNAME"),
            imap_password=os.getenv("NETWORTH_IMAP_PASSWORD"),
            ingest_interval_hours=float(os.getenv("NETWORTH_INGEST_INTERVAL_HOURS", "4")),
            max_messages=int(os.getenv("NETWORTH_MAX_MESSAGES", "10")),
            pass_timeout=_optional_float(os.getenv("NETWORTH_PASS_TIMEOUT")),
        )

    @property
    def ingest_interval(self) -> timedelta:
        return timedelta(hours=self.ingest_interval_hours)

    def imap_config(self) -> ImapConfig:
        """IMAP connection settings.

        Raises:
            ValueError: If username or password is not configured
        """
        if not self.imap_username or not self.imap_password:
            raise ValueError("NETWORTH_IMAP_USERNAME and NETWORTH_IMAP_PASSWORD must be set")
        return ImapConfig(
            server=self.imap_server,
            port=self.imap_port,
            username=self.imap_username,
            password=self.imap_password,
        )

    def validate(self) -> list[str]:
        """Validate settings and return a list of errors."""
        errors = []
        if self.imap_port <= 0 or self.imap_port > 65535:
            errors.append("NETWORTH_IMAP_PORT must be 1-65535")
        if self.imap_username and not self.imap_password:
            errors.append("NETWORTH_IMAP_PASSWORD is required when NETWORTH_IMAP_USERNAME is provided")
        if self.ingest_interval_hours <= 0:
            errors.append("NETWORTH_INGEST_INTERVAL_HOURS must be positive")
        if self.max_messages <= 0:
            errors.append("NETWORTH_MAX_MESSAGES must be positive")
        if self.pass_timeout is not None and self.pass_timeout <= 0:
            errors.append("NETWORTH_PASS_TIMEOUT must be positive")
        return errors


def get_settings() -> Settings:
    """Load .env from the working directory (if present) and build settings."""
    load_dotenv(find_dotenv(usecwd=True))
    return Settings.from_environment()
