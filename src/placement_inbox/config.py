"""Runtime configuration read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from .constants import DB_PATH, DEFAULT_MAX_RESULTS
from .errors import ConfigError


@dataclass(frozen=True)
class OAuthSettings:
    """Google OAuth web client settings."""

    client_id: str
    client_secret: str
    redirect_uri: str

    @classmethod
    def from_env(cls) -> OAuthSettings:
        values = {
            "GOOGLE_CLIENT_ID": os.environ.get("GOOGLE_CLIENT_ID", ""),
            "GOOGLE_CLIENT_SECRET": os.environ.get("GOOGLE_CLIENT_SECRET", ""),
            "GOOGLE_REDIRECT_URI": os.environ.get("GOOGLE_REDIRECT_URI", ""),
        }
        missing = [name for name, value in values.items() if not value]
        if missing:
            raise ConfigError(f"Missing OAuth settings: {', '.join(missing)}")
        return cls(
            client_id=values["GOOGLE_CLIENT_ID"],
            client_secret=values["GOOGLE_CLIENT_SECRET"],
            redirect_uri=values["GOOGLE_REDIRECT_URI"],
        )


@dataclass(frozen=True)
class Settings:
    """Storage location and sync limits."""

    db_path: Path = field(default_factory=lambda: DB_PATH)
    max_results: int = DEFAULT_MAX_RESULTS

    @classmethod
    def from_env(cls) -> Settings:
        db_path = os.environ.get("PLACEMENT_INBOX_DB")
        max_results = os.environ.get("PLACEMENT_INBOX_MAX_RESULTS")
        try:
            parsed_max = int(max_results) if max_results else DEFAULT_MAX_RESULTS
        except ValueError as exc:
            raise ConfigError(
                f"PLACEMENT_INBOX_MAX_RESULTS must be an integer, got {max_results!r}"
            ) from exc
        if parsed_max <= 0:
            raise ConfigError("PLACEMENT_INBOX_MAX_RESULTS must be positive")
        return cls(
            db_path=Path(db_path) if db_path else DB_PATH,
            max_results=parsed_max,
        )
