"""Data models for Placement Inbox."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Category(str, Enum):
    """Placement category assigned to a stored email."""

    APPLICATION = "application"
    INTERVIEW = "interview"
    OFFER = "offer"
    REJECTION = "rejection"
    ASSESSMENT = "assessment"
    OTHER = "other"


@dataclass
class Credential:
    """Per-user Gmail OAuth credential."""

    user_id: str
    access_token: str | None = None
    refresh_token: str | None = None
    token_expiry: datetime | None = None  # timezone-aware UTC
    connected: bool = False
    account_email: str | None = None


@dataclass(frozen=True)
class TokenSet:
    """Tokens issued by an authorization code exchange."""

    access_token: str
    refresh_token: str | None
    expiry: datetime | None


@dataclass(frozen=True)
class RefreshedToken:
    """A new access token obtained with a refresh token."""

    access_token: str
    expiry: datetime | None


@dataclass
class NormalizedEmail:
    """One Gmail message after parsing and classification."""

    message_id: str  # Gmail message id, unique per account
    sender: str  # Full From header value
    subject: str
    date: datetime
    thread_id: str | None = None
    recipient: str = ""  # Full To header value
    snippet: str = ""
    body: str = ""
    labels: list[str] = field(default_factory=list)
    is_read: bool = False
    category: Category = Category.OTHER
    company: str | None = None
    starred: bool = False
    fetched_at: datetime | None = None
    record_id: int | None = None  # row id once persisted


@dataclass
class SyncResult:
    """Outcome of one sync run."""

    user_id: str
    fetched_count: int = 0
    ingested_count: int = 0
    skipped_count: int = 0
