"""Exceptions raised by Placement Inbox."""

from __future__ import annotations


class PlacementInboxError(Exception):
    """Base class for all Placement Inbox errors."""


class ConfigError(PlacementInboxError):
    """Required configuration is missing or invalid."""


class NotConnectedError(PlacementInboxError):
    """Sync was requested for a user without a connected mailbox."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"Gmail is not connected for user {user_id!r}. Connect first.")
        self.user_id = user_id


class MissingRefreshTokenError(PlacementInboxError):
    """A connected credential has no refresh token; only a reconnect fixes it."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"No refresh token stored for user {user_id!r}. Reconnect required.")
        self.user_id = user_id


class AuthExchangeError(PlacementInboxError):
    """The authorization code could not be exchanged for tokens."""


class TokenRefreshError(PlacementInboxError):
    """Google rejected the refresh token."""


class ProviderFetchError(PlacementInboxError):
    """A single message could not be fetched from Gmail."""

    def __init__(self, message_id: str, reason: str) -> None:
        super().__init__(f"Message {message_id}: {reason}")
        self.message_id = message_id


class MessageParseError(ProviderFetchError):
    """A fetched message lacks a required header or has an unparseable date."""


class PersistenceError(PlacementInboxError):
    """The email store failed to write a record."""


class SyncInProgressError(PlacementInboxError):
    """Another sync is already running for the same user."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"A sync is already running for user {user_id!r}.")
        self.user_id = user_id
