"""Sync orchestration: refresh, fetch, classify and store placement emails."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator

from .auth import OAuthClient
from .classifier import KeywordClassifier
from .constants import DEFAULT_MAX_RESULTS
from .errors import (
    AuthExchangeError,
    MissingRefreshTokenError,
    NotConnectedError,
    PersistenceError,
    SyncInProgressError,
)
from .gmail_client import GmailClient
from .models import Credential, SyncResult
from .store import CredentialStore, EmailStore

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """Runs syncs and the connect/disconnect flows for any user.

    At most one sync or disconnect runs per user at a time, across
    processes.  Refreshing a token invalidates the previous access token, so
    two overlapping runs for the same user could end up fetching with a
    stale one.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        emails: EmailStore,
        oauth: OAuthClient,
        gmail: GmailClient,
        classifier: KeywordClassifier | None = None,
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> None:
        self.credentials = credentials
        self.emails = emails
        self.oauth = oauth
        self.gmail = gmail
        self.classifier = classifier or gmail.classifier
        self.max_results = max_results

    @contextmanager
    def _sync_lock(self, user_id: str) -> Iterator[None]:
        # Held in the shared database; every CLI invocation is its own process.
        if not self.credentials.claim_sync(user_id):
            raise SyncInProgressError(user_id)
        try:
            yield
        finally:
            self.credentials.release_sync(user_id)

    # --- connection ---

    def authorization_url(self, user_id: str) -> str:
        return self.oauth.build_authorization_url(user_id)

    def connect(self, user_id: str, code: str) -> Credential:
        """Finish the OAuth flow for *user_id* and store the credential."""
        tokens = self.oauth.exchange_code(code)
        if not tokens.refresh_token:
            raise AuthExchangeError("Google did not issue a refresh token. Try connecting again.")

        account_email = self.gmail.fetch_account_email(tokens.access_token)
        credential = self.credentials.update(
            user_id,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            token_expiry=tokens.expiry,
            connected=True,
            account_email=account_email,
        )
        logger.info("Connected %s for user %s", account_email, user_id)
        return credential

    def status(self, user_id: str) -> Credential | None:
        return self.credentials.get(user_id)

    def disconnect(self, user_id: str) -> int:
        """Drop the credential and every stored email; return the email count.

        Raises SyncInProgressError while a sync for the user is running.
        """
        with self._sync_lock(user_id):
            self.credentials.disconnect(user_id)
            removed = self.emails.delete_all(user_id)
        logger.info("Disconnected user %s and removed %d emails", user_id, removed)
        return removed

    # --- sync ---

    def sync(self, user_id: str) -> SyncResult:
        """Fetch, classify and upsert the user's recent placement emails.

        Raises SyncInProgressError when a sync for the same user is already
        running.  Records stored before an unexpected error stay stored.
        """
        with self._sync_lock(user_id):
            return self._run(user_id)

    def _run(self, user_id: str) -> SyncResult:
        logger.info("Starting sync for user %s", user_id)
        credential = self.credentials.get(user_id)
        if credential is None or not credential.connected:
            raise NotConnectedError(user_id)

        try:
            refreshed = self.oauth.refresh_if_needed(credential)
        except MissingRefreshTokenError:
            self.credentials.update(user_id, connected=False)
            raise

        access_token = credential.access_token
        if refreshed is not None:
            self.credentials.update(
                user_id,
                access_token=refreshed.access_token,
                token_expiry=refreshed.expiry,
            )
            access_token = refreshed.access_token

        emails = self.gmail.fetch_emails(access_token, max_results=self.max_results)
        result = SyncResult(user_id=user_id, fetched_count=len(emails))

        for email in emails:
            email.category = self.classifier.categorize(email)
            email.company = self.classifier.extract_company(email)
            email.fetched_at = datetime.now(timezone.utc)
            try:
                self.emails.upsert(user_id, email)
            except PersistenceError as exc:
                logger.error("Skipping message %s: %s", email.message_id, exc)
                result.skipped_count += 1
                continue
            result.ingested_count += 1

        logger.info(
            "Sync for user %s stored %d of %d emails",
            user_id,
            result.ingested_count,
            result.fetched_count,
        )
        return result
