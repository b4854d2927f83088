"""Gmail API client: search, fetch and parse placement messages."""

from __future__ import annotations

import base64
import logging
import re
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timezone
from email.utils import parsedate_to_datetime
from typing import Callable, Sequence

import httplib2
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import Resource, build
from googleapiclient.errors import HttpError
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from .classifier import KeywordClassifier
from .constants import (
    DEFAULT_MAX_RESULTS,
    FETCH_WORKERS,
    MAX_BODY_LENGTH,
    MESSAGE_FORMAT,
    PLACEMENT_KEYWORDS,
    QUERY_KEYWORD_LIMIT,
    SEARCH_WINDOW_DAYS,
    UNREAD_LABEL,
)
from .errors import MessageParseError, ProviderFetchError
from .models import NormalizedEmail

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")
_BODY_MIME_TYPES = ("text/plain", "text/html")

ServiceFactory = Callable[[str], Resource]


def _is_retryable_http_error(exc: BaseException) -> bool:
    return isinstance(exc, HttpError) and exc.resp.status in (429, 500, 503)


def build_service(access_token: str) -> Resource:
    """Return a Gmail v1 client authorised by a bare access token."""
    return build(
        "gmail",
        "v1",
        credentials=Credentials(token=access_token),
        cache_discovery=False,
    )


def build_search_query(
    keywords: Sequence[str] = PLACEMENT_KEYWORDS,
    limit: int = QUERY_KEYWORD_LIMIT,
    window_days: int = SEARCH_WINDOW_DAYS,
) -> str:
    """Build a Gmail search expression for recent placement mail.

    Only the first *limit* keywords go into the query, since Gmail rejects
    overly long expressions.  That costs some recall; the relevance check
    in GmailClient.fetch_emails runs over the full keyword list.
    """
    terms = " OR ".join(f'"{k}"' for k in keywords[:limit])
    return f"newer_than:{window_days}d ({terms})"


@retry(
    retry=retry_if_exception(_is_retryable_http_error),
    wait=wait_exponential(multiplier=1, min=1, max=60),
    stop=stop_after_attempt(5),
    reraise=True,
)
def list_message_ids(service, query: str, max_results: int = DEFAULT_MAX_RESULTS) -> list[str]:
    """List message IDs matching the query (first page only)."""
    resp = (
        service.users()
        .messages()
        .list(userId="me", q=query, maxResults=max_results)
        .execute()
    )
    return [msg["id"] for msg in resp.get("messages", [])][:max_results]


@retry(
    retry=retry_if_exception(_is_retryable_http_error),
    wait=wait_exponential(multiplier=1, min=1, max=60),
    stop=stop_after_attempt(5),
    reraise=True,
)
def get_message(service, message_id: str) -> dict:
    """Fetch one full message."""
    return (
        service.users()
        .messages()
        .get(userId="me", id=message_id, format=MESSAGE_FORMAT)
        .execute()
    )


def _decode_body(data: str) -> str:
    """Decode a base64url Gmail body payload."""
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")


def _extract_body(payload: dict) -> str:
    data = payload.get("body", {}).get("data")
    if not data:
        for part in payload.get("parts", []):
            if part.get("mimeType") in _BODY_MIME_TYPES:
                data = part.get("body", {}).get("data")
                break
    if not data:
        return ""

    body = _decode_body(data)
    if _TAG_RE.search(body):
        body = _WHITESPACE_RE.sub(" ", _TAG_RE.sub(" ", body)).strip()
    return body[:MAX_BODY_LENGTH]


def parse_message(data: dict) -> NormalizedEmail:
    """Turn a full-format Gmail message into a NormalizedEmail."""
    message_id = data["id"]
    payload = data.get("payload", {})

    headers: dict[str, str] = {}
    for h in payload.get("headers", []):
        headers.setdefault(h["name"].lower(), h["value"])

    for required in ("from", "subject", "date"):
        if required not in headers:
            raise MessageParseError(message_id, f"missing {required.title()} header")

    try:
        date = parsedate_to_datetime(headers["date"])
    except (TypeError, ValueError) as exc:
        raise MessageParseError(message_id, f"unparseable Date header {headers['date']!r}") from exc
    if date.tzinfo is None:
        date = date.replace(tzinfo=timezone.utc)

    try:
        body = _extract_body(payload)
    except ValueError as exc:
        raise MessageParseError(message_id, "undecodable body") from exc

    labels = data.get("labelIds", [])
    return NormalizedEmail(
        message_id=message_id,
        thread_id=data.get("threadId"),
        sender=headers["from"],
        recipient=headers.get("to", ""),
        subject=headers["subject"],
        date=date,
        snippet=data.get("snippet", ""),
        body=body,
        labels=labels,
        is_read=UNREAD_LABEL not in labels,
    )


class GmailClient:
    """Fetches placement emails for whichever access token it is handed."""

    def __init__(
        self,
        classifier: KeywordClassifier | None = None,
        service_factory: ServiceFactory = build_service,
        workers: int = FETCH_WORKERS,
        query: str | None = None,
    ) -> None:
        self.classifier = classifier or KeywordClassifier()
        self.service_factory = service_factory
        self.workers = workers
        self.query = query or build_search_query(self.classifier.config.placement_keywords)

    def fetch_account_email(self, access_token: str) -> str:
        """Return the address of the mailbox the token belongs to."""
        profile = self.service_factory(access_token).users().getProfile(userId="me").execute()
        return profile["emailAddress"]

    def fetch_emails(
        self,
        access_token: str,
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> list[NormalizedEmail]:
        """Search, fetch and parse placement emails.

        Messages that fail to download or parse are logged and skipped.
        Messages that pass the Gmail search but not the keyword check are
        dropped.  Gmail's ordering is preserved.
        """
        service = self.service_factory(access_token)
        ids = list_message_ids(service, self.query, max_results=max_results)
        if not ids:
            logger.info("No messages matched the search query")
            return []

        logger.debug("Fetching %d messages with %d workers", len(ids), self.workers)
        local = threading.local()

        def _fetch(msg_id: str) -> NormalizedEmail:
            # httplib2 connections are not thread-safe; one client per worker.
            if not hasattr(local, "service"):
                local.service = self.service_factory(access_token)
            try:
                raw = get_message(local.service, msg_id)
            except HttpError as exc:
                raise ProviderFetchError(msg_id, f"HTTP {exc.resp.status}") from exc
            except (OSError, httplib2.HttpLib2Error) as exc:
                # Socket timeouts and TLS failures are OSError subclasses.
                raise ProviderFetchError(msg_id, f"{type(exc).__name__}: {exc}") from exc
            return parse_message(raw)

        emails: list[NormalizedEmail] = []
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            futures = [(msg_id, pool.submit(_fetch, msg_id)) for msg_id in ids]
            try:
                for msg_id, future in futures:
                    try:
                        email = future.result()
                    except ProviderFetchError as exc:
                        logger.warning("Skipping message %s: %s", msg_id, exc)
                        continue
                    if self.classifier.is_relevant(email):
                        emails.append(email)
                    else:
                        logger.debug("Dropping irrelevant message %s", msg_id)
            except BaseException:
                pool.shutdown(wait=False, cancel_futures=True)
                raise

        logger.info("Fetched %d relevant messages out of %d", len(emails), len(ids))
        return emails
