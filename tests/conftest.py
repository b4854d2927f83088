"""Shared fixtures for tests."""

from __future__ import annotations

import base64
from datetime import datetime, timezone

import httplib2
import pytest
from googleapiclient.errors import HttpError

from placement_inbox.models import NormalizedEmail
from placement_inbox.store import CredentialStore, EmailStore


def encode_body(text: str) -> str:
    """Encode text the way Gmail ships body payloads (unpadded base64url)."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def make_gmail_message(
    msg_id: str,
    subject: str = "Interview invitation",
    sender: str = "Recruiting <careers@acme.io>",
    body: str = "We would like to invite you.",
    snippet: str = "",
    labels: list[str] | None = None,
    date: str = "Mon, 15 Jan 2024 10:00:00 +0000",
    as_parts: bool = False,
) -> dict:
    """Build a full-format Gmail API message resource."""
    headers = [
        {"name": "From", "value": sender},
        {"name": "To", "value": "student@example.com"},
        {"name": "Subject", "value": subject},
        {"name": "Date", "value": date},
    ]
    payload: dict = {"mimeType": "text/plain", "headers": headers, "body": {"size": 0}}
    if as_parts:
        payload["mimeType"] = "multipart/alternative"
        payload["parts"] = [
            {"mimeType": "text/plain", "body": {"data": encode_body(body)}},
        ]
    else:
        payload["body"] = {"data": encode_body(body)}
    return {
        "id": msg_id,
        "threadId": f"thread-{msg_id}",
        "snippet": snippet or body[:100],
        "labelIds": labels if labels is not None else ["INBOX", "UNREAD"],
        "payload": payload,
    }


class _Request:
    def __init__(self, fn) -> None:
        self._fn = fn

    def execute(self):
        return self._fn()


class _FakeMessages:
    def __init__(self, service: FakeGmailService) -> None:
        self._service = service

    def list(self, userId: str, q: str, maxResults: int) -> _Request:
        self._service.list_calls.append({"q": q, "maxResults": maxResults})
        ids = self._service.order[:maxResults]
        return _Request(lambda: {"messages": [{"id": i} for i in ids]} if ids else {"resultSizeEstimate": 0})

    def get(self, userId: str, id: str, format: str) -> _Request:
        def _get() -> dict:
            self._service.get_calls.append(id)
            failure = self._service.failures.get(id)
            if isinstance(failure, list):
                # Fail with each queued error in turn, then succeed.
                failure = failure.pop(0) if failure else None
            if isinstance(failure, BaseException):
                raise failure
            if failure is not None:
                raise HttpError(httplib2.Response({"status": failure}), b"error")
            return self._service.messages[id]

        return _Request(_get)


class _FakeUsers:
    def __init__(self, service: FakeGmailService) -> None:
        self._service = service

    def messages(self) -> _FakeMessages:
        return _FakeMessages(self._service)

    def getProfile(self, userId: str) -> _Request:
        return _Request(lambda: {"emailAddress": self._service.email_address})


class FakeGmailService:
    """In-memory stand-in for the googleapiclient Gmail resource.

    *failures* maps a message id to an HTTP status or an exception to raise
    on every get, or to a list of those raised once each before succeeding.
    """

    def __init__(
        self,
        messages: list[dict],
        failures: dict[str, int | BaseException | list] | None = None,
        email_address: str = "student@example.com",
    ) -> None:
        self.messages = {m["id"]: m for m in messages}
        self.failures = failures or {}
        self.order = [m["id"] for m in messages] + [i for i in self.failures if i not in self.messages]
        self.email_address = email_address
        self.list_calls: list[dict] = []
        self.get_calls: list[str] = []
        self.tokens: list[str] = []

    def factory(self, access_token: str) -> FakeGmailService:
        self.tokens.append(access_token)
        return self

    def users(self) -> _FakeUsers:
        return _FakeUsers(self)


@pytest.fixture
def make_email():
    def _make(
        message_id: str = "msg_001",
        subject: str = "Interview scheduled with Acme",
        sender: str = "Acme Recruiting <careers@acme.io>",
        snippet: str = "Your interview is scheduled for Monday.",
        **kwargs,
    ) -> NormalizedEmail:
        kwargs.setdefault("date", datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc))
        return NormalizedEmail(
            message_id=message_id,
            subject=subject,
            sender=sender,
            snippet=snippet,
            **kwargs,
        )

    return _make


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "tracker.db"


@pytest.fixture
def email_store(db_path):
    with EmailStore(db_path) as store:
        yield store


@pytest.fixture
def credential_store(db_path):
    with CredentialStore(db_path) as store:
        yield store


@pytest.fixture
def gmail_message():
    return make_gmail_message


@pytest.fixture
def fake_service():
    return FakeGmailService
