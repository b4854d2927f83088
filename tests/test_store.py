"""Tests for the SQLite credential and email stores."""

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from placement_inbox.errors import PersistenceError
from placement_inbox.models import Category
from placement_inbox.store import CredentialStore, EmailStore


def test_credential_update_and_get(credential_store):
    expiry = datetime(2024, 6, 1, 13, 0, tzinfo=timezone.utc)
    credential_store.update(
        "user-1",
        access_token="a1",
        refresh_token="r1",
        token_expiry=expiry,
        connected=True,
        account_email="me@example.com",
    )
    credential = credential_store.get("user-1")
    assert credential.access_token == "a1"
    assert credential.refresh_token == "r1"
    assert credential.token_expiry == expiry
    assert credential.connected is True
    assert credential.account_email == "me@example.com"


def test_credential_partial_update(credential_store):
    credential_store.update("user-1", access_token="a1", refresh_token="r1", connected=True)
    credential_store.update("user-1", access_token="a2")
    credential = credential_store.get("user-1")
    assert credential.access_token == "a2"
    assert credential.refresh_token == "r1"


def test_credential_unknown_field(credential_store):
    with pytest.raises(ValueError):
        credential_store.update("user-1", password="hunter2")


def test_credential_missing(credential_store):
    assert credential_store.get("nobody") is None


def test_credential_disconnect(credential_store):
    credential_store.update("user-1", access_token="a1", refresh_token="r1", connected=True)
    credential = credential_store.disconnect("user-1")
    assert credential.connected is False
    assert credential.access_token is None
    assert credential.refresh_token is None
    assert credential.token_expiry is None


def test_sync_claim_is_exclusive(db_path, credential_store):
    credential_store.update("user-1", connected=True)
    with CredentialStore(db_path) as other:
        assert credential_store.claim_sync("user-1") is True
        assert other.claim_sync("user-1") is False
        assert other.claim_sync("user-2") is True
        credential_store.release_sync("user-1")
        assert other.claim_sync("user-1") is True


def test_stale_sync_claim_is_taken_over(credential_store):
    started = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert credential_store.claim_sync("user-1", now=started)
    assert not credential_store.claim_sync("user-1", now=started + timedelta(minutes=10))
    assert credential_store.claim_sync("user-1", now=started + timedelta(hours=1))


def test_disconnect_keeps_sync_claim(credential_store):
    credential_store.update("user-1", access_token="a1", refresh_token="r1", connected=True)
    assert credential_store.claim_sync("user-1")
    credential_store.disconnect("user-1")
    assert not credential_store.claim_sync("user-1")


def test_old_database_gains_sync_column(db_path):
    conn = sqlite3.connect(str(db_path))
    with conn:
        conn.execute(
            "CREATE TABLE credentials (user_id TEXT PRIMARY KEY, access_token TEXT,"
            " refresh_token TEXT, token_expiry TEXT,"
            " connected INTEGER NOT NULL DEFAULT 0, account_email TEXT)"
        )
        conn.execute("INSERT INTO credentials (user_id, connected) VALUES ('user-1', 1)")
    conn.close()

    with CredentialStore(db_path) as store:
        assert store.get("user-1").connected is True
        assert store.claim_sync("user-1")


def test_upsert_inserts(email_store, make_email):
    stored = email_store.upsert(
        "user-1",
        make_email(labels=["INBOX"], category=Category.INTERVIEW, company="Acme"),
    )
    assert stored.record_id is not None
    assert stored.category == Category.INTERVIEW
    assert stored.company == "Acme"
    assert stored.labels == ["INBOX"]
    assert stored.fetched_at is not None
    assert email_store.get("user-1", "msg_001").subject == "Interview scheduled with Acme"


def test_upsert_overwrites_without_duplicating(email_store, make_email):
    first = email_store.upsert("user-1", make_email(category=Category.INTERVIEW))
    second = email_store.upsert(
        "user-1",
        make_email(subject="Offer letter", category=Category.OFFER, is_read=True),
    )
    assert second.record_id == first.record_id
    assert second.subject == "Offer letter"
    assert second.category == Category.OFFER
    assert second.is_read is True
    assert len(email_store.list_emails("user-1")) == 1


def test_upsert_preserves_starred(email_store, make_email):
    stored = email_store.upsert("user-1", make_email())
    email_store.toggle_star("user-1", stored.record_id)

    again = email_store.upsert("user-1", make_email(subject="Changed", starred=False))
    assert again.starred is True
    assert again.subject == "Changed"


def test_same_message_for_two_users(email_store, make_email):
    email_store.upsert("user-1", make_email())
    email_store.upsert("user-2", make_email())
    assert len(email_store.list_emails("user-1")) == 1
    assert len(email_store.list_emails("user-2")) == 1


def test_upsert_failure_raises_persistence_error(db_path, make_email):
    store = EmailStore(db_path)
    store.close()
    with pytest.raises(PersistenceError):
        store.upsert("user-1", make_email())


def test_list_filters(email_store, make_email):
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    email_store.upsert(
        "user-1",
        make_email("m1", subject="Interview", category=Category.INTERVIEW, date=base),
    )
    email_store.upsert(
        "user-1",
        make_email(
            "m2",
            subject="Offer",
            category=Category.OFFER,
            company="Flipkart",
            date=base + timedelta(days=1),
        ),
    )
    third = email_store.upsert(
        "user-1",
        make_email("m3", subject="Test", category=Category.ASSESSMENT, date=base + timedelta(days=2)),
    )
    email_store.toggle_star("user-1", third.record_id)

    assert [e.message_id for e in email_store.list_emails("user-1")] == ["m3", "m2", "m1"]
    assert [e.message_id for e in email_store.list_emails("user-1", category="offer")] == ["m2"]
    assert [e.message_id for e in email_store.list_emails("user-1", starred=True)] == ["m3"]
    assert [e.message_id for e in email_store.list_emails("user-1", search="FLIPKART")] == ["m2"]
    assert [e.message_id for e in email_store.list_emails("user-1", limit=1)] == ["m3"]
    assert email_store.list_emails("user-2") == []


def test_search_treats_wildcards_literally(email_store, make_email):
    email_store.upsert("user-1", make_email("m1", subject="Offer: 100% remote"))
    email_store.upsert("user-1", make_email("m2", subject="Offer: 100 openings"))
    email_store.upsert("user-1", make_email("m3", subject="Test for role_a"))
    email_store.upsert("user-1", make_email("m4", subject="Test for roleXa"))

    assert [e.message_id for e in email_store.list_emails("user-1", search="100%")] == ["m1"]
    assert [e.message_id for e in email_store.list_emails("user-1", search="role_a")] == ["m3"]
    assert [e.message_id for e in email_store.list_emails("user-1", search="%")] == ["m1"]


def test_stats(email_store, make_email):
    now = datetime(2024, 6, 10, tzinfo=timezone.utc)
    email_store.upsert(
        "user-1",
        make_email("m1", category=Category.INTERVIEW, company="Google", date=now - timedelta(days=1)),
    )
    email_store.upsert(
        "user-1",
        make_email(
            "m2",
            category=Category.INTERVIEW,
            company="Google",
            is_read=True,
            date=now - timedelta(days=30),
        ),
    )
    email_store.upsert("user-1", make_email("m3", category=Category.OFFER, date=now))

    stats = email_store.get_stats("user-1", now=now)
    assert stats == {
        "total": 3,
        "unread": 2,
        "by_category": {"interview": 2, "offer": 1},
        "by_company": {"Google": 2},
        "recent": 2,
    }


def test_mark_read_and_set_category(email_store, make_email):
    stored = email_store.upsert("user-1", make_email())
    assert email_store.mark_read("user-1", stored.record_id).is_read is True
    updated = email_store.set_category("user-1", stored.record_id, "rejection")
    assert updated.category == Category.REJECTION


def test_actions_are_user_scoped(email_store, make_email):
    stored = email_store.upsert("user-1", make_email())
    assert email_store.toggle_star("user-2", stored.record_id) is None
    assert email_store.delete("user-2", stored.record_id) is False
    assert email_store.get("user-1", "msg_001").starred is False


def test_delete(email_store, make_email):
    stored = email_store.upsert("user-1", make_email())
    assert email_store.delete("user-1", stored.record_id) is True
    assert email_store.get("user-1", "msg_001") is None


def test_delete_all(email_store, make_email):
    for i in range(3):
        email_store.upsert("user-1", make_email(f"m{i}"))
    email_store.upsert("user-2", make_email("m0"))

    assert email_store.delete_all("user-1") == 3
    assert email_store.list_emails("user-1") == []
    assert len(email_store.list_emails("user-2")) == 1
