"""CLI entry point for Placement Inbox."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

import click
from dotenv import find_dotenv, load_dotenv
from rich.logging import RichHandler

from .auth import OAuthClient
from .classifier import KeywordClassifier
from .config import OAuthSettings, Settings
from .display import (
    console,
    display_email_detail,
    display_emails,
    display_stats,
    display_status,
    display_sync_result,
)
from .errors import PlacementInboxError
from .gmail_client import GmailClient
from .models import Category
from .store import CredentialStore, EmailStore
from .sync import SyncOrchestrator

CATEGORY_CHOICE = click.Choice([c.value for c in Category])


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _settings() -> Settings:
    try:
        return Settings.from_env()
    except PlacementInboxError as e:
        raise click.ClickException(str(e)) from e


@contextmanager
def _orchestrator() -> Iterator[SyncOrchestrator]:
    settings = _settings()
    try:
        oauth_settings = OAuthSettings.from_env()
    except PlacementInboxError as e:
        raise click.ClickException(str(e)) from e

    classifier = KeywordClassifier()
    with CredentialStore(settings.db_path) as credentials, EmailStore(settings.db_path) as emails:
        yield SyncOrchestrator(
            credentials,
            emails,
            OAuthClient(oauth_settings),
            GmailClient(classifier),
            classifier=classifier,
            max_results=settings.max_results,
        )


@contextmanager
def _email_store() -> Iterator[EmailStore]:
    with EmailStore(_settings().db_path) as store:
        yield store


@click.group()
@click.version_option(version="0.1.0", prog_name="placement-inbox")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging.")
def cli(verbose: bool) -> None:
    """Placement Inbox - track placement emails from your Gmail."""
    load_dotenv(find_dotenv(usecwd=True))
    _configure_logging(verbose)


@cli.command(name="auth-url")
@click.argument("user_id")
def auth_url(user_id: str) -> None:
    """Print the Google consent URL for USER_ID."""
    with _orchestrator() as orchestrator:
        url = orchestrator.authorization_url(user_id)
    console.print(url, soft_wrap=True)


@cli.command()
@click.argument("user_id")
@click.argument("code")
def connect(user_id: str, code: str) -> None:
    """Finish connecting Gmail with the CODE from the consent redirect."""
    with _orchestrator() as orchestrator:
        try:
            credential = orchestrator.connect(user_id, code)
        except PlacementInboxError as e:
            raise click.ClickException(str(e)) from e
    display_status(user_id, credential)


@cli.command()
@click.argument("user_id")
def status(user_id: str) -> None:
    """Show whether USER_ID has a connected mailbox."""
    with _orchestrator() as orchestrator:
        credential = orchestrator.status(user_id)
    display_status(user_id, credential)


@cli.command()
@click.argument("user_id")
def disconnect(user_id: str) -> None:
    """Disconnect Gmail and remove all stored emails of USER_ID."""
    with _orchestrator() as orchestrator:
        try:
            removed = orchestrator.disconnect(user_id)
        except PlacementInboxError as e:
            raise click.ClickException(str(e)) from e
    console.print(f"[green]Gmail disconnected.[/green] Removed {removed} emails.")


@cli.command()
@click.argument("user_id")
def sync(user_id: str) -> None:
    """Fetch and classify recent placement emails for USER_ID."""
    with _orchestrator() as orchestrator:
        try:
            result = orchestrator.sync(user_id)
        except PlacementInboxError as e:
            raise click.ClickException(str(e)) from e
    display_sync_result(result)


@cli.command(name="emails")
@click.argument("user_id")
@click.option("-c", "--category", type=CATEGORY_CHOICE, default=None, help="Only this category.")
@click.option("--starred", is_flag=True, help="Only starred emails.")
@click.option("-s", "--search", default=None, help="Match subject, sender or company.")
def emails_cmd(user_id: str, category: str | None, starred: bool, search: str | None) -> None:
    """List stored emails of USER_ID, newest first."""
    with _email_store() as store:
        emails = store.list_emails(user_id, category=category, starred=starred, search=search)
    display_emails(emails)


@cli.command()
@click.argument("user_id")
def stats(user_id: str) -> None:
    """Show email statistics for USER_ID."""
    with _email_store() as store:
        result = store.get_stats(user_id)
    display_stats(result)


@cli.command()
@click.argument("user_id")
@click.argument("record_id", type=int)
def star(user_id: str, record_id: int) -> None:
    """Toggle the starred flag of an email."""
    with _email_store() as store:
        email = store.toggle_star(user_id, record_id)
    if email is None:
        raise click.ClickException(f"Email {record_id} not found.")
    display_email_detail(email)


@cli.command()
@click.argument("user_id")
@click.argument("record_id", type=int)
def read(user_id: str, record_id: int) -> None:
    """Mark an email as read."""
    with _email_store() as store:
        email = store.mark_read(user_id, record_id)
    if email is None:
        raise click.ClickException(f"Email {record_id} not found.")
    display_email_detail(email)


@cli.command()
@click.argument("user_id")
@click.argument("record_id", type=int)
@click.argument("category", type=CATEGORY_CHOICE)
def recategorize(user_id: str, record_id: int, category: str) -> None:
    """Set the category of an email by hand."""
    with _email_store() as store:
        email = store.set_category(user_id, record_id, category)
    if email is None:
        raise click.ClickException(f"Email {record_id} not found.")
    display_email_detail(email)


@cli.command()
@click.argument("user_id")
@click.argument("record_id", type=int)
def delete(user_id: str, record_id: int) -> None:
    """Remove an email from the tracker."""
    with _email_store() as store:
        deleted = store.delete(user_id, record_id)
    if not deleted:
        raise click.ClickException(f"Email {record_id} not found.")
    console.print("[green]Email removed from tracker.[/green]")
