"""Rich-based display functions for Placement Inbox."""

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .models import Category, Credential, NormalizedEmail, SyncResult

console = Console()

_CATEGORY_COLORS = {
    Category.INTERVIEW: "cyan",
    Category.ASSESSMENT: "magenta",
    Category.OFFER: "green",
    Category.REJECTION: "red",
    Category.APPLICATION: "blue",
    Category.OTHER: "white",
}


def _category_label(category: Category) -> str:
    color = _CATEGORY_COLORS.get(category, "white")
    return f"[{color}]{category.value}[/{color}]"


def display_emails(emails: list[NormalizedEmail]) -> None:
    """Display stored emails, one row each."""
    if not emails:
        console.print("[dim]No emails found.[/dim]")
        return

    table = Table(title="Placement Emails")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Date")
    table.add_column("From")
    table.add_column("Subject")
    table.add_column("Category")
    table.add_column("Company")
    table.add_column("", justify="center")

    for email in emails:
        subject = escape(email.subject) if email.is_read else f"[bold]{escape(email.subject)}[/bold]"
        table.add_row(
            str(email.record_id),
            email.date.strftime("%Y-%m-%d"),
            escape(email.sender),
            subject,
            _category_label(email.category),
            email.company or "",
            "[yellow]*[/yellow]" if email.starred else "",
        )

    console.print(table)


def display_email_detail(email: NormalizedEmail) -> None:
    """Display a single stored email."""
    lines = [
        f"[bold]From:[/bold] {escape(email.sender)}",
        f"[bold]To:[/bold] {escape(email.recipient)}",
        f"[bold]Date:[/bold] {email.date.isoformat()}",
        f"[bold]Category:[/bold] {_category_label(email.category)}",
        f"[bold]Company:[/bold] {email.company or '-'}",
        f"[bold]Starred:[/bold] {'yes' if email.starred else 'no'}",
        f"[bold]Read:[/bold] {'yes' if email.is_read else 'no'}",
    ]
    console.print(Panel("\n".join(lines), title=escape(email.subject)))


def display_stats(stats: dict) -> None:
    """Display aggregate email statistics."""
    console.print(
        Panel(
            f"Total: {stats['total']}  |  Unread: {stats['unread']}  |  "
            f"Last 7 days: {stats['recent']}",
            title="Summary",
        )
    )

    table = Table(title="By Category")
    table.add_column("Category")
    table.add_column("Count", justify="right")
    for name, count in sorted(stats["by_category"].items(), key=lambda kv: -kv[1]):
        table.add_row(_category_label(Category(name)), str(count))
    console.print(table)

    if stats["by_company"]:
        table = Table(title="By Company")
        table.add_column("Company")
        table.add_column("Count", justify="right")
        for name, count in sorted(stats["by_company"].items(), key=lambda kv: -kv[1]):
            table.add_row(name, str(count))
        console.print(table)


def display_status(user_id: str, credential: Credential | None) -> None:
    """Display whether a user has a connected mailbox."""
    if credential is None or not credential.connected:
        console.print(f"[yellow]Gmail is not connected for {user_id}.[/yellow]")
        return
    console.print(f"[green]Connected[/green] as {credential.account_email}")


def display_sync_result(result: SyncResult) -> None:
    """Display a summary after a sync run."""
    color = "green" if result.skipped_count == 0 else "yellow"
    lines = [f"[bold {color}]Synced {result.ingested_count} placement-related emails.[/bold {color}]"]
    if result.skipped_count:
        lines.append(f"Skipped {result.skipped_count} emails that could not be stored.")
    console.print(Panel("\n".join(lines), title="Sync"))
