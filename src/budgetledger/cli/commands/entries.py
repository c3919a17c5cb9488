"""Purchase entry commands."""

from dataclasses import replace
from datetime import datetime, time

import click

from budgetledger.cli.date_filters import resolve_cli_period
from budgetledger.cli.error_handling import handle_domain_error
from budgetledger.domain import time_window
from budgetledger.domain.entities import PurchaseEntry, new_id
from budgetledger.domain.errors import DomainError, PersistenceError, entry_not_found
from budgetledger.utils.amount_parser import parse_amount
from budgetledger.utils.date_parser import parse_date


def _parse_entry_date(ctx, value: str, now: datetime) -> datetime:
    try:
        day = parse_date(value, today=now.date())
    except ValueError as e:
        click.echo(f"Error: Invalid date format: {e}", err=True)
        ctx.exit(1)
    if day == now.date():
        return now
    return datetime.combine(day, time.min)


@click.command("add")
@click.option("--amount", required=True, help="Purchase amount (e.g., 12.50)")
@click.option("--category", required=True, help="Category name")
@click.option(
    "--date",
    "date_str",
    default="today",
    show_default=True,
    help="Purchase date (YYYY-MM-DD or relative like 'today', 'yesterday')",
)
@click.option("--note", help="Optional note")
@click.pass_context
def add_entry(ctx, amount: str, category: str, date_str: str, note: str | None):
    """Record a purchase.

    Examples:
        budgetledger add --amount 42.10 --category Groceries
        budgetledger add --amount 9.99 --category Books --date 2024-07-03 --note "Paperback"
    """
    ledger = ctx.obj["ledger"]

    try:
        entry_amount = parse_amount(amount)
    except ValueError as e:
        click.echo(f"Error: Invalid amount format: {e}", err=True)
        ctx.exit(1)

    entry_date = _parse_entry_date(ctx, date_str, ledger.now())

    try:
        entry = ledger.add_entry(
            PurchaseEntry(
                id=new_id(),
                amount=entry_amount,
                category=category,
                date=entry_date,
                note=note,
            )
        )
    except (DomainError, PersistenceError) as e:
        handle_domain_error(ctx, e)

    click.echo(f"Added purchase {entry.id}")
    click.echo(f"  Date: {entry.date:%Y-%m-%d}")
    click.echo(f"  Amount: ${entry.amount:,.2f}")
    click.echo(f"  Category: {entry.category}")
    if entry.note:
        click.echo(f"  Note: {entry.note}")


@click.command("edit")
@click.argument("entry_id")
@click.option("--amount", help="New amount")
@click.option("--category", help="New category")
@click.option("--date", "date_str", help="New date")
@click.option("--note", help="New note, or empty string to clear")
@click.pass_context
def edit_entry(
    ctx,
    entry_id: str,
    amount: str | None,
    category: str | None,
    date_str: str | None,
    note: str | None,
):
    """Change fields of an existing purchase."""
    ledger = ctx.obj["ledger"]
    entry = ledger.get_entry(entry_id)
    if entry is None:
        click.echo(f"Error: {entry_not_found(entry_id)}", err=True)
        ctx.exit(1)

    changes = {}
    if amount is not None:
        try:
            changes["amount"] = parse_amount(amount)
        except ValueError as e:
            click.echo(f"Error: Invalid amount format: {e}", err=True)
            ctx.exit(1)
    if category is not None:
        changes["category"] = category
    if date_str is not None:
        changes["date"] = _parse_entry_date(ctx, date_str, ledger.now())
    if note is not None:
        changes["note"] = note or None

    if not changes:
        click.echo("Nothing to change.")
        return

    try:
        ledger.update_entry(replace(entry, **changes))
    except (DomainError, PersistenceError) as e:
        handle_domain_error(ctx, e)
    click.echo(f"Updated purchase {entry_id}")


@click.command("delete")
@click.argument("entry_id")
@click.option("--yes", is_flag=True, help="Skip confirmation")
@click.pass_context
def delete_entry(ctx, entry_id: str, yes: bool):
    """Delete a purchase."""
    ledger = ctx.obj["ledger"]
    entry = ledger.get_entry(entry_id)
    if entry is None:
        click.echo(f"Error: {entry_not_found(entry_id)}", err=True)
        ctx.exit(1)

    if not yes and not click.confirm(
        f"Delete ${entry.amount:,.2f} {entry.category} purchase from {entry.date:%Y-%m-%d}?"
    ):
        click.echo("Cancelled.")
        return

    try:
        ledger.delete_entry(entry_id)
    except PersistenceError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted purchase {entry_id}")


@click.command("entries")
@click.option("--period", help="Period such as this-month, last-week, last-14-days")
@click.option("--start-date", help="Start date (YYYY-MM-DD or relative like 'last month')")
@click.option("--end-date", help="End date (YYYY-MM-DD or relative like 'today')")
@click.option("--category", help="Only show this category")
@click.pass_context
def list_entries(
    ctx,
    period: str | None,
    start_date: str | None,
    end_date: str | None,
    category: str | None,
):
    """List purchases, oldest first."""
    ledger = ctx.obj["ledger"]
    now = ledger.now()
    selected = resolve_cli_period(
        ctx, period=period, start_date=start_date, end_date=end_date, now=now
    )
    window = time_window.resolve(selected, now)
    entries = ledger.entries_in_window(window, category)

    if not entries:
        click.echo("No purchases found.")
        return

    click.echo(f"{'Date':<12} {'Amount':>12}  {'Category':<20} {'ID':<32}  Note")
    click.echo("-" * 90)
    for entry in entries:
        click.echo(
            f"{entry.date:%Y-%m-%d}   {entry.amount:>12,.2f}  {entry.category:<20} "
            f"{entry.id:<32}  {entry.note or ''}"
        )
    total = sum(e.amount for e in entries)
    click.echo("-" * 90)
    click.echo(f"{len(entries)} purchases, total ${total:,.2f}")


def register_commands(cli):
    """Register purchase entry commands with main CLI."""
    cli.add_command(add_entry)
    cli.add_command(edit_entry)
    cli.add_command(delete_entry)
    cli.add_command(list_entries)
