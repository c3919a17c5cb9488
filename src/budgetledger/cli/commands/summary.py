"""Summary commands."""

import click

from budgetledger.cli.date_filters import resolve_cli_period
from budgetledger.cli.error_handling import handle_domain_error
from budgetledger.domain.entities import CategoryBreakdown, TimePeriod
from budgetledger.domain.errors import DomainError
from budgetledger.domain.summary import SummaryService


def _display_breakdown(rows: tuple[CategoryBreakdown, ...]) -> None:
    click.echo(f"{'Category':<24} {'Budgeted':>12} {'Spent':>12} {'Remaining':>12}")
    click.echo("-" * 63)
    for row in rows:
        click.echo(
            f"{row.category:<24} {row.budgeted:>12,.2f} {row.spent:>12,.2f} "
            f"{row.remaining:>12,.2f}"
        )


@click.command("summary")
@click.pass_context
def summary(ctx):
    """Show this month's budget, spending and recent purchases."""
    service = SummaryService(ctx.obj["ledger"])
    try:
        overview = service.overview()
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Budget overview for {overview.year}-{overview.month:02d}")
    click.echo(f"  Budget:    ${overview.total_budgeted:,.2f}")
    click.echo(f"  Spent:     ${overview.total_spent:,.2f}")
    click.echo(f"  Remaining: ${overview.remaining:,.2f}")
    click.echo(f"  Purchases: {overview.transaction_count}")

    if overview.categories:
        click.echo()
        _display_breakdown(overview.categories)

    if overview.recent_entries:
        click.echo()
        click.echo("Recent purchases:")
        for entry in overview.recent_entries:
            click.echo(f"  {entry.date:%Y-%m-%d}  {entry.amount:>10,.2f}  {entry.category}")


@click.command("history")
@click.option(
    "--period",
    help="Period such as last-month, this-year, last-90-days (default: this-month)",
)
@click.option("--start-date", help="Start date (YYYY-MM-DD or relative like 'last month')")
@click.option("--end-date", help="End date (YYYY-MM-DD or relative like 'today')")
@click.pass_context
def history(ctx, period: str | None, start_date: str | None, end_date: str | None):
    """Compare budget and spending over a period, by category.

    Category budgets are the period budget split by each category's share
    of the most recent month's budget.
    """
    ledger = ctx.obj["ledger"]
    now = ledger.now()
    selected = resolve_cli_period(
        ctx,
        period=period,
        start_date=start_date,
        end_date=end_date,
        now=now,
        default=TimePeriod.THIS_MONTH,
    )

    try:
        report = SummaryService(ledger).history(selected, now)
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(
        f"History for {report.label} "
        f"({report.window.first_day} to {report.window.last_day})"
    )
    click.echo(f"  Budget:    ${report.total_budgeted:,.2f}")
    click.echo(f"  Spent:     ${report.total_spent:,.2f}")
    click.echo(f"  Remaining: ${report.remaining:,.2f}")
    if report.categories:
        click.echo()
        _display_breakdown(report.categories)


@click.command("stats")
@click.pass_context
def stats(ctx):
    """Show totals across all recorded data."""
    statistics = SummaryService(ctx.obj["ledger"]).statistics()
    click.echo(f"Purchases:   {statistics.total_entries}")
    click.echo(f"Budgets:     {statistics.total_allocations}")
    click.echo(f"Categories:  {statistics.categories_count}")
    click.echo(f"Total spent: ${statistics.total_spent:,.2f}")
    click.echo(f"Total budget: ${statistics.total_budgeted:,.2f}")
    click.echo(f"Utilization: {statistics.budget_utilization:.1f}%")
    if statistics.is_over_budget:
        click.echo("Spending exceeds the recorded budget.")


def register_commands(cli):
    """Register summary commands with main CLI."""
    cli.add_command(summary)
    cli.add_command(history)
    cli.add_command(stats)
