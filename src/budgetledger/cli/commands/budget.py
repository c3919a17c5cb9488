"""Monthly budget commands."""

import click

from budgetledger.cli.error_handling import handle_domain_error
from budgetledger.domain.categories import category_key
from budgetledger.domain.entities import MonthlyBudgetAllocation, new_id
from budgetledger.domain.errors import DomainError, PersistenceError
from budgetledger.utils.amount_parser import parse_amount


def _month_and_year(ledger, month: int | None, year: int | None) -> tuple[int, int]:
    now = ledger.now()
    return month or now.month, year or now.year


@click.group()
def budget():
    """Manage monthly category budgets."""
    pass


@budget.command("set")
@click.argument("category")
@click.argument("amount")
@click.option("--month", type=click.IntRange(1, 12), help="Month (defaults to current)")
@click.option("--year", type=int, help="Year (defaults to current)")
@click.pass_context
def set_budget(ctx, category: str, amount: str, month: int | None, year: int | None):
    """Set the budget of CATEGORY for a month.

    Setting a budget that already exists replaces its amount.

    Examples:
        budgetledger budget set Groceries 500
        budgetledger budget set Rent 1200 --month 1 --year 2025
    """
    ledger = ctx.obj["ledger"]
    month, year = _month_and_year(ledger, month, year)

    try:
        budget_amount = parse_amount(amount)
    except ValueError as e:
        click.echo(f"Error: Invalid amount format: {e}", err=True)
        ctx.exit(1)

    try:
        allocation = ledger.upsert_allocation(
            MonthlyBudgetAllocation(
                id=new_id(),
                category=category,
                amount=budget_amount,
                month=month,
                year=year,
            )
        )
    except (DomainError, PersistenceError) as e:
        handle_domain_error(ctx, e)

    click.echo(
        f"Budget for '{allocation.category}' in {year}-{month:02d}: "
        f"${allocation.amount:,.2f}"
    )


@budget.command("delete")
@click.argument("category")
@click.option("--month", type=click.IntRange(1, 12), help="Month (defaults to current)")
@click.option("--year", type=int, help="Year (defaults to current)")
@click.option("--yes", is_flag=True, help="Skip confirmation")
@click.pass_context
def delete_budget(ctx, category: str, month: int | None, year: int | None, yes: bool):
    """Delete a category's budget for a month.

    Every purchase in the category, from any month, moves to
    'Uncategorized'.
    """
    ledger = ctx.obj["ledger"]
    month, year = _month_and_year(ledger, month, year)

    if not yes and not click.confirm(
        f"Delete '{category}' for {year}-{month:02d} and uncategorize all of its purchases?"
    ):
        click.echo("Cancelled.")
        return

    try:
        relabeled = ledger.delete_category(category, month, year)
    except (DomainError, PersistenceError) as e:
        handle_domain_error(ctx, e)

    click.echo(f"Deleted '{category}' for {year}-{month:02d}")
    click.echo(f"  Purchases moved to Uncategorized: {relabeled}")


@budget.command("show")
@click.option("--month", type=click.IntRange(1, 12), help="Month (defaults to current)")
@click.option("--year", type=int, help="Year (defaults to current)")
@click.pass_context
def show_budget(ctx, month: int | None, year: int | None):
    """Show budgets for a month."""
    ledger = ctx.obj["ledger"]
    month, year = _month_and_year(ledger, month, year)
    allocations = sorted(
        ledger.allocations_for_month(month, year), key=lambda a: category_key(a.category)
    )

    if not allocations:
        click.echo(f"No budgets for {year}-{month:02d}.")
        return

    click.echo(f"Budgets for {year}-{month:02d}")
    click.echo("-" * 44)
    for allocation in allocations:
        marker = " (historical)" if allocation.is_historical else ""
        click.echo(f"{allocation.category:<24} {allocation.amount:>12,.2f}{marker}")
    click.echo("-" * 44)
    total = sum(a.amount for a in allocations)
    click.echo(f"{'Total':<24} {total:>12,.2f}")


def register_commands(cli):
    """Register budget commands with main CLI."""
    cli.add_command(budget)
