"""Reset command."""

import click

from budgetledger.cli.error_handling import handle_domain_error
from budgetledger.domain.errors import PersistenceError


@click.command("reset")
@click.option("--yes", is_flag=True, help="Confirm deleting all data")
@click.pass_context
def reset(ctx, yes: bool):
    """Delete every purchase and budget."""
    if not yes:
        click.echo("Error: This deletes all data. Re-run with --yes to confirm.", err=True)
        ctx.exit(1)

    try:
        ctx.obj["ledger"].reset_all()
    except PersistenceError as e:
        handle_domain_error(ctx, e)
    click.echo("All purchases and budgets deleted.")


def register_commands(cli):
    """Register reset command with main CLI."""
    cli.add_command(reset)
