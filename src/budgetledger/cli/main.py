"""Main CLI entry point."""

import click

from budgetledger.bootstrap import open_ledger
from budgetledger.database.factories import DB_PATH_ENV, create_sqlite_database
from budgetledger.domain.errors import PersistenceError
from budgetledger.logging_setup import LOG_LEVEL_ENV, configure_logging

# Import and register all commands at module level
from budgetledger.cli.commands import (
    entries,
    budget,
    summary,
    import_cmd,
    export_cmd,
    reset,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help=f"Path to database file (overrides {DB_PATH_ENV} environment variable)",
    envvar=DB_PATH_ENV,
)
@click.option(
    "--log-level",
    help=f"Log level such as INFO or DEBUG (overrides {LOG_LEVEL_ENV})",
    envvar=LOG_LEVEL_ENV,
)
@click.pass_context
def cli(ctx, db_path: str | None, log_level: str | None):
    """Budget ledger - Track purchases against monthly budgets.

    Budgets roll forward automatically at the start of each month, and
    budgets and purchases can be moved in and out as CSV files.
    """
    ctx.ensure_object(dict)
    configure_logging(log_level)

    # Open the ledger only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        try:
            db = create_sqlite_database(database_path=db_path)
            ledger = open_ledger(db, clock=ctx.obj.get("clock"))
        except PersistenceError as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(1)
        ctx.call_on_close(db.disconnect)
        ctx.obj["db"] = db
        ctx.obj["ledger"] = ledger


# Register all commands
entries.register_commands(cli)
budget.register_commands(cli)
summary.register_commands(cli)
import_cmd.register_commands(cli)
export_cmd.register_commands(cli)
reset.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
