"""CLI error handling helpers."""

import click

from budgetledger.domain.errors import DomainError, PersistenceError


def handle_domain_error(
    ctx: click.Context, error: DomainError | PersistenceError | OSError
) -> None:
    """Render a domain error and exit with failure."""
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)
