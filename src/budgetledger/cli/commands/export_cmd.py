"""CSV export command."""

from pathlib import Path

import click

from budgetledger.cli.date_filters import resolve_cli_period
from budgetledger.cli.error_handling import handle_domain_error
from budgetledger.domain.csv_export import CSVExportService
from budgetledger.domain.entities import ExportConfiguration, ExportType, TimePeriod
from budgetledger.domain.errors import DomainError
from budgetledger.domain.jobs import JobRunner


@click.command("export")
@click.option(
    "--type",
    "export_type",
    type=click.Choice([t.value for t in ExportType]),
    default=ExportType.ENTRIES.value,
    show_default=True,
    help="What to export",
)
@click.option("--period", help="Period such as this-month, last-year (default: all-time)")
@click.option("--start-date", help="Start date (YYYY-MM-DD or relative like 'last month')")
@click.option("--end-date", help="End date (YYYY-MM-DD or relative like 'today')")
@click.option("--category", "categories", multiple=True, help="Only export this category")
@click.option("--currency-symbol", help="Prefix amounts with this symbol, e.g. '$'")
@click.option("--decimal-places", type=int, default=2, show_default=True)
@click.option("--date-format", default="%Y-%m-%d", show_default=True, help="strftime format")
@click.option("--no-headers", is_flag=True, help="Omit header rows")
@click.option("--encoding", default="utf-8", show_default=True)
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    help="File or directory to write; prints to stdout when omitted",
)
@click.pass_context
def export_csv(
    ctx,
    export_type: str,
    period: str | None,
    start_date: str | None,
    end_date: str | None,
    categories: tuple[str, ...],
    currency_symbol: str | None,
    decimal_places: int,
    date_format: str,
    no_headers: bool,
    encoding: str,
    output: str | None,
):
    """Export purchases and/or budgets as CSV.

    The output uses the same columns the import commands read.

    Examples:
        budgetledger export --period last-month -o ~/exports
        budgetledger export --type combined --start-date 2024-01-01 --end-date 2024-06-30
    """
    ledger = ctx.obj["ledger"]
    now = ledger.now()
    selected = resolve_cli_period(
        ctx,
        period=period,
        start_date=start_date,
        end_date=end_date,
        now=now,
        default=TimePeriod.ALL_TIME,
    )
    config = ExportConfiguration(
        period=selected,
        export_type=ExportType(export_type),
        include_currency_symbol=currency_symbol is not None,
        currency_symbol=currency_symbol or "$",
        date_format=date_format,
        decimal_places=decimal_places,
        include_headers=not no_headers,
        encoding=encoding,
        categories=frozenset(categories) if categories else None,
    )
    service = CSVExportService(ledger)

    with JobRunner(max_workers=1) as runner:
        if output is None:
            future = runner.submit(service.export, config, now)
        else:
            future = runner.submit(service.export_to_file, Path(output).expanduser(), config, now)
        try:
            result = future.result()
        except (DomainError, OSError) as e:
            handle_domain_error(ctx, e)

    if output is None:
        click.echo(result, nl=False)
    else:
        click.echo(f"Exported to {result}")


def register_commands(cli):
    """Register export command with main CLI."""
    cli.add_command(export_csv)
