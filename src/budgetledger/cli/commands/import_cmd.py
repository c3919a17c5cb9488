"""CSV import commands."""

import click

from budgetledger.cli.error_handling import handle_domain_error
from budgetledger.domain.categories import category_key
from budgetledger.domain.csv_import import CSVImportService
from budgetledger.domain.entities import CategoryMapping, ImportResult, ImportSchema
from budgetledger.domain.errors import DomainError, EmptyFileError, PersistenceError
from budgetledger.domain.jobs import JobRunner
from budgetledger.utils.amount_parser import parse_amount


def _split_pair(ctx, option: str, value: str) -> tuple[str, str]:
    source, sep, target = value.partition("=")
    if not sep or not source.strip() or not target.strip():
        click.echo(f"Error: {option} expects NAME=VALUE, got '{value}'", err=True)
        ctx.exit(1)
    return source.strip(), target.strip()


def _build_mapping(
    ctx,
    result: ImportResult,
    maps: tuple[str, ...],
    create_new: bool,
    new_budgets: tuple[str, ...],
) -> CategoryMapping:
    mapping = CategoryMapping()
    for value in maps:
        source, target = _split_pair(ctx, "--map", value)
        mapping.map_to(source, target)

    for value in new_budgets:
        category, amount_str = _split_pair(ctx, "--new-budget", value)
        try:
            amount = parse_amount(amount_str)
        except ValueError as e:
            click.echo(f"Error: Invalid amount for '{category}': {e}", err=True)
            ctx.exit(1)
        if category_key(category) in {category_key(s) for s in mapping.targets}:
            mapping.budgets[category] = amount
        else:
            mapping.create(category, amount)

    if create_new:
        mapped = {category_key(source) for source in mapping.targets}
        for name in sorted(result.new_categories):
            if category_key(name) not in mapped:
                mapping.create(name)

    return mapping


def _run_import(
    ctx,
    csv_file: str,
    schema: ImportSchema,
    maps: tuple[str, ...],
    create_new: bool,
    new_budgets: tuple[str, ...],
) -> None:
    service = CSVImportService(ctx.obj["ledger"])

    try:
        result = service.parse(service.read_file(csv_file), schema)
    except EmptyFileError as e:
        for warning in e.warnings:
            click.echo(f"  {warning}", err=True)
        handle_domain_error(ctx, e)
    except (DomainError, FileNotFoundError) as e:
        handle_domain_error(ctx, e)

    click.echo(f"Parsed {len(result.rows)} rows totaling ${result.total_amount:,.2f}")
    if result.needs_mapping:
        click.echo(f"New categories: {', '.join(sorted(result.new_categories))}")

    mapping = _build_mapping(ctx, result, maps, create_new, new_budgets)

    with JobRunner(max_workers=1) as runner:
        future = runner.submit(service.commit, result, mapping)
        try:
            report = future.result()
        except (DomainError, PersistenceError) as e:
            if result.needs_mapping:
                click.echo(
                    "Use --map SOURCE=EXISTING or --create-new to resolve new categories.",
                    err=True,
                )
            handle_domain_error(ctx, e)

    click.echo("\nImport complete:")
    click.echo(f"  Imported: {report.imported} rows")
    if report.created_categories:
        click.echo(f"  New categories: {', '.join(report.created_categories)}")

    if result.has_warnings:
        click.echo(f"  Import completed with {len(result.warnings)} warnings")
        for warning in result.warnings:
            click.echo(f"    {warning}", err=True)

    if report.failures:
        click.echo(f"  Failed: {len(report.failures)} rows", err=True)
        for failure in report.failures:
            click.echo(f"    Row {failure.row_number}: {failure.message}", err=True)
        ctx.exit(1)


def _import_options(command):
    command = click.option(
        "--new-budget",
        "new_budgets",
        multiple=True,
        help="Starting monthly budget for a new category, as CATEGORY=AMOUNT",
    )(command)
    command = click.option(
        "--create-new",
        is_flag=True,
        help="Create every unmapped new category as-is",
    )(command)
    command = click.option(
        "--map",
        "maps",
        multiple=True,
        help="Map an imported category to another, as SOURCE=TARGET",
    )(command)
    return click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))(command)


@click.group("import")
def import_group():
    """Import budgets or purchases from a CSV file."""
    pass


@import_group.command("budgets")
@_import_options
@click.pass_context
def import_budgets(ctx, csv_file: str, maps, create_new: bool, new_budgets):
    """Import monthly budgets (Year,Month,Category,Amount,IsHistorical).

    A budget that already exists for the same category and month is
    replaced; within one file the last row wins.
    """
    _run_import(ctx, csv_file, ImportSchema.BUDGETS, maps, create_new, new_budgets)


@import_group.command("purchases")
@_import_options
@click.pass_context
def import_purchases(ctx, csv_file: str, maps, create_new: bool, new_budgets):
    """Import purchases (Date,Amount,Category,Note).

    Examples:
        budgetledger import purchases bank.csv --create-new
        budgetledger import purchases bank.csv --map Food=Groceries
    """
    _run_import(ctx, csv_file, ImportSchema.PURCHASES, maps, create_new, new_budgets)


def register_commands(cli):
    """Register import commands with main CLI."""
    cli.add_command(import_group)
