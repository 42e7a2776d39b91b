"""CSV import command."""

import click
from networth.cli.account_resolution import resolve_account_or_exit
from networth.cli.error_handling import handle_domain_error
from networth.domain.account import AccountService
from networth.domain.csv_import import CSVImportService
from networth.domain.errors import DomainError


@click.command("import")
@click.argument("csv_file", type=click.Path(exists=True))
@click.option("--account", required=True, help="Account name or ID")
@click.option("--show-errors/--hide-errors", default=True, help="List dropped rows")
@click.pass_context
def import_csv(ctx, csv_file: str, account: str, show_errors: bool):
    """Import a balance history from a CSV file.

    The file needs a 'date' (DD/MM/YYYY) column and a 'value' or 'balance'
    column; ',' and ';' delimiters are both accepted. Rows that cannot be
    parsed are dropped and reported.
    """
    db = ctx.obj["db"]
    account_id = resolve_account_or_exit(ctx, AccountService(db), account)
    service = CSVImportService(db)

    try:
        result = service.import_csv(csv_file_path=csv_file, account_id=account_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    except FileNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    click.echo("\nImport complete:")
    click.echo(f"  Imported: {result['imported']} rows ({result['days']} days)")
    click.echo(f"  Dropped: {result['dropped']} rows")
    if result["projection_updated"]:
        click.echo(f"  Current balance updated from {result['latest_date']:%d/%m/%Y}")
    else:
        click.echo("  Current balance unchanged (account has a newer reading)")
    if show_errors and result["errors"]:
        for error in result["errors"]:
            click.echo(f"    {error}", err=True)


def register_commands(cli):
    """Register import command with main CLI."""
    cli.add_command(import_csv)
