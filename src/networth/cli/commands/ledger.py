"""Ledger history and movement viewing commands."""

import click
from networth.cli.account_resolution import resolve_account_or_exit
from networth.cli.date_filters import period_options, resolve_cli_date_range
from networth.domain.account import AccountService


@click.command("ledger")
@click.argument("account", metavar="ACCOUNT")
@period_options
@click.pass_context
def view_ledger(ctx, account: str, start_date: str | None, end_date: str | None, **period_flags):
    """View an account's daily balance history.

    ACCOUNT can be an account name or ID. Entries marked with '*' came from
    email ingestion.

    Examples:
        networth ledger "Santander 1234" --last-month
        networth ledger 2 --start-date 01/01/2024 --end-date 31/03/2024
    """
    db = ctx.obj["db"]
    account_service = AccountService(db)
    account_id = resolve_account_or_exit(ctx, account_service, account)
    start, end = resolve_cli_date_range(
        ctx, start_date=start_date, end_date=end_date, period_flags=period_flags
    )

    entries = db.list_ledger_entries(account_id=account_id, start_date=start, end_date=end)
    if not entries:
        click.echo("No ledger entries found.")
        return

    name = account_service.get_account(account_id).name
    click.echo(f"\nBalance history for '{name}' ({len(entries)} day(s)):")
    click.echo("-" * 50)
    click.echo(f"{'Date':<12} {'Balance':>16}  {'Recorded':<17}")
    click.echo("-" * 50)
    for entry in entries:
        marker = "*" if entry.is_auto_import else " "
        click.echo(
            f"{entry.day:%d/%m/%Y}   {entry.balance:>16,.2f}{marker} {entry.timestamp:%d/%m/%Y %H:%M}"
        )


@click.command("movements")
@click.argument("account", metavar="ACCOUNT")
@click.pass_context
def view_movements(ctx, account: str):
    """View an account's most recent ingested transactions.

    ACCOUNT can be an account name or ID.
    """
    db = ctx.obj["db"]
    account_id = resolve_account_or_exit(ctx, AccountService(db), account)

    movements = db.list_movements(account_id)
    if not movements:
        click.echo("No movements found.")
        return

    click.echo(f"\nFound {len(movements)} movement(s):")
    click.echo("-" * 100)
    click.echo(f"{'Date':<17} {'Amount':>12} {'Cur':<4} {'Category':<15} {'Description':<40}")
    click.echo("-" * 100)
    for movement in movements:
        click.echo(
            f"{movement.timestamp:%d/%m/%Y %H:%M} {movement.amount:>12,.2f} {movement.currency:<4} "
            f"{(movement.category or ''):<15} {movement.description[:40]:<40}"
        )


def register_commands(cli):
    """Register ledger commands with main CLI."""
    cli.add_command(view_ledger)
    cli.add_command(view_movements)
