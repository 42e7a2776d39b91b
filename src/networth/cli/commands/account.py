"""Account management commands."""

import click
from networth.cli.account_resolution import resolve_account_or_exit
from networth.cli.error_handling import handle_domain_error
from networth.domain.account import AccountService
from networth.domain.entities import AccountKind
from networth.domain.errors import DomainError
from networth.utils.amount_parser import parse_localized_amount
from networth.utils.date_parser import parse_date, start_of_day


@click.group()
def account_group():
    """Manage accounts."""
    pass


@account_group.command("create")
@click.argument("name", metavar="ACCOUNT_NAME")
@click.option(
    "--kind",
    type=click.Choice([k.value for k in AccountKind], case_sensitive=False),
    default=AccountKind.BANK.value,
    show_default=True,
    help="What the account represents",
)
@click.option("--type", "account_type", help="Debt type (Credit Card, Mortgage) or asset type (House, Car)")
@click.pass_context
def create_account(ctx, name: str, kind: str, account_type: str | None):
    """Create a new account.

    Include the card's last digits in a bank account's name (or use
    'account map-card') so notification emails can be matched to it.

    Examples:
        networth account create "Santander 1234"
        networth account create "Visa" --kind Debt --type "Credit Card"
        networth account create "Flat" --kind Asset --type House
    """
    db = ctx.obj["db"]
    service = AccountService(db)

    kind = next(k for k in AccountKind if k.value.lower() == kind.lower())
    try:
        account_id = service.create_account(name=name, kind=kind, account_type=account_type)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created {kind.value} account '{name}' (ID: {account_id})")


@account_group.command("list")
@click.option(
    "--kind",
    type=click.Choice([k.value for k in AccountKind], case_sensitive=False),
    help="Only list accounts of this kind",
)
@click.pass_context
def list_accounts(ctx, kind: str | None):
    """List all accounts with their current balances."""
    db = ctx.obj["db"]
    service = AccountService(db)

    kind_filter = next((k for k in AccountKind if kind and k.value.lower() == kind.lower()), None)
    accounts = service.list_accounts(kind=kind_filter)
    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\nAccounts:")
    click.echo("-" * 80)
    for acc in accounts:
        updated = acc.last_updated.strftime("%d/%m/%Y %H:%M") if acc.last_updated else "never"
        kind_label = f"{acc.kind.value} ({acc.type})" if acc.type else acc.kind.value
        click.echo(
            f"ID: {acc.id:3d} | {acc.name:20s} | {kind_label:20s} | "
            f"{acc.balance:>14,.2f} | Updated: {updated}"
        )


@account_group.command("set-balance")
@click.argument("account", metavar="ACCOUNT")
@click.argument("balance", metavar="BALANCE")
@click.option("--date", "on_date", help="Date of the reading (defaults to now)")
@click.pass_context
def set_balance(ctx, account: str, balance: str, on_date: str | None) -> None:
    """Record a balance (or asset value) for an account.

    ACCOUNT can be an account name or ID. BALANCE accepts "1.234,56" or
    "1234.56". A dated reading older than the account's last update is
    kept in the history without changing the current balance.

    Examples:
        networth account set-balance "Flat" 115.000,00
        networth account set-balance 2 1500.50 --date 01/03/2024
    """
    db = ctx.obj["db"]
    service = AccountService(db)
    account_id = resolve_account_or_exit(ctx, service, account)

    try:
        amount = parse_localized_amount(balance)
        timestamp = start_of_day(parse_date(on_date)) if on_date else None
        result = service.set_balance(account_id, amount, timestamp)
    except DomainError as e:
        handle_domain_error(ctx, e)
    except ValueError as e:
        click.echo(f"Error: Invalid date: {e}", err=True)
        ctx.exit(1)

    if result.projection_updated:
        click.echo(f"Balance set to {amount:,.2f}")
    else:
        click.echo(f"Recorded {amount:,.2f} in history; current balance unchanged (newer reading exists)")


@account_group.command("map-card")
@click.argument("card_identifier", metavar="CARD")
@click.argument("account", metavar="ACCOUNT")
@click.pass_context
def map_card(ctx, card_identifier: str, account: str) -> None:
    """Bind a card identifier used by extraction rules to an account.

    Examples:
        networth account map-card 1234 "Santander Checking"
    """
    db = ctx.obj["db"]
    service = AccountService(db)
    account_id = resolve_account_or_exit(ctx, service, account)

    try:
        service.map_card(card_identifier, account_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Card '{card_identifier.strip()}' mapped to account {account_id}")


@account_group.command("cards")
@click.pass_context
def list_cards(ctx) -> None:
    """List card mappings."""
    db = ctx.obj["db"]
    mappings = db.list_card_mappings()
    if not mappings:
        click.echo("No card mappings found.")
        return

    names = {acc.id: acc.name for acc in db.list_accounts()}
    for mapping in mappings:
        click.echo(f"{mapping.card_identifier:12s} -> {names.get(mapping.account_id, 'Unknown')} (ID: {mapping.account_id})")


def register_commands(cli):
    """Register account commands with main CLI."""
    cli.add_command(account_group, name="account")
