"""CLI helpers for account resolution."""

from __future__ import annotations

import click
from networth.domain.account import AccountService
from networth.domain.errors import AccountNotFoundError
from networth.utils.account_resolver import resolve_account


def resolve_account_or_exit(
    ctx: click.Context, account_service: AccountService, account: str | int
) -> int:
    """Resolve account name or ID, or exit with a CLI error."""
    try:
        return resolve_account(account_service, account)
    except AccountNotFoundError as exc:
        click.echo(f"Error: {exc}", err=True)
        ctx.exit(1)
