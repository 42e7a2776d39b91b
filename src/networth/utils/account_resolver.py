"""Utility for resolving account names to IDs."""

from networth.domain.account import AccountService
from networth.domain.errors import AccountNotFoundError


def resolve_account(account_service: AccountService, account: str | int) -> int:
    """Resolve account name or ID to account ID.

    Args:
        account_service: AccountService instance
        account: Account name (str) or ID (int or string representation of int)

    Returns:
        Account ID

    Raises:
        AccountNotFoundError: If account is not found
    """
    if isinstance(account, int):
        if account_service.get_account(account) is None:
            raise AccountNotFoundError(f"Account ID {account} not found")
        return account

    try:
        account_id = int(account)
    except (ValueError, TypeError):
        account_id = None

    if account_id is not None:
        if account_service.get_account(account_id) is None:
            raise AccountNotFoundError(f"Account ID {account_id} not found")
        return account_id

    found = account_service.get_account_by_name(account)
    if found is None:
        raise AccountNotFoundError(f"Account '{account}' not found")
    return found.id
