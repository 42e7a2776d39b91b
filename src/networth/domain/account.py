"""Account domain service."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from networth.database.base import Database
from networth.domain.entities import ACCOUNT_TYPES, Account as AccountEntity, AccountKind, ObservationBatchResult
from networth.domain.errors import NotFoundError, ValidationError, account_not_found
from networth.domain.reconciler import BalanceReconciler
from networth.utils.date_parser import utc_now

logger = logging.getLogger(__name__)


class AccountService:
    """Service for managing accounts and their card bindings."""

    def __init__(self, db: Database, reconciler: Optional[BalanceReconciler] = None):
        """Initialize account service.

        Args:
            db: Database instance
            reconciler: Reconciler used for manual balance entries
        """
        self.db = db
        self.reconciler = reconciler or BalanceReconciler(db)

    def create_account(self, name: str, kind: AccountKind | str, account_type: Optional[str] = None) -> int:
        """Create a new account.

        Args:
            name: Account name
            kind: Bank, Debt or Asset
            account_type: Debt type (Credit Card, Mortgage) or asset type (House, Car)

        Returns:
            Account ID

        Raises:
            ValidationError: If kind or type is not recognized
            ConflictError: If account name already exists
        """
        try:
            kind = AccountKind(kind)
        except ValueError:
            raise ValidationError(
                f"Unknown account kind '{kind}'. Expected one of: "
                f"{', '.join(k.value for k in AccountKind)}"
            )

        allowed = ACCOUNT_TYPES[kind]
        if account_type is not None and account_type not in allowed:
            if allowed:
                raise ValidationError(
                    f"Unknown {kind.value} type '{account_type}'. Expected one of: {', '.join(allowed)}"
                )
            raise ValidationError(f"{kind.value} accounts do not take a type")

        return self.db.create_account(name=name, kind=kind, account_type=account_type)

    def get_account(self, account_id: int) -> Optional[AccountEntity]:
        """Get account by ID."""
        return self.db.get_account(account_id)

    def get_account_by_name(self, name: str) -> Optional[AccountEntity]:
        """Get account by exact name."""
        return self.db.get_account_by_name(name)

    def list_accounts(self, kind: Optional[AccountKind] = None) -> list[AccountEntity]:
        """List accounts, optionally filtered by kind."""
        return self.db.list_accounts(kind=kind)

    def set_balance(
        self, account_id: int, balance: Decimal, timestamp: Optional[datetime] = None
    ) -> ObservationBatchResult:
        """Record a manually entered balance (or asset value).

        Args:
            account_id: Account ID
            balance: Observed balance
            timestamp: When it was observed (defaults to now)
        """
        return self.reconciler.apply_observation(account_id, balance, timestamp or utc_now())

    def map_card(self, card_identifier: str, account_id: int) -> None:
        """Bind a card identifier to an account."""
        card_identifier = card_identifier.strip()
        if not card_identifier:
            raise ValidationError("Card identifier cannot be empty")
        if self.db.get_account(account_id) is None:
            raise NotFoundError(account_not_found(account_id))
        self.db.set_card_mapping(card_identifier, account_id)

    def find_account_for_card(self, card_identifier: str) -> Optional[AccountEntity]:
        """Find the account an extraction rule's card identifier refers to.

        An explicit card mapping wins. Otherwise the first account (by name)
        whose name contains the identifier, case-insensitively, is used; this
        fallback relies on account names carrying a card number fragment.

        Returns:
            Account entity or None if nothing matches
        """
        mapping = self.db.get_card_mapping(card_identifier)
        if mapping is not None:
            account = self.db.get_account(mapping.account_id)
            if account is not None:
                return account
            logger.warning(
                f"Card mapping for '{card_identifier}' points at missing account {mapping.account_id}"
            )

        needle = card_identifier.strip().lower()
        if not needle:
            return None
        for account in self.db.list_accounts():
            if needle in account.name.lower():
                logger.debug(f"Card '{card_identifier}' bound to '{account.name}' by name match")
                return account
        return None
