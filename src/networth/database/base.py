"""Abstract database interface."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Optional
from datetime import date

from sqlalchemy.orm import Session

# Import entities directly to avoid circular import through the services
from networth.domain.entities import (
    Account,
    AccountKind,
    CardMapping,
    LedgerEntry,
    Movement,
)


class Database(ABC):
    """Abstract database interface for networth."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    @abstractmethod
    def transaction(self) -> AbstractContextManager[Session]:
        """Open one all-or-nothing unit of work.

        The session commits when the block exits normally and rolls back when
        it raises. Reconciliation reads and writes for one account happen
        inside a single such block.
        """
        pass

    # Account operations
    @abstractmethod
    def create_account(self, name: str, kind: AccountKind, account_type: Optional[str] = None) -> int:
        """Create a new account with a zero balance. Returns account ID."""
        pass

    @abstractmethod
    def get_account(self, account_id: int) -> Optional[Account]:
        """Get account by ID."""
        pass

    @abstractmethod
    def get_account_by_name(self, name: str) -> Optional[Account]:
        """Get account by exact name."""
        pass

    @abstractmethod
    def list_accounts(self, kind: Optional[AccountKind] = None) -> list[Account]:
        """List accounts, optionally filtered by kind."""
        pass

    # Card mapping operations
    @abstractmethod
    def set_card_mapping(self, card_identifier: str, account_id: int) -> None:
        """Bind a card identifier to an account, replacing any prior binding."""
        pass

    @abstractmethod
    def get_card_mapping(self, card_identifier: str) -> Optional[CardMapping]:
        """Get the explicit binding for a card identifier."""
        pass

    @abstractmethod
    def list_card_mappings(self) -> list[CardMapping]:
        """List all card mappings."""
        pass

    # Ledger and movement reads
    @abstractmethod
    def list_ledger_entries(
        self,
        account_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[LedgerEntry]:
        """List day-bucket ledger entries, oldest first."""
        pass

    @abstractmethod
    def list_movements(self, account_id: int) -> list[Movement]:
        """List an account's movement log, newest first."""
        pass
