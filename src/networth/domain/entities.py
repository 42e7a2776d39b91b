"""Domain model entities for networth.

These are pure data classes representing business concepts, independent of
database schema. Amounts are Decimals rounded to cents; timestamps are naive
UTC datetimes.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional


class AccountKind(str, Enum):
    """What an account represents in the net-worth total."""

    BANK = "Bank"
    DEBT = "Debt"
    ASSET = "Asset"


ACCOUNT_TYPES: dict[AccountKind, tuple[str, ...]] = {
    AccountKind.BANK: (),
    AccountKind.DEBT: ("Credit Card", "Mortgage"),
    AccountKind.ASSET: ("House", "Car"),
}


@dataclass(frozen=True)
class Account:
    """Bank, debt or asset account.

    ``balance`` is the denormalized current amount (the value, for assets).
    """

    id: int
    name: str
    kind: AccountKind
    type: Optional[str]
    balance: Decimal
    last_updated: Optional[datetime]
    created_at: datetime


@dataclass(frozen=True)
class LedgerEntry:
    """Day-bucketed balance snapshot; at most one per account per day."""

    id: int
    account_id: int
    day: date
    balance: Decimal
    timestamp: datetime
    is_auto_import: bool


@dataclass(frozen=True)
class Movement:
    """Recent-activity record kept in an account's capped movement log."""

    transaction_id: str
    amount: Decimal
    currency: str
    description: str
    timestamp: datetime
    category: Optional[str] = None


@dataclass(frozen=True)
class CardMapping:
    """Explicit binding of a card identifier to an account."""

    card_identifier: str
    account_id: int


@dataclass(frozen=True)
class ExtractionRule:
    """Declarative rule for pulling a transaction out of a notification email."""

    card_identifier: str
    search_query: str
    amount_pattern: str
    merchant_pattern: Optional[str]
    operation_label: str
    currency: str = "EUR"
    category: Optional[str] = None


@dataclass(frozen=True)
class TransactionCandidate:
    """Transaction extracted from one source message, not persisted directly."""

    source_message_id: str
    extracted_amount: Decimal
    extracted_merchant: str
    timestamp: datetime
    matched_rule: ExtractionRule

    @property
    def description(self) -> str:
        label = self.matched_rule.operation_label
        if self.extracted_merchant:
            return f"{label}: {self.extracted_merchant}"
        return label


class ApplyStatus(str, Enum):
    """Outcome of a delta reconciliation."""

    APPLIED = "applied"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class ApplyResult:
    """Result of BalanceReconciler.apply_delta."""

    status: ApplyStatus
    balance: Decimal

    @property
    def applied(self) -> bool:
        return self.status is ApplyStatus.APPLIED


@dataclass(frozen=True)
class Observation:
    """Absolute balance reading for an account at a point in time."""

    timestamp: datetime
    value: Decimal


@dataclass(frozen=True)
class ObservationBatchResult:
    """Result of applying a batch of observations to one account."""

    entries_written: int
    projection_updated: bool
    latest: Observation


@dataclass
class IngestionResult:
    """Counters for one ingestion pass."""

    applied_count: int = 0
    skipped_count: int = 0
    no_match_count: int = 0
    failed_count: int = 0
    skipped_rules: list[str] = field(default_factory=list)
    timed_out: bool = False

    @property
    def message(self) -> str:
        if self.applied_count == 0 and self.failed_count == 0:
            text = "No new bank transactions found."
        else:
            text = f"Imported {self.applied_count} transaction{'s' if self.applied_count != 1 else ''}."
        if self.skipped_count:
            text += f" {self.skipped_count} already applied."
        if self.failed_count:
            text += f" {self.failed_count} message{'s' if self.failed_count != 1 else ''} failed."
        if self.timed_out:
            text += " Pass stopped early after timeout."
        return text


@dataclass(frozen=True)
class HistoryPoint:
    """Net worth and cash flow at the end of one day."""

    day: date
    net_worth: Decimal
    cash_flow: Decimal


@dataclass(frozen=True)
class NetWorthSummary:
    """Current totals and daily history across all accounts."""

    total_assets: Decimal
    total_debts: Decimal
    net_worth: Decimal
    cash_flow: Decimal
    net_worth_change: Decimal
    history: tuple[HistoryPoint, ...]
