"""Balance reconciliation: the transactional core of every import path."""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional, Sequence, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError
from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from networth.database.base import Database
from networth.database.models import Account as ORMAccount, LedgerEntry as ORMLedgerEntry
from networth.domain.dedup import DedupLedger
from networth.domain.entities import (
    ApplyResult,
    ApplyStatus,
    Movement,
    Observation,
    ObservationBatchResult,
)
from networth.domain.errors import (
    AccountNotFoundError,
    TransactionConflictError,
    ValidationError,
    account_not_found,
    transaction_conflict,
)
from networth.utils.amount_parser import round_currency
from networth.utils.date_parser import to_utc_naive, utc_now

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 5

# Jittered exponential backoff between conflicting attempts
DEFAULT_RETRY_WAIT = wait_random_exponential(multiplier=0.05, max=2)

T = TypeVar("T")


class BalanceReconciler:
    """Apply deltas and observations to one account atomically.

    Every call runs as a single unit of work: all reads that decide the
    update happen first, then the account row, its day-bucket ledger entry
    and (for deltas) its movement log are written together. The account row
    is versioned, so a concurrent reconciliation of the same account makes
    the commit fail; the unit is then retried from the reads.
    """

    def __init__(
        self,
        db: Database,
        dedup: Optional[DedupLedger] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        wait=DEFAULT_RETRY_WAIT,
    ):
        """Initialize reconciler.

        Args:
            db: Database instance
            dedup: Movement log used for duplicate detection
            max_retries: Attempts before raising TransactionConflictError
            wait: tenacity wait strategy between attempts
        """
        self.db = db
        self.dedup = dedup or DedupLedger()
        self.max_retries = max_retries
        self.wait = wait

    def apply_delta(
        self,
        account_id: int,
        delta: Decimal,
        transaction_id: str,
        description: str,
        timestamp: Optional[datetime] = None,
        *,
        is_expense: bool = True,
        currency: str = "EUR",
        category: Optional[str] = None,
    ) -> ApplyResult:
        """Add a signed delta to an account's running balance.

        Args:
            account_id: Target account
            delta: Change to the balance (positive grows a debt for an expense)
            transaction_id: Dedup key of the source transaction
            description: Movement description
            timestamp: When the transaction happened (defaults to now)
            is_expense: Record the movement as an outflow (amount = -delta)
            currency: Movement currency
            category: Optional movement category

        Returns:
            ApplyResult with APPLIED and the new balance, or SKIPPED and the
            unchanged balance when the transaction ID was already applied

        Raises:
            AccountNotFoundError: If the account does not exist
            TransactionConflictError: If retries are exhausted
        """
        delta = round_currency(delta)
        timestamp = to_utc_naive(timestamp) if timestamp is not None else utc_now()
        movement = Movement(
            transaction_id=transaction_id,
            amount=-delta if is_expense else delta,
            currency=currency,
            description=description,
            timestamp=timestamp,
            category=category,
        )

        def unit(session: Session) -> ApplyResult:
            account, entry = self._read(session, account_id, timestamp.date())
            if self.dedup.has_applied(session, account_id, transaction_id):
                return ApplyResult(ApplyStatus.SKIPPED, round_currency(account.balance))

            new_balance = round_currency(Decimal(account.balance) + delta)
            account.balance = new_balance
            if account.last_updated is None or timestamp > account.last_updated:
                account.last_updated = timestamp
            flag_modified(account, "balance")
            self._write_ledger(session, account_id, entry, timestamp, new_balance, is_auto_import=True)
            self.dedup.record_applied(session, account_id, movement)
            return ApplyResult(ApplyStatus.APPLIED, new_balance)

        result = self._run(account_id, unit)
        if result.applied:
            logger.info(
                f"Applied {transaction_id} to account {account_id}: {delta:+} -> {result.balance}"
            )
        else:
            logger.info(f"Skipped {transaction_id} for account {account_id}: already applied")
        return result

    def apply_observation(
        self, account_id: int, observed_value: Decimal, timestamp: datetime
    ) -> ObservationBatchResult:
        """Record an absolute balance reading.

        The day-bucket entry for the reading's day is always overwritten; the
        account's current balance only moves if the reading is strictly newer
        than its last update.
        """
        return self.apply_observations(account_id, [Observation(timestamp, observed_value)])

    def apply_observations(
        self, account_id: int, observations: Sequence[Observation]
    ) -> ObservationBatchResult:
        """Record a batch of readings for one account in a single unit.

        Readings are written oldest first (ties keep input order) so the
        latest reading of each day is the one that sticks. Only the batch's
        latest reading is a candidate for the current balance.

        Raises:
            ValidationError: If the batch is empty
            AccountNotFoundError: If the account does not exist
            TransactionConflictError: If retries are exhausted
        """
        if not observations:
            raise ValidationError("No observations to apply")

        ordered = sorted(
            (Observation(to_utc_naive(o.timestamp), round_currency(o.value)) for o in observations),
            key=lambda o: o.timestamp,
        )
        latest = ordered[-1]

        def unit(session: Session) -> ObservationBatchResult:
            account = self._get_account(session, account_id)
            days = {o.timestamp.date() for o in ordered}
            existing = {
                e.day: e
                for e in session.query(ORMLedgerEntry).filter(
                    ORMLedgerEntry.account_id == account_id,
                    ORMLedgerEntry.day.in_(sorted(days)),
                )
            }

            for obs in ordered:
                day = obs.timestamp.date()
                existing[day] = self._write_ledger(
                    session, account_id, existing.get(day), obs.timestamp, obs.value, is_auto_import=False
                )

            projection_updated = account.last_updated is None or latest.timestamp > account.last_updated
            if projection_updated:
                account.balance = latest.value
                account.last_updated = latest.timestamp
            # Bump the version even when the projection stays, so reconciliations
            # of this account serialize.
            flag_modified(account, "balance")
            return ObservationBatchResult(
                entries_written=len(days),
                projection_updated=projection_updated,
                latest=latest,
            )

        result = self._run(account_id, unit)
        logger.info(
            f"Recorded {len(ordered)} observation(s) on {result.entries_written} day(s) "
            f"for account {account_id}; current balance "
            f"{'updated' if result.projection_updated else 'kept (newer value on record)'}"
        )
        return result

    def _run(self, account_id: int, unit: Callable[[Session], T]) -> T:
        """Run a unit of work, retrying it on concurrent-modification failures."""

        def log_conflict(state: RetryCallState) -> None:
            error = state.outcome.exception()
            logger.warning(
                f"Concurrent update on account {account_id} "
                f"(attempt {state.attempt_number}/{self.max_retries}): {type(error).__name__}"
            )

        retrying = Retrying(
            retry=retry_if_exception_type((StaleDataError, IntegrityError)),
            stop=stop_after_attempt(self.max_retries),
            wait=self.wait,
            before_sleep=log_conflict,
        )
        try:
            for attempt in retrying:
                with attempt:
                    with self.db.transaction() as session:
                        return unit(session)
        except RetryError:
            raise TransactionConflictError(transaction_conflict(account_id, self.max_retries))

    def _get_account(self, session: Session, account_id: int) -> ORMAccount:
        account = session.get(ORMAccount, account_id)
        if account is None:
            raise AccountNotFoundError(account_not_found(account_id))
        return account

    def _read(
        self, session: Session, account_id: int, day: date
    ) -> tuple[ORMAccount, Optional[ORMLedgerEntry]]:
        """Read the account and its ledger entry for one day."""
        account = self._get_account(session, account_id)
        entry = (
            session.query(ORMLedgerEntry)
            .filter(ORMLedgerEntry.account_id == account_id, ORMLedgerEntry.day == day)
            .one_or_none()
        )
        return account, entry

    def _write_ledger(
        self,
        session: Session,
        account_id: int,
        entry: Optional[ORMLedgerEntry],
        timestamp: datetime,
        balance: Decimal,
        is_auto_import: bool,
    ) -> ORMLedgerEntry:
        """Create or overwrite the day-bucket entry for timestamp's day."""
        if entry is None:
            entry = ORMLedgerEntry(account_id=account_id, day=timestamp.date())
            session.add(entry)
        entry.balance = balance
        entry.timestamp = timestamp
        entry.is_auto_import = is_auto_import
        return entry
