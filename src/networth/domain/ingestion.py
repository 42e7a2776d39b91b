"""Email ingestion pass: fetch bank notifications and reconcile them."""

import logging
import time
from typing import Callable, Optional, Sequence

from networth.database.base import Database
from networth.domain.account import AccountService
from networth.domain.entities import Account, ExtractionRule, IngestionResult
from networth.domain.errors import (
    AccountNotFoundError,
    MailSourceError,
    ParseError,
    TransactionConflictError,
)
from networth.domain.reconciler import BalanceReconciler
from networth.domain.rules import RuleMatcher
from networth.mail.base import MailSource, MessageRef

logger = logging.getLogger(__name__)

DEFAULT_MAX_MESSAGES = 10


class PassTimeout(Exception):
    """Internal signal that the pass deadline has passed."""


class IngestionOrchestrator:
    """Run ingestion passes over the configured extraction rules.

    Rules and messages are processed sequentially. A failure on one message
    is logged and counted without stopping the pass; a failure to bind a
    rule's account skips that rule; a SourceAuthError aborts the pass.
    """

    def __init__(
        self,
        db: Database,
        mail_source: MailSource,
        rules: Sequence[ExtractionRule],
        reconciler: Optional[BalanceReconciler] = None,
        account_service: Optional[AccountService] = None,
        matcher: Optional[RuleMatcher] = None,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize orchestrator.

        Args:
            db: Database instance
            mail_source: Where notification emails are read from
            rules: Extraction rules, in evaluation order
            reconciler: Balance reconciler (built from db if omitted)
            account_service: Account lookup (built from db if omitted)
            matcher: Rule matcher
            max_messages: Messages fetched per rule per pass
            timeout: Seconds after which remaining work is abandoned
            clock: Monotonic clock, replaceable in tests
        """
        self.db = db
        self.mail_source = mail_source
        self.rules = list(rules)
        self.reconciler = reconciler or BalanceReconciler(db)
        self.account_service = account_service or AccountService(db, self.reconciler)
        self.matcher = matcher or RuleMatcher()
        self.max_messages = max_messages
        self.timeout = timeout
        self.clock = clock
        self._deadline: Optional[float] = None

    def run_pass(self) -> IngestionResult:
        """Process every distinct search query once.

        Returns:
            IngestionResult with per-outcome counters and a summary message

        Raises:
            SourceAuthError: If the mail source rejects our credentials
        """
        result = IngestionResult()
        self._deadline = self.clock() + self.timeout if self.timeout is not None else None
        logger.info(f"Starting ingestion pass over {len(self.rules)} rule(s)")

        try:
            for query, rules in self._rules_by_query().items():
                self._check_deadline()
                self._run_query(query, rules, result)
        except PassTimeout:
            result.timed_out = True
            logger.warning(
                f"Ingestion pass timed out after {self.timeout}s; "
                f"{result.applied_count} transaction(s) already applied are kept"
            )

        logger.info(result.message)
        return result

    def _check_deadline(self) -> None:
        if self._deadline is not None and self.clock() >= self._deadline:
            raise PassTimeout()

    def _rules_by_query(self) -> dict[str, list[ExtractionRule]]:
        """Group rules by search query, keeping configured order within each group."""
        groups: dict[str, list[ExtractionRule]] = {}
        for rule in self.rules:
            groups.setdefault(rule.search_query, []).append(rule)
        return groups

    def _bind_accounts(
        self, rules: list[ExtractionRule], result: IngestionResult
    ) -> list[tuple[ExtractionRule, Account]]:
        """Pair each rule with its card's account, skipping rules with none."""
        bound = []
        for rule in rules:
            account = self.account_service.find_account_for_card(rule.card_identifier)
            if account is None:
                logger.warning(
                    f"No account matches card '{rule.card_identifier}'; skipping rule '{rule.operation_label}'"
                )
                result.skipped_rules.append(rule.card_identifier)
                continue
            bound.append((rule, account))
        return bound

    def _run_query(self, query: str, rules: list[ExtractionRule], result: IngestionResult) -> None:
        bound = self._bind_accounts(rules, result)
        if not bound:
            return
        cards = [rule.card_identifier for rule, _ in bound]

        try:
            refs = self.mail_source.search(query, max_results=self.max_messages)
        except MailSourceError as e:
            logger.warning(f"Search failed for query '{query}': {e}")
            result.skipped_rules.extend(cards)
            return

        if not refs:
            logger.info(f"No new emails found for card(s) {', '.join(cards)}")
            return
        logger.info(f"Found {len(refs)} new email(s) for card(s) {', '.join(cards)}")

        for ref in refs:
            self._check_deadline()
            try:
                self._process_message(ref, bound, result)
            except (AccountNotFoundError, TransactionConflictError) as e:
                logger.warning(f"Stopping query '{query}' for this pass: {e}")
                result.skipped_rules.extend(cards)
                return

    def _process_message(
        self, ref: MessageRef, bound: list[tuple[ExtractionRule, Account]], result: IngestionResult
    ) -> None:
        """Fetch, match and reconcile one message, then mark it consumed.

        The first rule in configured order that matches decides both the
        amount and the account it is applied to. A message that cannot be
        fetched stays unconsumed for the next pass.
        """
        try:
            message = self.mail_source.fetch(ref)
        except MailSourceError as e:
            result.failed_count += 1
            logger.warning(f"Failed to fetch message {ref.id}: {e}")
            return

        try:
            logger.info(f"Processing: {message.subject}")
            candidate = self.matcher.match_first(
                [rule for rule, _ in bound],
                message.text,
                message_id=message.id,
                timestamp=message.received_at,
            )
            if candidate is None:
                result.no_match_count += 1
                logger.debug(f"Skipped: no rule matched message {message.id}")
            else:
                account = next(acc for rule, acc in bound if rule is candidate.matched_rule)
                outcome = self.reconciler.apply_delta(
                    account.id,
                    candidate.extracted_amount,
                    candidate.source_message_id,
                    candidate.description,
                    candidate.timestamp,
                    currency=candidate.matched_rule.currency,
                    category=candidate.matched_rule.category,
                )
                if outcome.applied:
                    result.applied_count += 1
                else:
                    result.skipped_count += 1
        except ParseError as e:
            result.failed_count += 1
            logger.warning(f"Failed to process message {ref.id}: {e}")

        try:
            self.mail_source.mark_consumed(ref)
        except MailSourceError as e:
            logger.warning(f"Could not mark message {ref.id} consumed: {e}")
