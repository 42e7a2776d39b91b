"""Net-worth summary domain service."""

from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from networth.database.base import Database
from networth.domain.entities import (
    Account,
    AccountKind,
    HistoryPoint,
    LedgerEntry,
    NetWorthSummary,
)
from networth.utils.amount_parser import round_currency

CREDIT_CARD = "Credit Card"
DEFAULT_HISTORY_DAYS = 90


def _is_credit_card(account: Account) -> bool:
    return account.kind is AccountKind.DEBT and account.type == CREDIT_CARD


def _totals(balances: dict[int, Decimal], accounts: list[Account]) -> tuple[Decimal, Decimal]:
    """Net worth and cash flow for a set of per-account balances."""
    banks = assets = debts = credit_cards = Decimal("0")
    for account in accounts:
        balance = balances.get(account.id)
        if balance is None:
            continue
        if account.kind is AccountKind.BANK:
            banks += balance
        elif account.kind is AccountKind.ASSET:
            assets += balance
        else:
            debts += balance
            if _is_credit_card(account):
                credit_cards += balance
    return round_currency(banks + assets - debts), round_currency(banks - credit_cards)


class NetWorthService:
    """Service for building net-worth totals and history."""

    def __init__(self, db: Database):
        """Initialize summary service.

        Args:
            db: Database instance
        """
        self.db = db

    def summary(self, today: Optional[date] = None, start_date: Optional[date] = None) -> NetWorthSummary:
        """Build current totals and a daily history up to today.

        History starts at the earliest ledger entry (or start_date if given,
        or 90 days back when there are no entries). Each day uses, per
        account, the latest ledger entry on or before that day.

        Args:
            today: Last day of the history (defaults to the current date)
            start_date: Optional first day of the history

        Returns:
            NetWorthSummary
        """
        today = today or date.today()
        accounts = self.db.list_accounts()
        entries = self.db.list_ledger_entries(end_date=today)

        total_assets = round_currency(
            sum((a.balance for a in accounts if a.kind is not AccountKind.DEBT), Decimal("0"))
        )
        total_debts = round_currency(
            sum((a.balance for a in accounts if a.kind is AccountKind.DEBT), Decimal("0"))
        )
        current = {a.id: a.balance for a in accounts}
        net_worth, cash_flow = _totals(current, accounts)

        if start_date is None:
            start_date = min((e.day for e in entries), default=today - timedelta(days=DEFAULT_HISTORY_DAYS))
        history = tuple(self.history(accounts, entries, start_date, today))

        return NetWorthSummary(
            total_assets=total_assets,
            total_debts=total_debts,
            net_worth=net_worth,
            cash_flow=cash_flow,
            net_worth_change=self.net_worth_change(history, net_worth),
            history=history,
        )

    def history(
        self,
        accounts: list[Account],
        entries: list[LedgerEntry],
        start_date: date,
        end_date: date,
    ) -> list[HistoryPoint]:
        """Daily net worth and cash flow, carrying each account's latest entry forward."""
        by_account: dict[int, list[LedgerEntry]] = defaultdict(list)
        for entry in sorted(entries, key=lambda e: e.day):
            by_account[entry.account_id].append(entry)

        positions = {account_id: 0 for account_id in by_account}
        balances: dict[int, Decimal] = {}
        points = []

        day = start_date
        while day <= end_date:
            for account_id, account_entries in by_account.items():
                i = positions[account_id]
                while i < len(account_entries) and account_entries[i].day <= day:
                    balances[account_id] = account_entries[i].balance
                    i += 1
                positions[account_id] = i
            net_worth, cash_flow = _totals(balances, accounts)
            points.append(HistoryPoint(day=day, net_worth=net_worth, cash_flow=cash_flow))
            day += timedelta(days=1)
        return points

    def net_worth_change(self, history: tuple[HistoryPoint, ...], current: Decimal) -> Decimal:
        """Day-over-day net-worth change in percent.

        Zero unless both today and yesterday are positive and differ.
        """
        today_value = history[-1].net_worth if history else current
        yesterday_value = history[-2].net_worth if len(history) > 1 else today_value
        if today_value > 0 and yesterday_value > 0 and today_value != yesterday_value:
            return round_currency((today_value - yesterday_value) / abs(yesterday_value) * 100)
        return Decimal("0.00")
