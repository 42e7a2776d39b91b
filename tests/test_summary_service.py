"""Domain tests for the net-worth summary service."""

from datetime import date, datetime, timedelta
from decimal import Decimal

from networth.domain.entities import AccountKind
from networth.domain.summary import NetWorthService

TODAY = date(2024, 3, 10)


def _at(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, 12, 0)


def test_totals(temp_db, account_service, sample_account, credit_card_account, house_account):
    """Assets include banks; cash flow subtracts only credit-card debt."""
    mortgage_id = account_service.create_account("Mortgage", AccountKind.DEBT, "Mortgage")
    account_service.set_balance(sample_account.id, Decimal("2000.00"), _at(TODAY))
    account_service.set_balance(credit_card_account.id, Decimal("300.00"), _at(TODAY))
    account_service.set_balance(house_account.id, Decimal("150000.00"), _at(TODAY))
    account_service.set_balance(mortgage_id, Decimal("100000.00"), _at(TODAY))

    summary = NetWorthService(temp_db).summary(today=TODAY)

    assert summary.total_assets == Decimal("152000.00")
    assert summary.total_debts == Decimal("100300.00")
    assert summary.net_worth == Decimal("51700.00")
    assert summary.cash_flow == Decimal("1700.00")


def test_history_carries_balances_forward(temp_db, account_service, sample_account, house_account):
    """Each day uses the latest entry on or before it, per account."""
    start = TODAY - timedelta(days=3)
    account_service.set_balance(sample_account.id, Decimal("100.00"), _at(start))
    account_service.set_balance(house_account.id, Decimal("1000.00"), _at(start + timedelta(days=1)))
    account_service.set_balance(sample_account.id, Decimal("150.00"), _at(TODAY))

    summary = NetWorthService(temp_db).summary(today=TODAY)

    assert [p.day for p in summary.history] == [start + timedelta(days=n) for n in range(4)]
    assert [p.net_worth for p in summary.history] == [
        Decimal("100.00"),
        Decimal("1100.00"),
        Decimal("1100.00"),
        Decimal("1150.00"),
    ]
    assert [p.cash_flow for p in summary.history] == [
        Decimal("100.00"),
        Decimal("100.00"),
        Decimal("100.00"),
        Decimal("150.00"),
    ]


def test_day_over_day_change(temp_db, account_service, sample_account):
    """Change is the percentage move from yesterday's net worth."""
    account_service.set_balance(sample_account.id, Decimal("200.00"), _at(TODAY - timedelta(days=1)))
    account_service.set_balance(sample_account.id, Decimal("250.00"), _at(TODAY))

    summary = NetWorthService(temp_db).summary(today=TODAY)

    assert summary.net_worth_change == Decimal("25.00")


def test_change_is_zero_for_non_positive_days(temp_db, account_service, credit_card_account):
    """A non-positive net worth on either day reports no change."""
    account_service.set_balance(credit_card_account.id, Decimal("50.00"), _at(TODAY - timedelta(days=1)))
    account_service.set_balance(credit_card_account.id, Decimal("80.00"), _at(TODAY))

    summary = NetWorthService(temp_db).summary(today=TODAY)

    assert summary.net_worth == Decimal("-80.00")
    assert summary.net_worth_change == Decimal("0.00")


def test_empty_database(temp_db):
    """Without accounts everything is zero and history defaults to 90 days."""
    summary = NetWorthService(temp_db).summary(today=TODAY)

    assert summary.net_worth == Decimal("0.00")
    assert summary.net_worth_change == Decimal("0.00")
    assert len(summary.history) == 91
    assert summary.history[-1].day == TODAY


def test_explicit_start_date(temp_db, account_service, sample_account):
    """History can start at a given date."""
    account_service.set_balance(sample_account.id, Decimal("10.00"), _at(date(2024, 1, 1)))

    summary = NetWorthService(temp_db).summary(today=TODAY, start_date=TODAY - timedelta(days=1))

    assert len(summary.history) == 2
    assert all(p.net_worth == Decimal("10.00") for p in summary.history)
