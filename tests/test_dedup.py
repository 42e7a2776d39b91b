"""Tests for the bounded movement log."""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from networth.domain.dedup import MOVEMENT_LOG_CAPACITY, DedupLedger
from networth.domain.entities import Movement


def _movement(n: int, timestamp: datetime) -> Movement:
    return Movement(
        transaction_id=f"tx-{n}",
        amount=Decimal("-1.00"),
        currency="EUR",
        description=f"Payment {n}",
        timestamp=timestamp,
    )


def test_capacity_default():
    """The log keeps twenty movements per account."""
    assert MOVEMENT_LOG_CAPACITY == 20
    assert DedupLedger().capacity == 20


def test_record_and_detect(temp_db, sample_account):
    """A recorded transaction ID is reported as applied."""
    ledger = DedupLedger()
    with temp_db.transaction() as session:
        ledger.record_applied(session, sample_account.id, _movement(1, datetime(2024, 1, 1)))

    with temp_db.transaction() as session:
        assert ledger.has_applied(session, sample_account.id, "tx-1")
        assert not ledger.has_applied(session, sample_account.id, "tx-2")


def test_log_is_per_account(temp_db, sample_account, credit_card_account):
    """The same transaction ID may appear in different accounts' logs."""
    ledger = DedupLedger()
    with temp_db.transaction() as session:
        ledger.record_applied(session, sample_account.id, _movement(1, datetime(2024, 1, 1)))

    with temp_db.transaction() as session:
        assert not ledger.has_applied(session, credit_card_account.id, "tx-1")


def test_oldest_entries_evicted(temp_db, sample_account):
    """Beyond capacity the oldest movements by timestamp are dropped."""
    ledger = DedupLedger(capacity=3)
    start = datetime(2024, 1, 1)
    # Recorded out of timestamp order on purpose
    for n in (2, 4, 1, 3, 5):
        with temp_db.transaction() as session:
            ledger.record_applied(session, sample_account.id, _movement(n, start + timedelta(days=n)))

    movements = temp_db.list_movements(sample_account.id)
    assert [m.transaction_id for m in movements] == ["tx-5", "tx-4", "tx-3"]


def test_rollback_discards_record(temp_db, sample_account):
    """Recording a movement is undone with the surrounding transaction."""
    ledger = DedupLedger()
    with pytest.raises(RuntimeError):
        with temp_db.transaction() as session:
            ledger.record_applied(session, sample_account.id, _movement(1, datetime(2024, 1, 1)))
            raise RuntimeError("abort")

    assert temp_db.list_movements(sample_account.id) == []
