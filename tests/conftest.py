"""Shared pytest fixtures for networth tests."""

import tempfile
import os
from datetime import datetime
from pathlib import Path
from typing import Optional
import pytest

from networth.database.factories import create_sqlite_database
from networth.domain.account import AccountService
from networth.domain.csv_import import CSVImportService
from networth.domain.entities import AccountKind, ExtractionRule
from networth.domain.errors import MailSourceError, SourceAuthError
from networth.domain.reconciler import BalanceReconciler
from networth.mail.base import MailMessage, MailSource, MessageRef, encode_base64url


class FakeMailSource(MailSource):
    """In-memory mail source keyed by search query."""

    def __init__(self):
        self.messages: dict[str, tuple[str, MailMessage]] = {}
        self.consumed: list[str] = []
        self.searches: list[str] = []
        self.broken_fetches: set[str] = set()
        self.auth_failure = False

    def add(
        self,
        query: str,
        body: str,
        message_id: Optional[str] = None,
        subject: str = "Card payment",
        received_at: Optional[datetime] = None,
        mime_type: str = "text/plain",
    ) -> str:
        message_id = message_id or f"msg-{len(self.messages) + 1}"
        self.messages[message_id] = (
            query,
            MailMessage(
                id=message_id,
                headers={"Subject": subject},
                payload={"mimeType": mime_type, "body": {"data": encode_base64url(body)}},
                snippet=body[:200],
                received_at=received_at or datetime(2024, 3, 1, 12, 0),
            ),
        )
        return message_id

    def search(self, query: str, max_results: int = 10) -> list[MessageRef]:
        if self.auth_failure:
            raise SourceAuthError("invalid_grant: token has been revoked")
        self.searches.append(query)
        refs = [
            MessageRef(id=message_id)
            for message_id, (q, _) in self.messages.items()
            if q == query and message_id not in self.consumed
        ]
        return refs[:max_results]

    def fetch(self, ref: MessageRef) -> MailMessage:
        if ref.id in self.broken_fetches:
            raise MailSourceError(f"Cannot fetch message {ref.id}")
        return self.messages[ref.id][1]

    def mark_consumed(self, ref: MessageRef) -> None:
        self.consumed.append(ref.id)


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def reconciler(temp_db):
    """Create a BalanceReconciler with a temporary database."""
    return BalanceReconciler(temp_db)


@pytest.fixture
def account_service(temp_db, reconciler):
    """Create an AccountService with a temporary database."""
    return AccountService(temp_db, reconciler)


@pytest.fixture
def csv_import_service(temp_db, reconciler):
    """Create a CSVImportService with a temporary database."""
    return CSVImportService(temp_db, reconciler)


@pytest.fixture
def sample_account(account_service):
    """Create a sample bank account whose name carries a card fragment."""
    account_id = account_service.create_account(name="Santander 1234", kind=AccountKind.BANK)
    return account_service.get_account(account_id)


@pytest.fixture
def credit_card_account(account_service):
    """Create a sample credit-card debt account."""
    account_id = account_service.create_account(
        name="Visa 9876", kind=AccountKind.DEBT, account_type="Credit Card"
    )
    return account_service.get_account(account_id)


@pytest.fixture
def house_account(account_service):
    """Create a sample house asset."""
    account_id = account_service.create_account(name="Flat", kind=AccountKind.ASSET, account_type="House")
    return account_service.get_account(account_id)


@pytest.fixture
def card_rule():
    """Extraction rule for Visa card payment notifications."""
    return ExtractionRule(
        card_identifier="9876",
        search_query='FROM "avisos@visa.es" UNSEEN',
        amount_pattern=r"importe de ([\d.,]+) EUR",
        merchant_pattern=r"en (.+?) con tu tarjeta",
        operation_label="Card payment",
        category="Shopping",
    )


@pytest.fixture
def mail_source():
    """Create an empty in-memory mail source."""
    return FakeMailSource()


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def fixtures_dir():
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"
