"""CSV balance-history import domain service."""

import csv
import io
import logging
from typing import Any, Optional
from pathlib import Path

from networth.database.base import Database
from networth.domain.entities import Observation
from networth.domain.errors import (
    AccountNotFoundError,
    NoValidRecordsError,
    ParseError,
    account_not_found,
    no_valid_records,
)
from networth.domain.reconciler import BalanceReconciler
from networth.utils.amount_parser import parse_localized_amount
from networth.utils.date_parser import parse_localized_date, start_of_day

logger = logging.getLogger(__name__)

DATE_COLUMNS = ("date", "timestamp")
VALUE_COLUMNS = ("value", "balance")


def detect_delimiter(sample: str) -> str:
    """Pick ';' or ',' as the delimiter of a CSV sample.

    The header row decides when it holds more of one than the other, since
    amounts like "1.234,56" make commas unreliable in data rows.
    """
    header = sample.splitlines()[0] if sample else ""
    if header.count(";") != header.count(","):
        return ";" if header.count(";") > header.count(",") else ","
    try:
        return csv.Sniffer().sniff(sample, delimiters=",;").delimiter
    except csv.Error:
        return ","


def _find_column(fieldnames: list[str], candidates: tuple[str, ...]) -> Optional[str]:
    for name in fieldnames:
        if name is not None and name.strip().lower() in candidates:
            return name
    return None


class CSVImportService:
    """Service for importing dated balance observations from CSV files."""

    def __init__(self, db: Database, reconciler: Optional[BalanceReconciler] = None):
        """Initialize CSV import service.

        Args:
            db: Database instance
            reconciler: Reconciler the observations are submitted to
        """
        self.db = db
        self.reconciler = reconciler or BalanceReconciler(db)

    def import_csv(self, csv_file_path: str, account_id: int) -> dict[str, Any]:
        """Import balance observations from a CSV file into one account.

        Args:
            csv_file_path: Path to CSV file
            account_id: Target account ID

        Returns:
            Dict with import statistics (see import_csv_text)

        Raises:
            FileNotFoundError: If CSV file doesn't exist
            AccountNotFoundError: If the account doesn't exist
            NoValidRecordsError: If no row could be imported
        """
        csv_path = Path(csv_file_path)
        if not csv_path.exists():
            raise FileNotFoundError(f"CSV file not found: {csv_file_path}")

        with open(csv_path, "r", encoding="utf-8-sig", newline="") as f:
            text = f.read()
        return self.import_csv_text(text, account_id)

    def import_csv_text(self, text: str, account_id: int) -> dict[str, Any]:
        """Import balance observations from CSV text into one account.

        Rows need a DD/MM/YYYY date and an amount such as "115.000,00".
        Rows that fail to parse are dropped and reported; the remaining rows
        are applied as one batch.

        Returns:
            Dict with import statistics:
            - imported: number of rows applied
            - days: number of distinct days written
            - dropped: number of rows dropped
            - projection_updated: whether the current balance moved
            - latest_date: date of the batch's latest row
            - errors: list of "Row N: ..." messages for dropped rows

        Raises:
            AccountNotFoundError: If the account doesn't exist
            NoValidRecordsError: If no row could be imported
        """
        if self.db.get_account(account_id) is None:
            raise AccountNotFoundError(account_not_found(account_id))

        text = text.lstrip("\ufeff")
        reader = csv.DictReader(io.StringIO(text), delimiter=detect_delimiter(text[:1024]))

        fieldnames = reader.fieldnames or []
        date_column = _find_column(fieldnames, DATE_COLUMNS)
        value_column = _find_column(fieldnames, VALUE_COLUMNS)
        if date_column is None or value_column is None:
            raise NoValidRecordsError(
                f"CSV file missing required columns (found: {', '.join(f for f in fieldnames if f) or 'none'}). "
                + no_valid_records(0)
            )

        observations: list[Observation] = []
        errors: list[str] = []

        for row_num, row in enumerate(reader, start=2):  # header is row 1
            raw_date = (row.get(date_column) or "").strip()
            raw_value = (row.get(value_column) or "").strip()

            if not raw_date and not raw_value:
                continue
            if not raw_date:
                errors.append(f"Row {row_num}: Missing date")
                continue
            if not raw_value:
                errors.append(f"Row {row_num}: Missing value")
                continue

            try:
                day = parse_localized_date(raw_date)
                value = parse_localized_amount(raw_value)
            except ParseError as e:
                errors.append(f"Row {row_num}: {e}")
                continue

            observations.append(Observation(timestamp=start_of_day(day), value=value))

        for error in errors:
            logger.debug(f"Dropped CSV row for account {account_id}: {error}")

        if not observations:
            raise NoValidRecordsError(no_valid_records(len(errors)))

        batch = self.reconciler.apply_observations(account_id, observations)

        return {
            "imported": len(observations),
            "days": batch.entries_written,
            "dropped": len(errors),
            "projection_updated": batch.projection_updated,
            "latest_date": batch.latest.timestamp.date(),
            "errors": errors,
        }
