"""Rule-based extraction of transactions from bank notification emails."""

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional

from networth.domain.entities import ExtractionRule, TransactionCandidate
from networth.domain.errors import ParseError, ValidationError
from networth.utils.amount_parser import parse_localized_amount
from networth.utils.date_parser import to_utc_naive, utc_now

logger = logging.getLogger(__name__)

REQUIRED_RULE_KEYS = ("card_identifier", "search_query", "amount_pattern", "operation_label")


def _first_group(match: re.Match) -> str:
    return match.group(1) if match.re.groups else match.group(0)


class RuleMatcher:
    """Apply extraction rules to message text."""

    def match(
        self,
        rule: ExtractionRule,
        text: str,
        message_id: str = "",
        timestamp: Optional[datetime] = None,
    ) -> Optional[TransactionCandidate]:
        """Extract a transaction candidate from text with one rule.

        Args:
            rule: Extraction rule
            text: Message body or snippet
            message_id: Source message ID, used as the candidate's dedup key
            timestamp: When the message was received (defaults to now)

        Returns:
            TransactionCandidate, or None when the amount pattern does not match

        Raises:
            ParseError: If the amount pattern matches but the amount is unparsable
        """
        amount_match = re.search(rule.amount_pattern, text, re.IGNORECASE)
        if amount_match is None:
            return None

        raw_amount = _first_group(amount_match)
        try:
            amount = parse_localized_amount(raw_amount)
        except ParseError as e:
            raise ParseError(
                f"Rule '{rule.operation_label}' matched message {message_id or '?'} "
                f"but the amount is unreadable: {e}"
            )

        merchant = ""
        if rule.merchant_pattern:
            merchant_match = re.search(rule.merchant_pattern, text, re.IGNORECASE)
            if merchant_match is not None:
                merchant = " ".join(_first_group(merchant_match).split())
        if not merchant:
            logger.warning(
                f"No merchant found in message {message_id or '?'} for rule "
                f"'{rule.operation_label}'; using the operation label alone"
            )

        return TransactionCandidate(
            source_message_id=message_id,
            extracted_amount=amount,
            extracted_merchant=merchant,
            timestamp=to_utc_naive(timestamp) if timestamp is not None else utc_now(),
            matched_rule=rule,
        )

    def match_first(
        self,
        rules: Iterable[ExtractionRule],
        text: str,
        message_id: str = "",
        timestamp: Optional[datetime] = None,
    ) -> Optional[TransactionCandidate]:
        """Evaluate rules in configured order; the first match wins."""
        for rule in rules:
            candidate = self.match(rule, text, message_id=message_id, timestamp=timestamp)
            if candidate is not None:
                return candidate
        return None


def rule_from_dict(data: dict[str, Any]) -> ExtractionRule:
    """Build and validate an extraction rule from a plain mapping.

    Raises:
        ValidationError: If keys are missing or a pattern does not compile
    """
    missing = [key for key in REQUIRED_RULE_KEYS if not data.get(key)]
    if missing:
        raise ValidationError(f"Extraction rule is missing required keys: {', '.join(missing)}")

    for key in ("amount_pattern", "merchant_pattern"):
        pattern = data.get(key)
        if pattern:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValidationError(f"Invalid {key} '{pattern}': {e}")

    return ExtractionRule(
        card_identifier=str(data["card_identifier"]),
        search_query=data["search_query"],
        amount_pattern=data["amount_pattern"],
        merchant_pattern=data.get("merchant_pattern") or None,
        operation_label=data["operation_label"],
        currency=data.get("currency", "EUR"),
        category=data.get("category"),
    )


def load_rules(path: str | Path) -> list[ExtractionRule]:
    """Load extraction rules from a JSON file holding a list of rule objects.

    Raises:
        FileNotFoundError: If the file does not exist
        ValidationError: If the file is not a list of valid rules
    """
    rules_path = Path(path)
    if not rules_path.exists():
        raise FileNotFoundError(f"Rules file not found: {path}")

    try:
        data = json.loads(rules_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValidationError(f"Rules file {path} is not valid JSON: {e}")

    if not isinstance(data, list):
        raise ValidationError(f"Rules file {path} must contain a list of rules")
    return [rule_from_dict(item) for item in data]
