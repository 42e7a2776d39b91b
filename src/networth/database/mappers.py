"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic, so services never hold ORM objects
outside the session that loaded them.
"""

from decimal import Decimal

from networth.domain import entities as domain
from networth.database.models import (
    Account as ORMAccount,
    LedgerEntry as ORMLedgerEntry,
    Movement as ORMMovement,
    CardMapping as ORMCardMapping,
)


def _money(value) -> Decimal:
    return Decimal(value).quantize(Decimal("0.01")) if value is not None else Decimal("0.00")


def account_to_domain(orm_account: ORMAccount) -> domain.Account:
    """Convert SQLAlchemy Account model to domain Account entity."""
    return domain.Account(
        id=orm_account.id,
        name=orm_account.name,
        kind=domain.AccountKind(orm_account.kind),
        type=orm_account.type,
        balance=_money(orm_account.balance),
        last_updated=orm_account.last_updated,
        created_at=orm_account.created_at,
    )


def ledger_entry_to_domain(orm_entry: ORMLedgerEntry) -> domain.LedgerEntry:
    """Convert SQLAlchemy LedgerEntry model to domain LedgerEntry entity."""
    return domain.LedgerEntry(
        id=orm_entry.id,
        account_id=orm_entry.account_id,
        day=orm_entry.day,
        balance=_money(orm_entry.balance),
        timestamp=orm_entry.timestamp,
        is_auto_import=orm_entry.is_auto_import,
    )


def movement_to_domain(orm_movement: ORMMovement) -> domain.Movement:
    """Convert SQLAlchemy Movement model to domain Movement entity."""
    return domain.Movement(
        transaction_id=orm_movement.transaction_id,
        amount=_money(orm_movement.amount),
        currency=orm_movement.currency,
        description=orm_movement.description,
        timestamp=orm_movement.timestamp,
        category=orm_movement.category,
    )


def card_mapping_to_domain(orm_mapping: ORMCardMapping) -> domain.CardMapping:
    """Convert SQLAlchemy CardMapping model to domain CardMapping entity."""
    return domain.CardMapping(
        card_identifier=orm_mapping.card_identifier,
        account_id=orm_mapping.account_id,
    )
