"""Rolling movement log used to reject already-applied transactions."""

import logging

from sqlalchemy.orm import Session

from networth.database.models import Movement as ORMMovement
from networth.domain.entities import Movement

logger = logging.getLogger(__name__)

MOVEMENT_LOG_CAPACITY = 20


class DedupLedger:
    """Bounded, newest-first movement log per account.

    Both methods take the caller's session: recording a movement must commit
    or roll back together with the balance change it belongs to.
    """

    def __init__(self, capacity: int = MOVEMENT_LOG_CAPACITY):
        self.capacity = capacity

    def load(self, session: Session, account_id: int) -> list[ORMMovement]:
        """Load the account's movement log, newest first."""
        return (
            session.query(ORMMovement)
            .filter(ORMMovement.account_id == account_id)
            .order_by(ORMMovement.timestamp.desc(), ORMMovement.id.desc())
            .all()
        )

    def has_applied(self, session: Session, account_id: int, transaction_id: str) -> bool:
        """Check whether a transaction ID is present in the account's log."""
        return any(m.transaction_id == transaction_id for m in self.load(session, account_id))

    def record_applied(self, session: Session, account_id: int, movement: Movement) -> None:
        """Add a movement, then evict the oldest entries beyond capacity."""
        session.add(
            ORMMovement(
                account_id=account_id,
                transaction_id=movement.transaction_id,
                amount=movement.amount,
                currency=movement.currency,
                description=movement.description,
                timestamp=movement.timestamp,
                category=movement.category,
            )
        )
        session.flush()

        log = self.load(session, account_id)
        for evicted in log[self.capacity:]:
            logger.debug(
                f"Evicting movement {evicted.transaction_id} from account {account_id} log"
            )
            session.delete(evicted)
