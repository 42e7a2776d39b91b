"""SQLAlchemy models for networth database."""

from datetime import datetime, UTC
from decimal import Decimal
from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Boolean,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


def _utc_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class Account(Base):
    """Bank, debt or asset account model."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    kind = Column(String, nullable=False)
    type = Column(String, nullable=True)
    balance = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    last_updated = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=_utc_now, nullable=False)

    # Every UPDATE is checked against the version read; a concurrent writer
    # makes the flush raise StaleDataError.
    __mapper_args__ = {"version_id_col": version}

    # Relationships
    ledger_entries = relationship("LedgerEntry", back_populates="account", cascade="all, delete-orphan")
    movements = relationship("Movement", back_populates="account", cascade="all, delete-orphan")
    card_mappings = relationship("CardMapping", back_populates="account", cascade="all, delete-orphan")


class LedgerEntry(Base):
    """Day-bucketed balance snapshot model."""

    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    day = Column(Date, nullable=False)
    balance = Column(Numeric(14, 2), nullable=False)
    timestamp = Column(DateTime, nullable=False)
    is_auto_import = Column(Boolean, default=False, nullable=False)

    __table_args__ = (UniqueConstraint("account_id", "day", name="uq_ledger_account_day"),)

    # Relationships
    account = relationship("Account", back_populates="ledger_entries")


class Movement(Base):
    """Movement log row; capped per account by the dedup ledger."""

    __tablename__ = "movements"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    transaction_id = Column(String, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    currency = Column(String, nullable=False, default="EUR")
    description = Column(String, nullable=False, default="")
    timestamp = Column(DateTime, nullable=False)
    category = Column(String, nullable=True)

    __table_args__ = (
        UniqueConstraint("account_id", "transaction_id", name="uq_movement_account_transaction"),
    )

    # Relationships
    account = relationship("Account", back_populates="movements")


class CardMapping(Base):
    """Explicit card identifier to account binding."""

    __tablename__ = "card_mappings"

    id = Column(Integer, primary_key=True)
    card_identifier = Column(String, unique=True, nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)

    # Relationships
    account = relationship("Account", back_populates="card_mappings")


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)
