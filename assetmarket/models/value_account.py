"""Default value-transfer tables: per-account balances and an append-only ledger."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Integer, Numeric, String, Text

from assetmarket.database import Base


def utcnow():
    return datetime.now(timezone.utc)


class ValueAccount(Base):
    __tablename__ = "value_accounts"

    account_id = Column(String(64), primary_key=True)
    balance = Column(Numeric(24, 6), nullable=False, default=0)
    total_credited = Column(Numeric(24, 6), nullable=False, default=0)
    total_sent = Column(Numeric(24, 6), nullable=False, default=0)
    total_received = Column(Numeric(24, 6), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_value_balance_nonneg"),
    )


class ValueLedger(Base):
    """Immutable audit trail. Every value movement = one row."""

    __tablename__ = "value_ledger"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    from_account_id = Column(String(64), nullable=True)  # NULL = credit from outside the ledger
    to_account_id = Column(String(64), nullable=False)
    amount = Column(Numeric(24, 6), nullable=False)
    tx_type = Column(String(20), nullable=False)  # credit | payment
    reference_id = Column(Integer, nullable=True)  # asset id for payments
    memo = Column(Text, default="")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_value_ledger_from", "from_account_id"),
        Index("idx_value_ledger_to", "to_account_id"),
        Index("idx_value_ledger_created", "created_at"),
    )
