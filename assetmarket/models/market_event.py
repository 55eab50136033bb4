"""Append-only market event log with SHA-256 hash chain, read by indexers."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, Integer, Numeric, String

from assetmarket.database import Base


def utcnow():
    return datetime.now(timezone.utc)


class MarketEvent(Base):
    __tablename__ = "market_events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    seq = Column(Integer, nullable=False, unique=True)
    event_type = Column(String(20), nullable=False)  # listed | cancelled | updated | bought
    asset_id = Column(Integer, nullable=False)
    seller_id = Column(String(64), nullable=True)
    buyer_id = Column(String(64), nullable=True)
    caller_id = Column(String(64), nullable=True)
    price = Column(Numeric(24, 6), nullable=True)
    prev_hash = Column(String(64), nullable=True)
    entry_hash = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_market_events_asset", "asset_id"),
        Index("idx_market_events_type", "event_type"),
    )
