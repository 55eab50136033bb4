"""Default ownership registry tables: asset owners, metadata URIs and id sequence."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, Integer, String, Text

from assetmarket.database import Base


def utcnow():
    return datetime.now(timezone.utc)


class Asset(Base):
    __tablename__ = "assets"

    id = Column(Integer, primary_key=True, autoincrement=False)
    owner_id = Column(String(64), nullable=False)
    uri = Column(Text, nullable=False, default="")
    minted_by = Column(String(64), nullable=True)
    transfer_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_assets_owner", "owner_id"),
    )


class AssetSequence(Base):
    """Singleton row (id=1) holding the next asset id to hand out."""

    __tablename__ = "asset_sequence"

    id = Column(Integer, primary_key=True, default=1)
    next_value = Column(Integer, nullable=False, default=1)
