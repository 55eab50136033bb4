from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Integer, Numeric, String, Text

from assetmarket.database import Base


def utcnow():
    return datetime.now(timezone.utc)


class Listing(Base):
    """An active sale offer. Row present = Listed, row absent = Unlisted."""

    __tablename__ = "listings"

    asset_id = Column(Integer, primary_key=True, autoincrement=False)
    seller_id = Column(String(64), nullable=False)
    price = Column(Numeric(24, 6), nullable=False)
    metadata_uri = Column(Text, nullable=False, default="")  # Snapshot taken at listing time
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("price > 0", name="ck_listing_price_positive"),
        Index("idx_listings_seller", "seller_id"),
        Index("idx_listings_created", "created_at"),
    )
