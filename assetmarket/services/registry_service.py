"""Listing registry: the single source of truth for which assets are for sale.

Pure data access. No authorization and no collaborator calls happen here;
the marketplace engine checks preconditions before calling ``put_listing`` or
``remove_listing``.
"""

from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from assetmarket.database import is_sqlite
from assetmarket.models.listing import Listing, utcnow


async def get_listing(db: AsyncSession, asset_id: int, *, lock: bool = False) -> Listing | None:
    """Return the active listing for ``asset_id`` or ``None``."""
    stmt = select(Listing).where(Listing.asset_id == asset_id)
    if lock and not is_sqlite(db):
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def put_listing(
    db: AsyncSession,
    asset_id: int,
    seller_id: str,
    price: Decimal,
    metadata_uri: str,
) -> Listing:
    """Insert or replace the listing for ``asset_id``. Flushes, does not commit."""
    listing = await get_listing(db, asset_id)
    if listing is None:
        listing = Listing(
            asset_id=asset_id,
            seller_id=seller_id,
            price=price,
            metadata_uri=metadata_uri,
        )
        db.add(listing)
    else:
        listing.seller_id = seller_id
        listing.price = price
        listing.metadata_uri = metadata_uri
        listing.updated_at = utcnow()
    await db.flush()
    return listing


async def remove_listing(db: AsyncSession, asset_id: int) -> bool:
    """Delete the listing for ``asset_id``. Returns False if there was none."""
    listing = await get_listing(db, asset_id)
    if listing is None:
        return False
    await db.delete(listing)
    await db.flush()
    return True


async def list_listings(
    db: AsyncSession,
    seller_id: str | None = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Listing], int]:
    """Active listings, newest first."""
    query = select(Listing)
    count_query = select(func.count(Listing.asset_id))

    if seller_id:
        query = query.where(Listing.seller_id == seller_id)
        count_query = count_query.where(Listing.seller_id == seller_id)

    total = (await db.execute(count_query)).scalar() or 0

    query = query.order_by(Listing.created_at.desc(), Listing.asset_id.desc())
    query = query.offset((page - 1) * page_size).limit(page_size)
    result = await db.execute(query)
    return list(result.scalars().all()), total
