"""Default SQL-backed ownership registry, metadata store and id allocator.

These adapters stand in for an external asset registry so the marketplace can
run standalone. They write through the caller's session and never commit on
their own, except ``mint_asset`` which is a complete operation.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from assetmarket.core.exceptions import AssetNotFoundError, NotOwnerError
from assetmarket.database import is_sqlite
from assetmarket.models.asset import Asset, AssetSequence, utcnow

logger = logging.getLogger(__name__)


class SqlIdAllocator:
    """Hands out increasing asset ids from the ``asset_sequence`` singleton row."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def next_id(self) -> int:
        stmt = select(AssetSequence).where(AssetSequence.id == 1)
        if not is_sqlite(self.db):
            stmt = stmt.with_for_update()
        seq = (await self.db.execute(stmt)).scalar_one_or_none()
        if seq is None:
            seq = AssetSequence(id=1, next_value=1)
            self.db.add(seq)
        value = seq.next_value
        seq.next_value = value + 1
        await self.db.flush()
        return value


class SqlOwnershipRegistry:
    def __init__(self, db: AsyncSession, id_allocator: SqlIdAllocator | None = None):
        self.db = db
        self.id_allocator = id_allocator or SqlIdAllocator(db)

    async def _get(self, asset_id: int, *, lock: bool = False) -> Asset | None:
        stmt = select(Asset).where(Asset.id == asset_id)
        if lock and not is_sqlite(self.db):
            stmt = stmt.with_for_update()
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def owner_of(self, asset_id: int) -> str | None:
        asset = await self._get(asset_id)
        return asset.owner_id if asset else None

    async def transfer(self, from_id: str, to_id: str, asset_id: int) -> None:
        asset = await self._get(asset_id, lock=True)
        if asset is None:
            raise AssetNotFoundError(asset_id)
        if asset.owner_id != from_id:
            raise NotOwnerError(asset_id, from_id)
        asset.owner_id = to_id
        asset.transfer_count = (asset.transfer_count or 0) + 1
        asset.updated_at = utcnow()
        await self.db.flush()
        logger.debug("Asset %s ownership %s -> %s", asset_id, from_id, to_id)

    async def mint(self, owner_id: str, uri: str, minted_by: str | None = None) -> Asset:
        asset_id = await self.id_allocator.next_id()
        asset = Asset(id=asset_id, owner_id=owner_id, uri=uri, minted_by=minted_by)
        self.db.add(asset)
        await self.db.flush()
        return asset


class SqlMetadataStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def uri_of(self, asset_id: int) -> str:
        result = await self.db.execute(select(Asset.uri).where(Asset.id == asset_id))
        uri = result.scalar_one_or_none()
        if uri is None:
            raise AssetNotFoundError(asset_id)
        return uri


async def mint_asset(db: AsyncSession, owner_id: str, uri: str, minted_by: str | None = None) -> Asset:
    """Create a new asset owned by ``owner_id`` with the next free id."""
    registry = SqlOwnershipRegistry(db)
    asset = await registry.mint(owner_id, uri, minted_by=minted_by)
    await db.commit()
    await db.refresh(asset)
    logger.info("Minted asset %s for %s (uri=%s)", asset.id, owner_id, uri)
    return asset


async def get_asset(db: AsyncSession, asset_id: int) -> Asset:
    """Get an asset by id or raise 404."""
    result = await db.execute(select(Asset).where(Asset.id == asset_id))
    asset = result.scalar_one_or_none()
    if asset is None:
        raise AssetNotFoundError(asset_id)
    return asset
