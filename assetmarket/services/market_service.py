"""Marketplace transaction engine: list, cancel, update price, buy.

Every operation is a guarded transition of the per-asset state machine::

    Unlisted --list--> Listed --cancel|buy--> Unlisted
    Listed --update_price--> Listed

Preconditions are checked in a fixed order and the first failure is raised
before anything is written. ``buy`` is the only operation that calls out to
collaborators after mutating state. While they run, any call back into the
engine from the same task is refused: the asset being bought reads as not
listed and every other asset raises ``SettlementInProgressError``. Any failure
after the first write rolls the whole session back. Notifications are
published once the per-asset lock has been released.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from assetmarket.config import settings
from assetmarket.core.capabilities import MetadataStore, OwnershipRegistry, ValueTransfer
from assetmarket.core.exceptions import (
    AlreadyListedError,
    AssetNotFoundError,
    InsufficientPaymentError,
    InvalidPriceError,
    NotListedError,
    NotOwnerError,
    PaymentFailedError,
    SelfTradeError,
    SettlementInProgressError,
)
from assetmarket.core.locks import AssetLockRegistry, asset_locks
from assetmarket.models.listing import Listing, utcnow
from assetmarket.models.market_event import MarketEvent
from assetmarket.schemas.event import MarketNotification
from assetmarket.services import event_service, registry_service
from assetmarket.services.ownership_service import SqlMetadataStore, SqlOwnershipRegistry
from assetmarket.services.value_service import SqlValueTransfer, to_decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListingView:
    """Detached snapshot of an active listing."""

    asset_id: int
    seller_id: str
    price: Decimal
    metadata_uri: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Listing) -> "ListingView":
        return cls(
            asset_id=row.asset_id,
            seller_id=row.seller_id,
            price=to_decimal(row.price),
            metadata_uri=row.metadata_uri,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


@dataclass(frozen=True)
class Settlement:
    """Outcome of a successful ``buy``."""

    asset_id: int
    seller_id: str
    buyer_id: str
    price: Decimal
    settled_price: Decimal
    event_seq: int


_MAX_PRICE = Decimal(str(settings.max_listing_price))

# Task -> asset id whose purchase that task is currently settling.
_settling: dict[asyncio.Task, int] = {}


def _positive_price(price) -> Decimal:
    try:
        price_d = to_decimal(price)
    except ValueError:
        raise InvalidPriceError(price, reason="must be a finite number")
    if price_d <= 0:
        raise InvalidPriceError(price)
    if price_d > _MAX_PRICE:
        raise InvalidPriceError(price, reason=f"must not exceed {_MAX_PRICE}")
    return price_d


def _reject_reentry(asset_id: int) -> None:
    """Refuse engine calls made by a collaborator while ``buy`` is settling.

    Every operation commits the shared session, so a nested one would commit
    the half-done purchase before payment. The asset being bought reads as
    not listed; any other asset gets ``SettlementInProgressError``.
    """
    task = asyncio.current_task()
    settling = _settling.get(task) if task is not None else None
    if settling is None:
        return
    if settling == asset_id:
        raise NotListedError(asset_id)
    raise SettlementInProgressError(asset_id, settling)


@asynccontextmanager
async def _settlement(asset_id: int) -> AsyncIterator[None]:
    task = asyncio.current_task()
    _settling[task] = asset_id
    try:
        yield
    finally:
        del _settling[task]


class MarketEngine:
    """Runs marketplace operations against one session and a set of collaborators.

    Collaborators default to the SQL-backed adapters bound to the same session,
    which makes ``buy`` all-or-nothing through a single session rollback.
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        ownership: OwnershipRegistry | None = None,
        metadata: MetadataStore | None = None,
        payments: ValueTransfer | None = None,
        locks: AssetLockRegistry | None = None,
        overpayment_policy: str | None = None,
    ):
        self.db = db
        self.ownership = ownership or SqlOwnershipRegistry(db)
        self.metadata = metadata or SqlMetadataStore(db)
        self._payments = payments
        self.locks = locks or asset_locks
        self.overpayment_policy = overpayment_policy or settings.overpayment_policy

    def _payments_for(self, asset_id: int) -> ValueTransfer:
        if self._payments is not None:
            return self._payments
        return SqlValueTransfer(self.db, reference_id=asset_id)

    async def _commit(self, event: MarketEvent) -> MarketNotification:
        notification = event_service.to_notification(event)
        await self.db.commit()
        return notification

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_listing(self, asset_id: int) -> ListingView | None:
        row = await registry_service.get_listing(self.db, asset_id)
        return ListingView.from_row(row) if row is not None else None

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def list_asset(self, asset_id: int, price, caller_id: str) -> ListingView:
        """Unlisted -> Listed. The caller must currently own the asset."""
        _reject_reentry(asset_id)
        price_d = _positive_price(price)
        async with self.locks.hold(asset_id):
            owner = await self.ownership.owner_of(asset_id)
            if owner is None:
                raise AssetNotFoundError(asset_id)
            if await registry_service.get_listing(self.db, asset_id) is not None:
                raise AlreadyListedError(asset_id)
            if owner != caller_id:
                logger.debug("list rejected: %s does not own asset %s", caller_id, asset_id)
                raise NotOwnerError(asset_id, caller_id)

            uri = await self.metadata.uri_of(asset_id)
            row = await registry_service.put_listing(self.db, asset_id, caller_id, price_d, uri)
            view = ListingView.from_row(row)
            event = await event_service.record_event(
                self.db,
                event_service.EVENT_LISTED,
                asset_id=asset_id,
                seller_id=caller_id,
                price=price_d,
            )
            notification = await self._commit(event)

        logger.info("Listed asset %s by %s at %s", asset_id, caller_id, price_d)
        await event_service.publish(notification)
        return view

    async def cancel_listing(self, asset_id: int, caller_id: str) -> None:
        """Listed -> Unlisted, by the seller. Ownership is untouched."""
        _reject_reentry(asset_id)
        async with self.locks.hold(asset_id):
            row = await registry_service.get_listing(self.db, asset_id)
            if row is None:
                raise NotListedError(asset_id)
            if row.seller_id != caller_id:
                logger.debug("cancel rejected: %s is not seller of %s", caller_id, asset_id)
                raise NotOwnerError(asset_id, caller_id)

            await registry_service.remove_listing(self.db, asset_id)
            event = await event_service.record_event(
                self.db,
                event_service.EVENT_CANCELLED,
                asset_id=asset_id,
                seller_id=caller_id,
                caller_id=caller_id,
            )
            notification = await self._commit(event)

        logger.info("Cancelled listing of asset %s by %s", asset_id, caller_id)
        await event_service.publish(notification)

    async def update_price(self, asset_id: int, new_price, caller_id: str) -> ListingView:
        """Listed -> Listed with a new price. Seller and metadata snapshot are kept."""
        _reject_reentry(asset_id)
        async with self.locks.hold(asset_id):
            row = await registry_service.get_listing(self.db, asset_id)
            if row is None:
                raise NotListedError(asset_id)
            if row.seller_id != caller_id:
                logger.debug("update rejected: %s is not seller of %s", caller_id, asset_id)
                raise NotOwnerError(asset_id, caller_id)
            price_d = _positive_price(new_price)

            row.price = price_d
            row.updated_at = utcnow()
            await self.db.flush()
            view = ListingView.from_row(row)
            event = await event_service.record_event(
                self.db,
                event_service.EVENT_UPDATED,
                asset_id=asset_id,
                seller_id=row.seller_id,
                caller_id=caller_id,
                price=price_d,
            )
            notification = await self._commit(event)

        logger.info("Updated asset %s price to %s by %s", asset_id, price_d, caller_id)
        await event_service.publish(notification)
        return view

    async def buy(self, asset_id: int, caller_id: str, offered_value) -> Settlement:
        """Listed -> Unlisted, exchanging ownership for payment atomically.

        While the collaborators run, any call they make back into the engine
        is refused, so nothing commits before payment has succeeded.

        Raises:
            NotListedError, SelfTradeError, InsufficientPaymentError: before any write.
            InvalidPriceError: ``offered_value`` is not a finite number.
            PaymentFailedError: the value transfer refused; everything is rolled back.
        """
        _reject_reentry(asset_id)
        try:
            offered = to_decimal(offered_value)
        except ValueError:
            raise InvalidPriceError(offered_value, reason="must be a finite number")
        async with self.locks.hold(asset_id):
            row = await registry_service.get_listing(self.db, asset_id, lock=True)
            if row is None:
                raise NotListedError(asset_id)
            seller_id = row.seller_id
            price = to_decimal(row.price)
            if caller_id == seller_id:
                raise SelfTradeError(asset_id)
            if offered < price:
                raise InsufficientPaymentError(asset_id, offered, price)

            settled = offered if self.overpayment_policy == "forward" else price

            try:
                async with _settlement(asset_id):
                    # Listing goes first: collaborators below must observe "not listed".
                    await registry_service.remove_listing(self.db, asset_id)
                    await self.ownership.transfer(seller_id, caller_id, asset_id)
                    paid = await self._payments_for(asset_id).send(caller_id, seller_id, settled)
                if not paid:
                    raise PaymentFailedError(asset_id)
                event = await event_service.record_event(
                    self.db,
                    event_service.EVENT_BOUGHT,
                    asset_id=asset_id,
                    seller_id=seller_id,
                    buyer_id=caller_id,
                    caller_id=caller_id,
                    price=settled,
                )
            except Exception as exc:
                await self.db.rollback()
                logger.warning(
                    "Rolled back purchase of asset %s by %s: %s", asset_id, caller_id, exc
                )
                raise

            notification = await self._commit(event)

        logger.info(
            "Bought asset %s: %s -> %s for %s (price %s)",
            asset_id, seller_id, caller_id, settled, price,
        )
        await event_service.publish(notification)
        return Settlement(
            asset_id=asset_id,
            seller_id=seller_id,
            buyer_id=caller_id,
            price=price,
            settled_price=settled,
            event_seq=event.seq,
        )


async def get_listing(db: AsyncSession, asset_id: int) -> ListingView:
    """Get the active listing for an asset or raise 404."""
    view = await MarketEngine(db).get_listing(asset_id)
    if view is None:
        raise NotListedError(asset_id)
    return view
