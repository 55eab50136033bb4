"""Market notifications: persisted, hash-chained, then fanned out.

``record_event`` appends to ``market_events`` inside the operation's own
transaction, so a rolled-back operation leaves no event behind. ``publish``
runs after commit and hands the typed notification to every subscriber;
subscriber failures are logged and never reach the operation.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from assetmarket.core.hashing import compute_event_hash
from assetmarket.models.market_event import MarketEvent
from assetmarket.schemas.event import (
    Bought,
    Cancelled,
    Listed,
    MarketNotification,
    Updated,
)

logger = logging.getLogger(__name__)

EVENT_LISTED = "listed"
EVENT_CANCELLED = "cancelled"
EVENT_UPDATED = "updated"
EVENT_BOUGHT = "bought"

Subscriber = Callable[[MarketNotification], Any]
_subscribers: list[Subscriber] = []


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ts(value: datetime) -> str:
    """Timezone-independent timestamp text (SQLite returns naive datetimes)."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat()


def _hash_row(row: MarketEvent, prev_hash: str | None) -> str:
    return compute_event_hash(
        prev_hash,
        row.seq,
        row.event_type,
        row.asset_id,
        row.seller_id,
        row.buyer_id,
        row.caller_id,
        row.price,
        _ts(row.created_at),
    )


# ---------------------------------------------------------------------------
# Subscribers
# ---------------------------------------------------------------------------

def subscribe(handler: Subscriber) -> None:
    """Register a sync or async callable that receives every notification."""
    if handler not in _subscribers:
        _subscribers.append(handler)


def unsubscribe(handler: Subscriber) -> bool:
    try:
        _subscribers.remove(handler)
    except ValueError:
        return False
    return True


def clear_subscribers() -> None:
    _subscribers.clear()


async def publish(notification: MarketNotification) -> None:
    """Deliver ``notification`` to all subscribers. Never raises."""
    for handler in list(_subscribers):
        try:
            result = handler(notification)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(
                "Subscriber %r failed on %s #%s",
                handler, notification.event_type, notification.seq,
            )


# ---------------------------------------------------------------------------
# Event log
# ---------------------------------------------------------------------------

async def record_event(
    db: AsyncSession,
    event_type: str,
    *,
    asset_id: int,
    seller_id: str | None = None,
    buyer_id: str | None = None,
    caller_id: str | None = None,
    price: Decimal | None = None,
) -> MarketEvent:
    """Append one event to the log. Flushes, does not commit."""
    latest = await db.execute(
        select(MarketEvent.seq, MarketEvent.entry_hash)
        .order_by(MarketEvent.seq.desc())
        .limit(1)
    )
    last = latest.first()
    prev_seq, prev_hash = (last[0], last[1]) if last else (0, None)

    row = MarketEvent(
        seq=prev_seq + 1,
        event_type=event_type,
        asset_id=asset_id,
        seller_id=seller_id,
        buyer_id=buyer_id,
        caller_id=caller_id,
        price=price,
        prev_hash=prev_hash,
        created_at=_utcnow(),
    )
    row.entry_hash = _hash_row(row, prev_hash)
    db.add(row)
    await db.flush()
    return row


def to_notification(row: MarketEvent) -> MarketNotification:
    """Build the typed notification an indexer consumes from a log row."""
    base = {"seq": row.seq, "asset_id": row.asset_id, "occurred_at": row.created_at}
    if row.event_type == EVENT_LISTED:
        return Listed(**base, seller_id=row.seller_id, price=row.price)
    if row.event_type == EVENT_CANCELLED:
        return Cancelled(**base, caller_id=row.caller_id)
    if row.event_type == EVENT_UPDATED:
        return Updated(**base, caller_id=row.caller_id, new_price=row.price)
    if row.event_type == EVENT_BOUGHT:
        return Bought(
            **base,
            seller_id=row.seller_id,
            buyer_id=row.buyer_id,
            settled_price=row.price,
        )
    raise ValueError(f"Unknown market event type: {row.event_type}")


async def list_events(
    db: AsyncSession, after_seq: int = 0, limit: int = 100
) -> list[MarketEvent]:
    """Events with ``seq > after_seq`` in log order."""
    result = await db.execute(
        select(MarketEvent)
        .where(MarketEvent.seq > after_seq)
        .order_by(MarketEvent.seq.asc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def count_events(db: AsyncSession) -> int:
    return (await db.execute(select(func.count(MarketEvent.id)))).scalar() or 0


async def verify_chain(db: AsyncSession, batch_size: int = 500) -> dict:
    """Recompute every entry hash and check the links between them."""
    checked = 0
    prev_hash: str | None = None
    after_seq = 0
    while True:
        rows = await list_events(db, after_seq=after_seq, limit=batch_size)
        if not rows:
            break
        for row in rows:
            if row.prev_hash != prev_hash or _hash_row(row, prev_hash) != row.entry_hash:
                logger.warning("Market event chain broken at seq %s", row.seq)
                return {"valid": False, "checked": checked, "broken_at_seq": row.seq}
            prev_hash = row.entry_hash
            checked += 1
        after_seq = rows[-1].seq
    return {"valid": True, "checked": checked, "broken_at_seq": None}
