from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from assetmarket.database import get_db
from assetmarket.schemas.event import (
    ChainVerificationResponse,
    MarketEventListResponse,
    MarketEventResponse,
)
from assetmarket.services import event_service

router = APIRouter(prefix="/events", tags=["events"])


@router.get("", response_model=MarketEventListResponse)
async def list_events(
    after_seq: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """Indexer feed: replay the market from ``after_seq`` onwards."""
    rows = await event_service.list_events(db, after_seq=after_seq, limit=limit)
    return MarketEventListResponse(
        after_seq=after_seq,
        next_seq=rows[-1].seq if rows else after_seq,
        events=[MarketEventResponse.model_validate(row) for row in rows],
    )


@router.get("/verify", response_model=ChainVerificationResponse)
async def verify_events(db: AsyncSession = Depends(get_db)):
    return ChainVerificationResponse(**await event_service.verify_chain(db))
