import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from assetmarket.database import get_db
from assetmarket.models.asset import Asset
from assetmarket.models.listing import Listing
from assetmarket.schemas.common import HealthResponse
from assetmarket.services import event_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

_VERSION = "0.1.0"


@router.get("/health", response_model=HealthResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    assets = (await db.execute(select(func.count(Asset.id)))).scalar() or 0
    listings = (await db.execute(select(func.count(Listing.asset_id)))).scalar() or 0
    events = await event_service.count_events(db)

    return HealthResponse(
        status="healthy",
        version=_VERSION,
        assets_count=assets,
        listings_count=listings,
        events_count=events,
    )


@router.get("/health/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)):
    """Readiness probe: verifies DB connectivity."""
    try:
        await db.execute(text("SELECT 1"))
        return {"status": "ready", "database": "connected"}
    except Exception:
        logger.exception("Readiness check failed, database unreachable")
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "database": "unavailable"},
        )
