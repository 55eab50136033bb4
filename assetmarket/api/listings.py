from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from assetmarket.core.auth import get_current_account_id
from assetmarket.database import get_db
from assetmarket.schemas.listing import (
    BuyRequest,
    ListingCreateRequest,
    ListingListResponse,
    ListingResponse,
    PriceUpdateRequest,
    SettlementResponse,
)
from assetmarket.services import market_service, registry_service
from assetmarket.services.market_service import ListingView, MarketEngine

router = APIRouter(prefix="/listings", tags=["listings"])


def get_market_engine(db: AsyncSession = Depends(get_db)) -> MarketEngine:
    """Engine bound to the request session with the default SQL collaborators."""
    return MarketEngine(db)


@router.get("", response_model=ListingListResponse)
async def list_listings(
    seller_id: str | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    rows, total = await registry_service.list_listings(db, seller_id, page, page_size)
    return ListingListResponse(
        total=total,
        page=page,
        page_size=page_size,
        results=[_listing_to_response(ListingView.from_row(row)) for row in rows],
    )


@router.get("/{asset_id}", response_model=ListingResponse)
async def get_listing(asset_id: int, db: AsyncSession = Depends(get_db)):
    view = await market_service.get_listing(db, asset_id)
    return _listing_to_response(view)


@router.post("", response_model=ListingResponse, status_code=201)
async def create_listing(
    req: ListingCreateRequest,
    engine: MarketEngine = Depends(get_market_engine),
    current_account: str = Depends(get_current_account_id),
):
    view = await engine.list_asset(req.asset_id, req.price, current_account)
    return _listing_to_response(view)


@router.patch("/{asset_id}", response_model=ListingResponse)
async def update_price(
    asset_id: int,
    req: PriceUpdateRequest,
    engine: MarketEngine = Depends(get_market_engine),
    current_account: str = Depends(get_current_account_id),
):
    view = await engine.update_price(asset_id, req.price, current_account)
    return _listing_to_response(view)


@router.delete("/{asset_id}")
async def cancel_listing(
    asset_id: int,
    engine: MarketEngine = Depends(get_market_engine),
    current_account: str = Depends(get_current_account_id),
):
    await engine.cancel_listing(asset_id, current_account)
    return {"status": "cancelled", "asset_id": asset_id}


@router.post("/{asset_id}/buy", response_model=SettlementResponse)
async def buy(
    asset_id: int,
    req: BuyRequest,
    engine: MarketEngine = Depends(get_market_engine),
    current_account: str = Depends(get_current_account_id),
):
    settlement = await engine.buy(asset_id, current_account, req.offered_value)
    return SettlementResponse.model_validate(settlement)


def _listing_to_response(view: ListingView) -> ListingResponse:
    return ListingResponse(
        asset_id=view.asset_id,
        seller_id=view.seller_id,
        price=view.price,
        metadata_uri=view.metadata_uri,
        created_at=view.created_at,
        updated_at=view.updated_at,
    )
