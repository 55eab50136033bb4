from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from assetmarket.config import settings

_MAX_PRICE = Decimal(str(settings.max_listing_price))


class ListingCreateRequest(BaseModel):
    asset_id: int = Field(..., ge=1)
    price: Decimal = Field(..., gt=0, le=_MAX_PRICE, decimal_places=6)


class PriceUpdateRequest(BaseModel):
    price: Decimal = Field(..., gt=0, le=_MAX_PRICE, decimal_places=6)


class BuyRequest(BaseModel):
    offered_value: Decimal = Field(..., ge=0, decimal_places=6)


class ListingResponse(BaseModel):
    asset_id: int
    seller_id: str
    price: Decimal
    metadata_uri: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class ListingListResponse(BaseModel):
    total: int
    page: int
    page_size: int
    results: list[ListingResponse]


class SettlementResponse(BaseModel):
    asset_id: int
    seller_id: str
    buyer_id: str
    price: Decimal
    settled_price: Decimal
    event_seq: int

    model_config = {"from_attributes": True}
