from datetime import datetime
from decimal import Decimal
from typing import Literal, Union

from pydantic import BaseModel


class _Notification(BaseModel):
    seq: int
    asset_id: int
    occurred_at: datetime

    model_config = {"frozen": True}


class Listed(_Notification):
    event_type: Literal["listed"] = "listed"
    seller_id: str
    price: Decimal


class Cancelled(_Notification):
    event_type: Literal["cancelled"] = "cancelled"
    caller_id: str


class Updated(_Notification):
    event_type: Literal["updated"] = "updated"
    caller_id: str
    new_price: Decimal


class Bought(_Notification):
    event_type: Literal["bought"] = "bought"
    seller_id: str
    buyer_id: str
    settled_price: Decimal


MarketNotification = Union[Listed, Cancelled, Updated, Bought]


class MarketEventResponse(BaseModel):
    seq: int
    event_type: str
    asset_id: int
    seller_id: str | None = None
    buyer_id: str | None = None
    caller_id: str | None = None
    price: Decimal | None = None
    prev_hash: str | None = None
    entry_hash: str
    created_at: datetime

    model_config = {"from_attributes": True}


class MarketEventListResponse(BaseModel):
    after_seq: int
    next_seq: int
    events: list[MarketEventResponse]


class ChainVerificationResponse(BaseModel):
    valid: bool
    checked: int
    broken_at_seq: int | None = None
