from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class BalanceResponse(BaseModel):
    account_id: str
    balance: Decimal
    total_credited: Decimal
    total_sent: Decimal
    total_received: Decimal


class CreditRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=6)
    memo: str = Field(default="Credit", max_length=255)


class LedgerEntry(BaseModel):
    id: str
    direction: str  # in | out
    tx_type: str
    amount: Decimal
    counterparty_id: str | None = None
    reference_id: int | None = None
    memo: str | None = None
    created_at: datetime | None = None


class HistoryResponse(BaseModel):
    entries: list[LedgerEntry]
    total: int
    page: int
    page_size: int
