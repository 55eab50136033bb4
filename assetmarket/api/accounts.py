from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from assetmarket.core.auth import get_current_account_id, require_admin
from assetmarket.database import get_db
from assetmarket.schemas.account import (
    BalanceResponse,
    CreditRequest,
    HistoryResponse,
    LedgerEntry,
)
from assetmarket.services import value_service

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.get("/me", response_model=BalanceResponse)
async def my_balance(
    db: AsyncSession = Depends(get_db),
    current_account: str = Depends(get_current_account_id),
):
    return BalanceResponse(**await value_service.get_balance(db, current_account))


@router.get("/me/history", response_model=HistoryResponse)
async def my_history(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_account: str = Depends(get_current_account_id),
):
    rows, total = await value_service.get_history(db, current_account, page, page_size)
    entries = []
    for row in rows:
        outgoing = row.from_account_id == current_account
        entries.append(LedgerEntry(
            id=row.id,
            direction="out" if outgoing else "in",
            tx_type=row.tx_type,
            amount=row.amount,
            counterparty_id=row.to_account_id if outgoing else row.from_account_id,
            reference_id=row.reference_id,
            memo=row.memo,
            created_at=row.created_at,
        ))
    return HistoryResponse(entries=entries, total=total, page=page, page_size=page_size)


@router.post("/{account_id}/credit", response_model=BalanceResponse)
async def credit_account(
    account_id: str,
    req: CreditRequest,
    db: AsyncSession = Depends(get_db),
    admin_id: str = Depends(require_admin),
):
    await value_service.credit(db, account_id, req.amount, memo=req.memo)
    return BalanceResponse(**await value_service.get_balance(db, account_id))
