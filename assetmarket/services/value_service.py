"""Native value ledger: the default value-transfer adapter for settlements.

Every movement (credit, payment) is recorded as an immutable row in
``value_ledger`` with matching balance updates on ``value_accounts``.

- **Decimal everywhere**: amounts are ``Decimal`` quantised to 6 places.
- **Refuse, don't raise**: ``SqlValueTransfer.send`` reports an unknown payer
  or an insufficient balance by returning ``False``; the marketplace engine
  turns that into a rolled-back purchase.
- **Deterministic lock ordering**: accounts are locked by sorted id so two
  opposite transfers cannot deadlock on PostgreSQL.
- **No commits inside ``send``**: it participates in the caller's transaction.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from assetmarket.database import is_sqlite
from assetmarket.models.value_account import ValueAccount, ValueLedger, utcnow

logger = logging.getLogger(__name__)

_QUANT = Decimal("0.000001")


def to_decimal(value: float | int | str | Decimal) -> Decimal:
    """Coerce a value to Decimal with 6 decimal places.

    Raises ValueError for anything that is not a finite number.
    """
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Not a valid amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Not a finite amount: {value!r}")
    return amount.quantize(_QUANT, rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# Account helpers (private)
# ---------------------------------------------------------------------------

async def _get_account(
    db: AsyncSession, account_id: str, *, lock: bool = False
) -> ValueAccount | None:
    stmt = select(ValueAccount).where(ValueAccount.account_id == account_id)
    if lock and not is_sqlite(db):
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def _get_or_create_account(db: AsyncSession, account_id: str) -> ValueAccount:
    account = await _get_account(db, account_id, lock=True)
    if account is None:
        account = ValueAccount(
            account_id=account_id,
            balance=Decimal("0"),
            total_credited=Decimal("0"),
            total_sent=Decimal("0"),
            total_received=Decimal("0"),
        )
        db.add(account)
        await db.flush()
    return account


# ---------------------------------------------------------------------------
# Value-transfer adapter
# ---------------------------------------------------------------------------

class SqlValueTransfer:
    """Moves value between accounts inside the caller's session."""

    def __init__(self, db: AsyncSession, reference_id: int | None = None):
        self.db = db
        self.reference_id = reference_id

    async def send(self, payer_id: str, payee_id: str, amount: Decimal) -> bool:
        amount_d = to_decimal(amount)
        if amount_d <= 0:
            logger.warning("Refusing non-positive transfer of %s from %s", amount_d, payer_id)
            return False

        payer = await _get_account(self.db, payer_id)
        if payer is None:
            logger.info("Refusing transfer: no value account for %s", payer_id)
            return False

        # Lock in deterministic order before touching balances
        locked: dict[str, ValueAccount] = {}
        for acct_id in sorted({payer_id, payee_id}):
            if acct_id == payee_id and acct_id != payer_id:
                locked[acct_id] = await _get_or_create_account(self.db, acct_id)
            else:
                locked[acct_id] = await _get_account(self.db, acct_id, lock=True)

        sender = locked[payer_id]
        receiver = locked[payee_id]

        sender_balance = Decimal(str(sender.balance))
        if sender_balance < amount_d:
            logger.info(
                "Refusing transfer: %s has %s, needs %s", payer_id, sender_balance, amount_d
            )
            return False

        now = utcnow()
        sender.balance = sender_balance - amount_d
        sender.total_sent = Decimal(str(sender.total_sent)) + amount_d
        sender.updated_at = now

        receiver.balance = Decimal(str(receiver.balance)) + amount_d
        receiver.total_received = Decimal(str(receiver.total_received)) + amount_d
        receiver.updated_at = now

        self.db.add(ValueLedger(
            from_account_id=payer_id,
            to_account_id=payee_id,
            amount=amount_d,
            tx_type="payment",
            reference_id=self.reference_id,
            memo=f"asset:{self.reference_id}" if self.reference_id is not None else "",
            created_at=now,
        ))
        await self.db.flush()
        return True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

async def credit(
    db: AsyncSession, account_id: str, amount: float | Decimal, memo: str = "Credit"
) -> ValueAccount:
    """Credit value to an account from outside the ledger (funding, admin grants)."""
    amount_d = to_decimal(amount)
    if amount_d <= 0:
        raise ValueError("Credit amount must be positive")

    account = await _get_or_create_account(db, account_id)
    account.balance = Decimal(str(account.balance)) + amount_d
    account.total_credited = Decimal(str(account.total_credited)) + amount_d
    account.updated_at = utcnow()

    db.add(ValueLedger(
        from_account_id=None,
        to_account_id=account_id,
        amount=amount_d,
        tx_type="credit",
        memo=memo,
    ))
    await db.commit()
    await db.refresh(account)

    logger.info("Credit: +%s to %s (%s)", amount_d, account_id, memo)
    return account


async def get_balance(db: AsyncSession, account_id: str) -> dict:
    """Balance summary for an account; unknown accounts read as zero."""
    account = await _get_account(db, account_id)
    if account is None:
        return {
            "account_id": account_id,
            "balance": Decimal("0"),
            "total_credited": Decimal("0"),
            "total_sent": Decimal("0"),
            "total_received": Decimal("0"),
        }
    return {
        "account_id": account_id,
        "balance": to_decimal(account.balance),
        "total_credited": to_decimal(account.total_credited),
        "total_sent": to_decimal(account.total_sent),
        "total_received": to_decimal(account.total_received),
    }


async def get_history(
    db: AsyncSession, account_id: str, page: int = 1, page_size: int = 20
) -> tuple[list[ValueLedger], int]:
    """Ledger rows touching ``account_id``, newest first."""
    cond = or_(
        ValueLedger.from_account_id == account_id,
        ValueLedger.to_account_id == account_id,
    )
    total = (await db.execute(select(func.count(ValueLedger.id)).where(cond))).scalar() or 0
    result = await db.execute(
        select(ValueLedger)
        .where(cond)
        .order_by(ValueLedger.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(result.scalars().all()), total
