"""Tests for the native value ledger and its value-transfer adapter."""

from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from assetmarket.core.capabilities import ValueTransfer
from assetmarket.models.value_account import ValueLedger
from assetmarket.services import value_service
from assetmarket.services.value_service import SqlValueTransfer, to_decimal


def test_to_decimal_quantizes():
    assert to_decimal(1.1) == Decimal("1.100000")
    assert to_decimal("0.0000015") == Decimal("0.000002")
    assert str(to_decimal(Decimal("3"))) == "3.000000"


def test_to_decimal_rejects_garbage():
    with pytest.raises(ValueError):
        to_decimal("ten")


@pytest.mark.parametrize("value", ["NaN", Decimal("NaN"), float("inf"), "-Infinity"])
def test_to_decimal_rejects_non_finite(value):
    with pytest.raises(ValueError):
        to_decimal(value)


async def test_sql_value_transfer_is_a_value_transfer(db: AsyncSession):
    assert isinstance(SqlValueTransfer(db), ValueTransfer)


async def test_credit_and_balance(db: AsyncSession):
    await value_service.credit(db, "alice", 25)
    await value_service.credit(db, "alice", "5.5")

    bal = await value_service.get_balance(db, "alice")
    assert bal["balance"] == Decimal("30.5")
    assert bal["total_credited"] == Decimal("30.5")


async def test_credit_rejects_non_positive(db: AsyncSession):
    with pytest.raises(ValueError):
        await value_service.credit(db, "alice", 0)


async def test_unknown_account_balance_is_zero(db: AsyncSession):
    bal = await value_service.get_balance(db, "nobody")
    assert bal["balance"] == Decimal("0")


async def test_send_moves_value(db: AsyncSession, fund):
    await fund("bob", 10)

    ok = await SqlValueTransfer(db, reference_id=7).send("bob", "alice", Decimal("4"))
    await db.commit()

    assert ok is True
    assert (await value_service.get_balance(db, "bob"))["balance"] == Decimal("6")
    alice = await value_service.get_balance(db, "alice")
    assert alice["balance"] == Decimal("4")
    assert alice["total_received"] == Decimal("4")

    row = (await db.execute(
        select(ValueLedger).where(ValueLedger.tx_type == "payment")
    )).scalar_one()
    assert row.reference_id == 7
    assert row.memo == "asset:7"


async def test_send_refuses_unknown_payer(db: AsyncSession):
    assert await SqlValueTransfer(db).send("ghost", "alice", Decimal("1")) is False


async def test_send_refuses_insufficient_balance(db: AsyncSession, fund):
    await fund("bob", 3)
    assert await SqlValueTransfer(db).send("bob", "alice", Decimal("3.000001")) is False
    assert (await value_service.get_balance(db, "bob"))["balance"] == Decimal("3")


async def test_send_refuses_non_positive(db: AsyncSession, fund):
    await fund("bob", 3)
    assert await SqlValueTransfer(db).send("bob", "alice", Decimal("0")) is False


async def test_send_to_self_leaves_balance(db: AsyncSession, fund):
    await fund("bob", 3)
    assert await SqlValueTransfer(db).send("bob", "bob", Decimal("2")) is True
    assert (await value_service.get_balance(db, "bob"))["balance"] == Decimal("3")


async def test_history_pages_newest_first(db: AsyncSession, fund):
    await fund("bob", 10)
    await SqlValueTransfer(db, reference_id=1).send("bob", "alice", Decimal("1"))
    await db.commit()

    rows, total = await value_service.get_history(db, "bob")
    assert total == 2
    assert {r.tx_type for r in rows} == {"credit", "payment"}

    rows, total = await value_service.get_history(db, "alice", page_size=1)
    assert total == 1
    assert rows[0].from_account_id == "bob"
