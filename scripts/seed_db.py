"""Seed the asset market with demo assets, balances and listings.

Writes straight through the service layer, so no server needs to be running.
Prints a bearer token per demo account for trying the HTTP API by hand.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from decimal import Decimal

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from assetmarket.core.auth import create_access_token
from assetmarket.database import async_session, dispose_engine, init_db
from assetmarket.services import ownership_service, value_service
from assetmarket.services.market_service import MarketEngine

DEMO_ACCOUNTS = {
    "alice": Decimal("0"),
    "bob": Decimal("500"),
    "carol": Decimal("250"),
}

DEMO_ASSETS = [
    ("alice", "ipfs://bafy-demo/sunrise.json", Decimal("120")),
    ("alice", "ipfs://bafy-demo/harbour.json", Decimal("75.5")),
    ("carol", "ipfs://bafy-demo/glacier.json", Decimal("300")),
    ("carol", "ipfs://bafy-demo/orchard.json", None),
]


async def seed() -> None:
    await init_db()
    async with async_session() as db:
        print("=== Seeding Asset Market ===\n")

        for account_id, amount in DEMO_ACCOUNTS.items():
            if amount > 0:
                await value_service.credit(db, account_id, amount, memo="demo funding")
            print(f"  Account {account_id}: balance {amount}")
        print()

        engine = MarketEngine(db)
        for owner_id, uri, price in DEMO_ASSETS:
            asset = await ownership_service.mint_asset(db, owner_id, uri, minted_by="seed")
            if price is None:
                print(f"  Minted #{asset.id} for {owner_id} (not listed)")
                continue
            await engine.list_asset(asset.id, price, owner_id)
            print(f"  Minted #{asset.id} for {owner_id}, listed at {price}")

        print("\n=== Tokens ===")
        for account_id in DEMO_ACCOUNTS:
            print(f"  {account_id}: {create_access_token(account_id)}")

    await dispose_engine()


def main() -> int:
    argparse.ArgumentParser(description=__doc__.splitlines()[0]).parse_args()
    asyncio.run(seed())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
