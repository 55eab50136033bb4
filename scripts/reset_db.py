"""Drop and recreate all asset market tables."""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from assetmarket.config import settings
from assetmarket.database import dispose_engine, drop_db, init_db


async def _reset_db() -> None:
    print(f"Resetting {settings.database_url}")
    print("Dropping all tables...")
    await drop_db()
    print("Creating all tables...")
    await init_db()
    await dispose_engine()
    print("Database reset complete.")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reset the local asset market database.")
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Skip the confirmation prompt.",
    )
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    if not args.yes:
        answer = input("This deletes every asset, listing, balance and event. Continue? [y/N] ")
        if answer.strip().lower() != "y":
            print("Aborted.")
            return 1
    asyncio.run(_reset_db())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
