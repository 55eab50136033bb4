"""Narrow interfaces the marketplace engine depends on.

The engine never reaches into ownership, metadata or balances directly; it is
handed adapters that satisfy these protocols. The SQL-backed defaults live in
``assetmarket.services.ownership_service`` and ``assetmarket.services.value_service``.

Adapters used by ``buy`` must write through the engine's session so that a
rollback of the session also undoes their effects.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol, runtime_checkable


@runtime_checkable
class OwnershipRegistry(Protocol):
    async def owner_of(self, asset_id: int) -> str | None:
        """Current owner, or ``None`` if the asset does not exist."""
        ...

    async def transfer(self, from_id: str, to_id: str, asset_id: int) -> None:
        """Reassign ``asset_id``. Raises ``NotOwnerError`` if ``from_id`` is not the owner."""
        ...


@runtime_checkable
class MetadataStore(Protocol):
    async def uri_of(self, asset_id: int) -> str:
        ...


@runtime_checkable
class ValueTransfer(Protocol):
    async def send(self, payer_id: str, payee_id: str, amount: Decimal) -> bool:
        """Move ``amount`` from payer to payee. ``False`` means the transfer was refused."""
        ...


@runtime_checkable
class IdAllocator(Protocol):
    async def next_id(self) -> int:
        ...
