"""SHA-256 hash chain utilities for the tamper-evident market event log."""

import hashlib
from decimal import Decimal

_QUANT = Decimal("0.000001")


def _norm(value) -> str:
    """Normalize a numeric value to 6 decimal places for deterministic hashing."""
    if value is None:
        return "NONE"
    return str(Decimal(str(value)).quantize(_QUANT))


def compute_event_hash(
    prev_hash: str | None,
    seq: int,
    event_type: str,
    asset_id: int,
    seller_id: str | None,
    buyer_id: str | None,
    caller_id: str | None,
    price,
    timestamp_iso: str,
) -> str:
    payload = "|".join([
        prev_hash or "GENESIS",
        str(seq),
        event_type,
        str(asset_id),
        seller_id or "-",
        buyer_id or "-",
        caller_id or "-",
        _norm(price),
        timestamp_iso,
    ])
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
