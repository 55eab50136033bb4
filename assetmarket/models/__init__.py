from assetmarket.models.asset import Asset, AssetSequence
from assetmarket.models.listing import Listing
from assetmarket.models.market_event import MarketEvent
from assetmarket.models.value_account import ValueAccount, ValueLedger

__all__ = [
    "Asset",
    "AssetSequence",
    "Listing",
    "MarketEvent",
    "ValueAccount",
    "ValueLedger",
]
