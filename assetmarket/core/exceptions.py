from decimal import Decimal

from fastapi import HTTPException, status


class MarketError(HTTPException):
    """Base class for every expected, recoverable marketplace failure."""

    code = "market_error"

    def __init__(self, status_code: int, detail: str):
        super().__init__(status_code=status_code, detail=detail)


class AlreadyListedError(MarketError):
    code = "already_listed"

    def __init__(self, asset_id: int):
        self.asset_id = asset_id
        super().__init__(status.HTTP_409_CONFLICT, f"Asset {asset_id} is already listed")


class NotListedError(MarketError):
    code = "not_listed"

    def __init__(self, asset_id: int):
        self.asset_id = asset_id
        super().__init__(status.HTTP_404_NOT_FOUND, f"Asset {asset_id} is not listed")


class NotOwnerError(MarketError):
    code = "not_owner"

    def __init__(self, asset_id: int, caller_id: str):
        self.asset_id = asset_id
        self.caller_id = caller_id
        super().__init__(
            status.HTTP_403_FORBIDDEN,
            f"Account {caller_id} is not authorized for asset {asset_id}",
        )


class SelfTradeError(MarketError):
    code = "self_trade"

    def __init__(self, asset_id: int):
        self.asset_id = asset_id
        super().__init__(status.HTTP_400_BAD_REQUEST, f"Cannot buy your own listing for asset {asset_id}")


class InsufficientPaymentError(MarketError):
    code = "insufficient_payment"

    def __init__(self, asset_id: int, offered: Decimal, price: Decimal):
        self.asset_id = asset_id
        self.offered = offered
        self.price = price
        super().__init__(
            status.HTTP_402_PAYMENT_REQUIRED,
            f"Offered {offered} for asset {asset_id}, listing price is {price}",
        )


class PaymentFailedError(MarketError):
    code = "payment_failed"

    def __init__(self, asset_id: int, reason: str = "value transfer rejected"):
        self.asset_id = asset_id
        self.reason = reason
        super().__init__(
            status.HTTP_402_PAYMENT_REQUIRED,
            f"Payment for asset {asset_id} failed: {reason}",
        )


class AssetNotFoundError(MarketError):
    code = "asset_not_found"

    def __init__(self, asset_id: int):
        self.asset_id = asset_id
        super().__init__(status.HTTP_404_NOT_FOUND, f"Asset {asset_id} not found")


class InvalidPriceError(MarketError):
    code = "invalid_price"

    def __init__(self, price, reason: str = "must be strictly positive"):
        self.price = price
        self.reason = reason
        super().__init__(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            f"Price {reason}, got {price}",
        )


class SettlementInProgressError(MarketError):
    """A collaborator called back into the engine while a purchase was settling."""

    code = "settlement_in_progress"

    def __init__(self, asset_id: int, settling_asset_id: int):
        self.asset_id = asset_id
        self.settling_asset_id = settling_asset_id
        super().__init__(
            status.HTTP_409_CONFLICT,
            f"Cannot operate on asset {asset_id} while the purchase of "
            f"asset {settling_asset_id} is settling",
        )


class UnauthorizedError(MarketError):
    code = "unauthorized"

    def __init__(self, detail: str = "Invalid or missing authentication"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, detail)


class ForbiddenError(MarketError):
    code = "forbidden"

    def __init__(self, detail: str = "Administrator privileges required"):
        super().__init__(status.HTTP_403_FORBIDDEN, detail)
