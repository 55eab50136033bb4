from datetime import datetime, timedelta, timezone

from fastapi import Depends, Header
from jose import JWTError, jwt

from assetmarket.config import settings
from assetmarket.core.exceptions import ForbiddenError, UnauthorizedError


def create_access_token(account_id: str) -> str:
    """Create a JWT token for an account."""
    expire = datetime.now(timezone.utc) + timedelta(hours=settings.jwt_expire_hours)
    payload = {
        "sub": account_id,
        "exp": expire,
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token. Returns the payload."""
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise UnauthorizedError("Invalid or expired token")
    if payload.get("sub") is None:
        raise UnauthorizedError("Token missing subject")
    return payload


def get_current_account_id(authorization: str = Header(None)) -> str:
    """FastAPI dependency that extracts the caller identity from the Authorization header."""
    if not authorization:
        raise UnauthorizedError("Missing Authorization header")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise UnauthorizedError("Authorization header must be: Bearer <token>")

    payload = decode_token(parts[1])
    return payload["sub"]


def is_admin(account_id: str) -> bool:
    return account_id in settings.admin_ids


def require_admin(account_id: str = Depends(get_current_account_id)) -> str:
    """FastAPI dependency that only lets configured administrators through."""
    if not is_admin(account_id):
        raise ForbiddenError()
    return account_id
