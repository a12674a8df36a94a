"""
Stall Service — Security helper (JWT decode only, shared secret)
"""
from jose import jwt
from typing import Any
from stall.core.config import get_settings

settings = get_settings()


def decode_token(token: str) -> dict[str, Any]:
    """Decode and validate a JWT. Raises JWTError on failure."""
    return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])


def user_id_from_claims(claims: dict[str, Any]) -> str | None:
    return claims.get("user_id") or claims.get("sub")


def is_admin_claims(claims: dict[str, Any]) -> bool:
    return bool(claims.get("is_admin"))
