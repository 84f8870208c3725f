from __future__ import annotations

from jose import jwt

from coverdesk.core.config import get_settings


def decode_token(token: str) -> dict:
    """Decode a bearer token issued by the school's identity service.

    Raises ``jose.JWTError`` when the signature or expiry is invalid.
    """
    settings = get_settings()
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
