import time
from typing import Any

import jwt

from realty.core.config import settings


class TokenError(RuntimeError):
    pass


def build_access_token(*, user_id: str, ttl_seconds: int = 7 * 24 * 3600) -> str:
    issued_at = int(time.time())
    payload = {
        "sub": user_id,
        "iat": issued_at,
        "exp": issued_at + ttl_seconds,
    }
    return jwt.encode(payload, settings.jwt_secret.get_secret_value(), algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    raw = (token or "").strip()
    if not raw:
        raise TokenError("Access token is empty.")

    try:
        payload = jwt.decode(raw, settings.jwt_secret.get_secret_value(), algorithms=[settings.jwt_algorithm])
    except jwt.InvalidTokenError as exc:
        raise TokenError("Invalid access token.") from exc

    # older clients were issued tokens with an "_id" claim
    subject = payload.get("sub") or payload.get("_id")
    if not subject:
        raise TokenError("Token has no subject.")
    payload["sub"] = str(subject)
    return payload
