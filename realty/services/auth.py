from dataclasses import dataclass

from fastapi import Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from realty.core.errors import AuthenticationError
from realty.core.security import TokenError, decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Actor:
    user_id: str


async def get_actor(
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
) -> Actor:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Authentication failed")

    try:
        payload = decode_access_token(credentials.credentials)
    except TokenError as e:
        raise AuthenticationError("Authentication failed", context={"reason": str(e)}) from e

    return Actor(user_id=payload["sub"])
