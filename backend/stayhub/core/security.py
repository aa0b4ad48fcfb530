"""
Bearer token decoding.

Tokens are issued by the identity service; this core only verifies the
signature and trusts the claims verbatim.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from stayhub.core.config import get_settings
from stayhub.core.exceptions import AuthenticationError

settings = get_settings()

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """Authenticated caller."""

    id: str
    is_host: bool = False


def create_access_token(data: dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Sign a token the same way the identity service does. Used by tests and tooling."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=30))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_principal(token: str) -> Principal:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise AuthenticationError()

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError()
    return Principal(id=str(user_id), is_host=bool(payload.get("is_host", False)))


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Principal:
    """FastAPI dependency resolving the bearer token into a Principal."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Not authenticated")
    return decode_principal(credentials.credentials)
