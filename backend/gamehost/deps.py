from typing import AsyncIterator, Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from .config import Settings, get_settings
from .database import async_session
from .domain.errors import ErrorCode
from .routers.errors import BookingHTTPException
from .utils.auth import decode_access_token


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization is None:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _decode(token: str, settings: Settings) -> int:
    try:
        return decode_access_token(token, secret=settings.auth_secret, algorithms=[settings.auth_algorithm])
    except ValueError as exc:
        raise BookingHTTPException(ErrorCode.UNAUTHORIZED, "Invalid or expired token") from exc


async def get_current_user_id(
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> int:
    """Staff user id from a `Bearer` JWT; 401 when missing or invalid."""
    token = _bearer_token(authorization)
    if token is None:
        raise BookingHTTPException(ErrorCode.UNAUTHORIZED, "Bearer token required")
    return _decode(token, settings)


async def get_optional_user_id(
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> Optional[int]:
    """Guests book anonymously; a token that is present must still be valid."""
    token = _bearer_token(authorization)
    if token is None:
        return None
    return _decode(token, settings)
