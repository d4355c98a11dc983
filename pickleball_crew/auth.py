import uuid
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from pickleball_crew.db.session import get_session
from pickleball_crew.db.models.profile import Profile
from pickleball_crew.db.repositories import get_profile
from pickleball_crew.core.security import decode_token, is_token_revoked

# HTTPBearer shows a simple "Authorize" button in Swagger UI for pasting a JWT
security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _profile_from_token(token: str, session: AsyncSession) -> Profile:
    if await is_token_revoked(token):
        raise _unauthorized("Token has been revoked")

    try:
        payload = decode_token(token)
    except ValueError:
        raise _unauthorized()

    if payload.get("type") != "access":
        raise _unauthorized("Invalid token type")

    try:
        profile_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise _unauthorized()

    profile = await get_profile(session, profile_id)
    if not profile:
        raise _unauthorized()
    return profile


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    session: AsyncSession = Depends(get_session)
) -> Profile:
    """
    Resolve the acting member from the bearer token.

    Raises:
        HTTPException: 401 if the token is invalid, revoked or unknown
    """
    return await _profile_from_token(credentials.credentials, session)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
    session: AsyncSession = Depends(get_session)
) -> Optional[Profile]:
    """Like get_current_user, but anonymous requests resolve to None."""
    if credentials is None:
        return None
    return await _profile_from_token(credentials.credentials, session)
