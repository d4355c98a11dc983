"""Authentication service for crew member registration and JWT token operations."""
from sqlalchemy.ext.asyncio import AsyncSession
from pickleball_crew.schemas import ProfileCreate, LoginRequest
from pickleball_crew.db.models.profile import Profile
from pickleball_crew.db.repositories import create_profile, get_profile_by_email
from pickleball_crew.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    revoke_token,
    validate_password,
    verify_password,
)
from pickleball_crew.core.logging import logger
from fastapi import HTTPException, status


def _token_claims(profile: Profile) -> dict:
    return {"sub": str(profile.id), "role": profile.role.value}


class AuthService:
    """
    Service layer for authentication operations.

    Handles registration, login, token refresh, and logout.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def register(self, payload: ProfileCreate) -> Profile:
        """
        Register a new crew member.

        Raises:
            HTTPException: If password is weak or email already exists
        """
        try:
            validate_password(payload.password)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        existing = await get_profile_by_email(self.session, payload.email)
        if existing:
            raise HTTPException(status_code=400, detail="Email already registered")

        profile = await create_profile(self.session, payload)
        logger.info(f"Registered profile {profile.id}")
        return profile

    async def login(self, form_data: LoginRequest) -> dict:
        """
        Authenticate and issue access and refresh tokens.

        Raises:
            HTTPException: If credentials are invalid
        """
        profile = await get_profile_by_email(self.session, form_data.email)
        if not profile or not verify_password(form_data.password, profile.hashed_password):
            raise HTTPException(status_code=401, detail="Incorrect credentials")

        claims = _token_claims(profile)
        return {
            "access_token": create_access_token(claims),
            "refresh_token": create_refresh_token(claims),
            "token_type": "bearer"
        }

    async def refresh_access_token(self, refresh_token: str) -> dict:
        """
        Issue a new access token from a valid refresh token.

        Raises:
            HTTPException: If refresh token is invalid or of the wrong type
        """
        try:
            token_data = decode_token(refresh_token)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid refresh token"
            )

        if token_data.get("type") != "refresh":
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token type"
            )

        claims = {"sub": token_data["sub"], "role": token_data.get("role")}
        return {
            "access_token": create_access_token(claims),
            "token_type": "bearer"
        }

    async def logout(self, token: str):
        await revoke_token(token)
