"""Authentication routes for registration, login, logout, and token management."""
from fastapi import APIRouter, Depends, status, Request
from fastapi.security import HTTPAuthorizationCredentials
from pickleball_crew.schemas import ProfileCreate, ProfileOut, Token, TokenResponse, LoginRequest, RefreshTokenRequest
from pickleball_crew.services.auth_service import AuthService
from pickleball_crew.db.session import get_session
from pickleball_crew.db.models import Profile
from pickleball_crew.auth import get_current_user, security
from pickleball_crew.core.rate_limit import limiter
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/auth", tags=["auth"])


def get_auth_service(session: AsyncSession = Depends(get_session)) -> AuthService:
    return AuthService(session)


@router.post("/register", response_model=ProfileOut, status_code=status.HTTP_201_CREATED)
@limiter.limit("3/minute")
async def register(
    request: Request,
    payload: ProfileCreate,
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Register a new crew member.

    Rate limit: 3 requests per minute

    Raises:
        HTTPException: If email already exists or password is weak
    """
    return await auth_service.register(payload)


@router.post("/login", response_model=TokenResponse)
@limiter.limit("5/minute")
async def login(
    request: Request,
    form_data: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Login endpoint returning access and refresh tokens.

    Rate limit: 5 requests per minute
    """
    return await auth_service.login(form_data)


@router.post("/refresh", response_model=Token)
@limiter.limit("10/minute")
async def refresh_access_token(
    request: Request,
    payload: RefreshTokenRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """Exchange a refresh token for a new access token."""
    return await auth_service.refresh_access_token(payload.refresh_token)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    current_user: Profile = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Revoke the access token sent with this request."""
    await auth_service.logout(credentials.credentials)
    return None


@router.get("/me", response_model=ProfileOut)
async def get_current_user_info(current_user: Profile = Depends(get_current_user)):
    return current_user
