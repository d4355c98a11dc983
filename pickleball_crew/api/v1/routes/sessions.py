from fastapi import APIRouter, Depends, Query, status
from pickleball_crew.schemas import SessionCreate, SessionUpdate, SessionOut, PaginatedResponse, PaginationMetadata
from pickleball_crew.db.session import get_session
from pickleball_crew.db.models import Profile
from pickleball_crew.services.session_service import SessionService
from pickleball_crew.auth import get_current_user, get_optional_user
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import datetime
from uuid import UUID

router = APIRouter(prefix="/sessions", tags=["sessions"])


def get_session_service(db: AsyncSession = Depends(get_session)) -> SessionService:
    return SessionService(db)


@router.post("/", response_model=SessionOut, status_code=status.HTTP_201_CREATED)
async def create_session_endpoint(
    payload: SessionCreate,
    user: Profile = Depends(get_current_user),
    session_service: SessionService = Depends(get_session_service)
):
    """Create a session; cost and peak flag are computed from time, duration and venue."""
    return await session_service.create_session(payload, user)


@router.get("/", response_model=PaginatedResponse[SessionOut])
async def list_sessions_endpoint(
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    per_page: int = Query(20, ge=1, le=100, description="Number of items per page"),
    created_by: Optional[UUID] = Query(None, description="Filter by creator profile ID"),
    starts_after: Optional[datetime] = Query(None, description="Sessions starting at or after this datetime"),
    starts_before: Optional[datetime] = Query(None, description="Sessions starting before this datetime"),
    session_service: SessionService = Depends(get_session_service)
):
    """
    List public sessions in start order.
    - page: Page number, 1-indexed (default: 1)
    - per_page: Number of items per page (default: 20, max: 100)
    - created_by: Filter by creator profile ID
    - starts_after / starts_before: Start time window (ISO format)
    """
    skip = (page - 1) * per_page
    total_count, sessions = await session_service.list_sessions_paginated(
        skip=skip,
        limit=per_page,
        created_by=created_by,
        starts_after=starts_after,
        starts_before=starts_before,
    )
    total_pages = (total_count + per_page - 1) // per_page

    return PaginatedResponse[SessionOut](
        items=sessions,
        pagination=PaginationMetadata(
            total=total_count,
            page=page,
            per_page=per_page,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1
        )
    )


@router.get("/history", response_model=List[SessionOut])
async def session_history(
    user: Profile = Depends(get_current_user),
    session_service: SessionService = Depends(get_session_service)
):
    """Past sessions the current member created or played in."""
    return await session_service.history(user)


@router.get("/private", response_model=SessionOut)
async def get_private_session(
    key: Optional[str] = Query(None, description="Private session key from the invite link"),
    user: Optional[Profile] = Depends(get_optional_user),
    session_service: SessionService = Depends(get_session_service)
):
    return await session_service.get_private_session(key, user)


@router.get("/{session_id}", response_model=SessionOut)
async def get_session_detail(
    session_id: UUID,
    user: Optional[Profile] = Depends(get_optional_user),
    session_service: SessionService = Depends(get_session_service)
):
    return await session_service.get_session(session_id, user)


@router.patch("/{session_id}", response_model=SessionOut)
async def update_session_endpoint(
    session_id: UUID,
    payload: SessionUpdate,
    user: Profile = Depends(get_current_user),
    session_service: SessionService = Depends(get_session_service)
):
    """Update a session. Only its creator or an admin may do this."""
    return await session_service.update_session(session_id, payload, user)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session_endpoint(
    session_id: UUID,
    user: Profile = Depends(get_current_user),
    session_service: SessionService = Depends(get_session_service)
):
    """Delete a session and every RSVP to it."""
    await session_service.delete_session(session_id, user)
    return None
