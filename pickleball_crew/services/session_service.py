import secrets
import uuid
from datetime import datetime
from typing import List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from pickleball_crew.core.logging import logger
from pickleball_crew.db.models import PlaySession, Profile
from pickleball_crew.db.repositories import (
    count_sessions,
    create_session as db_create_session,
    delete_session as db_delete_session,
    get_session_by_private_key,
    get_session_detail,
    get_session_row,
    get_yes_count,
    list_history,
    list_sessions,
    update_session as db_update_session,
)
from pickleball_crew.events import publisher
from pickleball_crew.schemas import SessionCreate, SessionUpdate
from pickleball_crew.services.pricing import compute_cost, venue_now, venue_wall_time

# Columns that may not be cleared through a partial update
REQUIRED_FIELDS = ("title", "date_time", "location", "max_players", "duration_hours", "is_private", "invited_users")


def new_private_key() -> str:
    return secrets.token_urlsafe(16)


def can_modify(profile: Profile, play_session: PlaySession) -> bool:
    return profile.id == play_session.created_by or profile.is_admin


def can_view(profile: Optional[Profile], detail: dict) -> bool:
    if not detail["is_private"]:
        return True
    if profile is None:
        return False
    return (
        profile.is_admin
        or str(profile.id) == detail["created_by"]
        or str(profile.id) in detail["invited_users"]
    )


def present(detail: dict, viewer: Optional[Profile]) -> dict:
    """Hide the private link from everyone but the owner and admins."""
    out = dict(detail)
    if viewer is None or not (viewer.is_admin or str(viewer.id) == detail["created_by"]):
        out["private_key"] = None
    return out


class SessionService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_session(self, payload: SessionCreate, actor: Profile) -> dict:
        cost = compute_cost(payload.date_time, payload.duration_hours, payload.location)
        values = payload.model_dump(exclude={"invited_users"})
        if payload.is_private:
            values["private_key"] = new_private_key()
            values["invited_users"] = [str(u) for u in payload.invited_users]
        else:
            values["invited_users"] = []
        values.update(total_cost=cost.total_cost, is_peak_time=cost.is_peak_time)

        play_session = await db_create_session(self.db, values, actor.id)
        logger.info(f"Session {play_session.id} created by {actor.id} ({cost.total_cost} total)")

        await publisher.publish_notification(
            "session.created", {"session_id": str(play_session.id), "actor_id": str(actor.id)}
        )
        return await self.get_session(play_session.id, actor)

    async def update_session(self, session_id: uuid.UUID, payload: SessionUpdate, actor: Profile) -> dict:
        """
        Apply a partial update and recompute the derived cost fields.

        Raises:
            HTTPException: 404 if the session does not exist, 403 if the actor
                is neither the creator nor an admin
        """
        play_session = await self._get_modifiable(session_id, actor)

        changes = payload.model_dump(exclude_unset=True)
        for field in REQUIRED_FIELDS:
            if field in changes and changes[field] is None:
                changes.pop(field)

        is_private = changes.get("is_private", play_session.is_private)
        if is_private:
            if not play_session.private_key:
                changes["private_key"] = new_private_key()
            if "invited_users" in changes:
                changes["invited_users"] = [str(u) for u in changes["invited_users"]]
        else:
            changes["private_key"] = None
            changes["invited_users"] = []

        yes_count = await get_yes_count(self.db, play_session.id)
        cost = compute_cost(
            changes.get("date_time", play_session.date_time),
            changes.get("duration_hours", play_session.duration_hours),
            changes.get("location", play_session.location),
            attendee_count=yes_count,
        )
        changes.update(total_cost=cost.total_cost, is_peak_time=cost.is_peak_time)

        await db_update_session(self.db, play_session, changes)
        logger.info(f"Session {session_id} updated by {actor.id}")

        await publisher.publish_notification(
            "session.updated", {"session_id": str(session_id), "actor_id": str(actor.id)}
        )
        return await self.get_session(session_id, actor)

    async def delete_session(self, session_id: uuid.UUID, actor: Profile) -> None:
        play_session = await self._get_modifiable(session_id, actor)
        await db_delete_session(self.db, play_session)
        logger.info(f"Session {session_id} deleted by {actor.id}")

    async def get_session(self, session_id: uuid.UUID, viewer: Optional[Profile]) -> dict:
        detail = await get_session_detail(self.db, session_id)
        if not detail or not can_view(viewer, detail):
            raise HTTPException(status_code=404, detail="Session not found")
        return present(detail, viewer)

    async def get_private_session(self, private_key: Optional[str], viewer: Optional[Profile]) -> dict:
        if not private_key:
            raise HTTPException(status_code=400, detail="Private key required")
        play_session = await get_session_by_private_key(self.db, private_key)
        if not play_session:
            raise HTTPException(status_code=404, detail="Session not found or invalid key")
        detail = await get_session_detail(self.db, play_session.id)
        return present(detail, viewer)

    async def list_sessions_paginated(
        self,
        skip: int,
        limit: int,
        created_by: Optional[uuid.UUID],
        starts_after: Optional[datetime],
        starts_before: Optional[datetime],
    ) -> Tuple[int, List[dict]]:
        """
        List public sessions with pagination support.
        Returns tuple of (total_count, sessions).
        """
        if starts_after is not None:
            starts_after = venue_wall_time(starts_after)
        if starts_before is not None:
            starts_before = venue_wall_time(starts_before)
        total = await count_sessions(
            self.db,
            created_by=created_by,
            starts_after=starts_after,
            starts_before=starts_before,
        )
        sessions = await list_sessions(
            self.db,
            limit=limit,
            offset=skip,
            created_by=created_by,
            starts_after=starts_after,
            starts_before=starts_before,
        )
        return total, [present(s, None) for s in sessions]

    async def history(self, viewer: Profile, now: Optional[datetime] = None) -> List[dict]:
        sessions = await list_history(self.db, viewer.id, venue_wall_time(now) if now else venue_now())
        return [present(s, viewer) for s in sessions]

    async def _get_modifiable(self, session_id: uuid.UUID, actor: Profile) -> PlaySession:
        play_session = await get_session_row(self.db, session_id)
        if not play_session:
            raise HTTPException(status_code=404, detail="Session not found")
        if not can_modify(actor, play_session):
            logger.warning(f"Profile {actor.id} tried to modify session {session_id}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the session creator or an admin can change this session",
            )
        return play_session
