import secrets
import uuid
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pickleball_crew.core.logging import logger
from pickleball_crew.db.models import PlaySession, Profile, RSVPStatusEnum
from pickleball_crew.db.repositories import (
    get_session_row,
    get_user_rsvp,
    get_yes_count,
    invalidate_session_caches,
    upsert_rsvp,
)
from pickleball_crew.events import publisher
from pickleball_crew.services.pricing import compute_cost, depends_on_attendees


def may_answer(user: Profile, play_session: PlaySession, private_key: Optional[str] = None) -> bool:
    if not play_session.is_private:
        return True
    if user.is_admin or user.id == play_session.created_by or play_session.is_invited(user.id):
        return True
    return bool(
        private_key
        and play_session.private_key
        and secrets.compare_digest(private_key, play_session.private_key)
    )


class RSVPService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def set_rsvp(
        self,
        session_id: uuid.UUID,
        user: Profile,
        status: RSVPStatusEnum,
        private_key: Optional[str] = None,
    ) -> dict:
        """
        Record a member's answer for a session, one row per member.

        Only "yes" answers count against max_players. When the number of
        confirmed players changes at a per-head venue the session total is
        recomputed in the same transaction. A private session only takes
        answers from members who can see it or who present its key.

        Raises:
            HTTPException: 404 for an unknown session or a private
                session the member may not see, 400 when the session is
                full, 409 on a concurrent first RSVP from the same member
        """
        status = RSVPStatusEnum(status)
        play_session = await get_session_row(self.db, session_id)
        if not play_session or not may_answer(user, play_session, private_key):
            raise HTTPException(status_code=404, detail="Session not found")

        existing = await get_user_rsvp(self.db, session_id, user.id)
        was_yes = existing is not None and existing.status == RSVPStatusEnum.yes
        is_yes = status == RSVPStatusEnum.yes

        if is_yes and not was_yes:
            yes_count = await get_yes_count(self.db, session_id)
            if yes_count >= play_session.max_players:
                raise HTTPException(
                    status_code=400,
                    detail=f"Session is full ({play_session.max_players} players)"
                )

        try:
            rsvp, _ = await upsert_rsvp(self.db, session_id, user.id, status)
            if was_yes != is_yes and depends_on_attendees(play_session.location):
                yes_count = await get_yes_count(self.db, session_id)
                cost = compute_cost(
                    play_session.date_time,
                    play_session.duration_hours,
                    play_session.location,
                    attendee_count=yes_count,
                )
                play_session.total_cost = cost.total_cost
                play_session.is_peak_time = cost.is_peak_time
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise HTTPException(
                status_code=409,
                detail="Your RSVP was changed at the same time from somewhere else. Please try again."
            )

        await invalidate_session_caches()
        logger.info(f"RSVP {user.id} -> {status.value} on session {session_id}")

        if is_yes and not was_yes:
            await publisher.publish_notification(
                "rsvp.confirmed", {"session_id": str(session_id), "actor_id": str(user.id)}
            )

        return {
            "id": rsvp.id,
            "session_id": session_id,
            "user_id": user.id,
            "status": status,
            "name": user.name,
        }
