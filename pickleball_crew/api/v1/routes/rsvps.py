from fastapi import APIRouter, Depends
from pickleball_crew.schemas import RSVPSet, RSVPOut
from pickleball_crew.db.session import get_session
from pickleball_crew.db.models import Profile, RSVPStatusEnum
from pickleball_crew.services.rsvp_service import RSVPService
from pickleball_crew.auth import get_current_user
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

router = APIRouter(prefix="/sessions", tags=["rsvps"])


def get_rsvp_service(db: AsyncSession = Depends(get_session)) -> RSVPService:
    return RSVPService(db)


@router.put("/{session_id}/rsvp", response_model=RSVPOut)
async def set_rsvp_endpoint(
    session_id: UUID,
    payload: RSVPSet,
    user: Profile = Depends(get_current_user),
    rsvp_service: RSVPService = Depends(get_rsvp_service)
):
    """Set the current member's answer (yes / maybe / no) for a session."""
    return await rsvp_service.set_rsvp(
        session_id, user, RSVPStatusEnum(payload.status.value), private_key=payload.private_key
    )
