from fastapi import APIRouter, Depends
from pickleball_crew.schemas import ProfileOut, ProfileUpdate
from pickleball_crew.db.session import get_session
from pickleball_crew.db.models import Profile
from pickleball_crew.db.repositories import update_profile
from pickleball_crew.auth import get_current_user
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("/me", response_model=ProfileOut)
async def get_my_profile(current_user: Profile = Depends(get_current_user)):
    return current_user


@router.patch("/me", response_model=ProfileOut)
async def update_my_profile(
    payload: ProfileUpdate,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session)
):
    """Update name, phone and notification preferences."""
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None or k == "phone"}
    return await update_profile(db, current_user, changes)
