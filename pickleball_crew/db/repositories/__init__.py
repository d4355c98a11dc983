"""
Repository layer for database operations.

Provides async functions for CRUD operations on Profile, PlaySession and RSVP
rows. Session reads are returned as plain dictionaries so that they can be
cached in Redis.
"""
from sqlalchemy import select, func, delete, or_
from sqlalchemy.ext.asyncio import AsyncSession
from pickleball_crew.db.models.profile import Profile
from pickleball_crew.db.models.play_session import PlaySession
from pickleball_crew.db.models.rsvp import RSVP, RSVPStatusEnum
from pickleball_crew.schemas import ProfileCreate
from pickleball_crew.cache.cache_decorators import cached
from pickleball_crew.cache.redis_client import cache
from pickleball_crew.core.security import hash_password
from pickleball_crew.services.pricing import display_cost_per_person
from typing import Dict, Iterable, List, Optional, Tuple
from datetime import datetime
import uuid


# Profiles

async def create_profile(db: AsyncSession, profile_in: ProfileCreate) -> Profile:
    """
    Create a new profile with hashed password.

    Args:
        db: Database session
        profile_in: Registration data

    Returns:
        Created Profile object
    """
    profile = Profile(
        email=profile_in.email,
        hashed_password=hash_password(profile_in.password),
        name=profile_in.name,
        phone=profile_in.phone,
    )
    db.add(profile)
    await db.commit()
    await db.refresh(profile)
    return profile


async def get_profile_by_email(db: AsyncSession, email: str) -> Optional[Profile]:
    q = select(Profile).where(func.lower(Profile.email) == email.lower())
    res = await db.execute(q)
    return res.scalars().first()


async def get_profile(db: AsyncSession, profile_id: uuid.UUID) -> Optional[Profile]:
    q = select(Profile).where(Profile.id == profile_id)
    res = await db.execute(q)
    return res.scalars().first()


async def update_profile(db: AsyncSession, profile: Profile, changes: Dict) -> Profile:
    for field, value in changes.items():
        setattr(profile, field, value)
    await db.commit()
    await db.refresh(profile)
    # Creator names are embedded in cached session reads
    await invalidate_session_caches()
    return profile


async def list_profiles(db: AsyncSession) -> List[Profile]:
    res = await db.execute(select(Profile).order_by(Profile.created_at))
    return list(res.scalars().all())


async def get_profiles_by_ids(db: AsyncSession, profile_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, Profile]:
    ids = list(profile_ids)
    if not ids:
        return {}
    res = await db.execute(select(Profile).where(Profile.id.in_(ids)))
    return {p.id: p for p in res.scalars().all()}


# Sessions

async def invalidate_session_caches() -> None:
    """Drop cached session reads after any session or RSVP mutation."""
    await cache.delete_pattern("sessions:*")


async def create_session(db: AsyncSession, values: Dict, creator_id: uuid.UUID) -> PlaySession:
    """
    Insert a session row.

    Args:
        db: Database session
        values: Column values, derived cost fields included
        creator_id: Profile id of the creator

    Returns:
        Created PlaySession object
    """
    play_session = PlaySession(**values, created_by=creator_id)
    db.add(play_session)
    await db.commit()
    await db.refresh(play_session)
    await invalidate_session_caches()
    return play_session


async def get_session_row(db: AsyncSession, session_id: uuid.UUID) -> Optional[PlaySession]:
    q = select(PlaySession).where(PlaySession.id == session_id)
    res = await db.execute(q)
    return res.scalars().first()


async def get_session_by_private_key(db: AsyncSession, private_key: str) -> Optional[PlaySession]:
    q = select(PlaySession).where(
        PlaySession.private_key == private_key,
        PlaySession.is_private.is_(True),
    )
    res = await db.execute(q)
    return res.scalars().first()


async def update_session(db: AsyncSession, play_session: PlaySession, changes: Dict) -> PlaySession:
    for field, value in changes.items():
        setattr(play_session, field, value)
    await db.commit()
    await db.refresh(play_session)
    await invalidate_session_caches()
    return play_session


async def delete_session(db: AsyncSession, play_session: PlaySession) -> None:
    """Delete a session together with all of its RSVPs."""
    await db.execute(delete(RSVP).where(RSVP.session_id == play_session.id))
    await db.delete(play_session)
    await db.commit()
    await invalidate_session_caches()


def _session_filters(
    q,
    created_by: Optional[uuid.UUID],
    starts_after: Optional[datetime],
    starts_before: Optional[datetime],
):
    q = q.where(PlaySession.is_private.is_(False))
    if created_by:
        q = q.where(PlaySession.created_by == created_by)
    if starts_after:
        q = q.where(PlaySession.date_time >= starts_after)
    if starts_before:
        q = q.where(PlaySession.date_time < starts_before)
    return q


@cached('sessions:list', expire=300)
async def list_sessions(
    db: AsyncSession,
    limit: int = 20,
    offset: int = 0,
    created_by: Optional[uuid.UUID] = None,
    starts_after: Optional[datetime] = None,
    starts_before: Optional[datetime] = None,
) -> List[dict]:
    """List public sessions in start order, serialized for caching."""
    q = select(PlaySession, Profile.name).join(Profile, PlaySession.created_by == Profile.id)
    q = _session_filters(q, created_by, starts_after, starts_before)
    q = q.order_by(PlaySession.date_time.asc()).limit(limit).offset(offset)

    res = await db.execute(q)
    rows = res.all()
    rsvps = await list_rsvps_with_names(db, [ps.id for ps, _ in rows])
    return [serialize_session(ps, creator_name, rsvps.get(ps.id, [])) for ps, creator_name in rows]


@cached('sessions:count', expire=300)
async def count_sessions(
    db: AsyncSession,
    created_by: Optional[uuid.UUID] = None,
    starts_after: Optional[datetime] = None,
    starts_before: Optional[datetime] = None,
) -> int:
    q = _session_filters(select(func.count(PlaySession.id)), created_by, starts_after, starts_before)
    res = await db.execute(q)
    return res.scalar() or 0


@cached('sessions:detail', expire=300)
async def get_session_detail(db: AsyncSession, session_id: uuid.UUID) -> Optional[dict]:
    q = (
        select(PlaySession, Profile.name)
        .join(Profile, PlaySession.created_by == Profile.id)
        .where(PlaySession.id == session_id)
    )
    res = await db.execute(q)
    row = res.first()
    if row is None:
        return None
    play_session, creator_name = row
    rsvps = await list_rsvps_with_names(db, [play_session.id])
    return serialize_session(play_session, creator_name, rsvps.get(play_session.id, []))


async def list_history(db: AsyncSession, user_id: uuid.UUID, before: datetime) -> List[dict]:
    """Past sessions the user created or joined with a "yes", newest first."""
    joined = select(RSVP.session_id).where(
        RSVP.user_id == user_id,
        RSVP.status == RSVPStatusEnum.yes,
    )
    q = (
        select(PlaySession, Profile.name)
        .join(Profile, PlaySession.created_by == Profile.id)
        .where(
            PlaySession.date_time < before,
            or_(PlaySession.created_by == user_id, PlaySession.id.in_(joined)),
        )
        .order_by(PlaySession.date_time.desc())
    )
    res = await db.execute(q)
    rows = res.all()
    rsvps = await list_rsvps_with_names(db, [ps.id for ps, _ in rows])
    return [serialize_session(ps, creator_name, rsvps.get(ps.id, [])) for ps, creator_name in rows]


def serialize_session(play_session: PlaySession, creator_name: Optional[str], rsvps: List[dict]) -> dict:
    yes_count = sum(1 for r in rsvps if r['status'] == RSVPStatusEnum.yes.value)
    return {
        'id': str(play_session.id),
        'created_by': str(play_session.created_by),
        'creator_name': creator_name,
        'title': play_session.title,
        'date_time': play_session.date_time.isoformat() if play_session.date_time else None,
        'location': play_session.location,
        'max_players': play_session.max_players,
        'duration_hours': play_session.duration_hours,
        'total_cost': play_session.total_cost,
        'is_peak_time': play_session.is_peak_time,
        'notes': play_session.notes,
        'is_private': play_session.is_private,
        'private_key': play_session.private_key,
        'invited_users': [str(u) for u in (play_session.invited_users or [])],
        'yes_count': yes_count,
        'cost_per_person': display_cost_per_person(play_session.total_cost, yes_count),
        'rsvps': rsvps,
    }


# RSVPs

async def list_rsvps_with_names(db: AsyncSession, session_ids: List[uuid.UUID]) -> Dict[uuid.UUID, List[dict]]:
    if not session_ids:
        return {}
    q = (
        select(RSVP, Profile.name)
        .join(Profile, RSVP.user_id == Profile.id)
        .where(RSVP.session_id.in_(session_ids))
        .order_by(RSVP.created_at)
    )
    res = await db.execute(q)
    grouped: Dict[uuid.UUID, List[dict]] = {}
    for rsvp, name in res.all():
        grouped.setdefault(rsvp.session_id, []).append({
            'id': str(rsvp.id),
            'session_id': str(rsvp.session_id),
            'user_id': str(rsvp.user_id),
            'status': rsvp.status.value,
            'name': name,
        })
    return grouped


async def list_rsvps_for_session(db: AsyncSession, session_id: uuid.UUID) -> List[RSVP]:
    q = select(RSVP).where(RSVP.session_id == session_id).order_by(RSVP.created_at)
    res = await db.execute(q)
    return list(res.scalars().all())


async def get_yes_count(db: AsyncSession, session_id: uuid.UUID) -> int:
    """Count confirmed ("yes") RSVPs for a session."""
    q = select(func.count(RSVP.id)).where(
        RSVP.session_id == session_id,
        RSVP.status == RSVPStatusEnum.yes,
    )
    res = await db.execute(q)
    return res.scalar() or 0


async def get_user_rsvp(db: AsyncSession, session_id: uuid.UUID, user_id: uuid.UUID) -> Optional[RSVP]:
    q = select(RSVP).where(RSVP.session_id == session_id, RSVP.user_id == user_id)
    res = await db.execute(q)
    return res.scalars().first()


async def upsert_rsvp(
    db: AsyncSession,
    session_id: uuid.UUID,
    user_id: uuid.UUID,
    status: RSVPStatusEnum,
) -> Tuple[RSVP, Optional[RSVPStatusEnum]]:
    """
    Set a user's RSVP status, updating their existing row in place.

    The change is flushed but not committed so the caller can persist
    dependent session fields in the same transaction.

    Returns:
        The RSVP row and the status it had before (None for a new row)
    """
    rsvp = await get_user_rsvp(db, session_id, user_id)
    if rsvp is None:
        rsvp = RSVP(session_id=session_id, user_id=user_id, status=status)
        db.add(rsvp)
        previous = None
    else:
        previous = rsvp.status
        rsvp.status = status
    await db.flush()
    return rsvp, previous
