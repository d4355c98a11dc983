"""
Notification dispatch for session and RSVP events.

Recipient selection is a pure function over a snapshot of the session, the
profiles and the RSVPs. Sending is sequential with a fixed pause between
messages; a failed send is logged and never stops the remaining sends.
"""
import asyncio
import enum
import uuid
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pickleball_crew.core.config import settings
from pickleball_crew.core.logging import logger
from pickleball_crew.db.models import PlaySession, Profile, RSVP, RSVPStatusEnum
from pickleball_crew.db.repositories import (
    get_profiles_by_ids,
    get_session_row,
    list_profiles,
    list_rsvps_for_session,
)
from pickleball_crew.services.email_service import (
    EmailMessage,
    build_rsvp_confirmed_email,
    build_session_created_email,
    build_session_updated_email,
    send_email,
)
from pickleball_crew.services.pricing import cost_per_person


class NotificationEvent(str, enum.Enum):
    session_created = "session.created"
    session_updated = "session.updated"
    rsvp_confirmed = "rsvp.confirmed"


class DispatchReport(NamedTuple):
    results: Dict[str, bool]

    @property
    def sent(self) -> List[str]:
        return [address for address, ok in self.results.items() if ok]

    @property
    def failed(self) -> List[str]:
        return [address for address, ok in self.results.items() if not ok]


EMPTY_REPORT = DispatchReport(results={})

Sender = Callable[[str, str, str], dict]


def _status(rsvp: RSVP) -> str:
    status = rsvp.status
    return status.value if isinstance(status, enum.Enum) else str(status)


def select_recipients(
    event: NotificationEvent,
    session: PlaySession,
    profiles: Iterable[Profile],
    rsvps: Iterable[RSVP] = (),
    actor_id: Optional[uuid.UUID] = None,
) -> List[str]:
    """
    Work out who gets emailed about an event.

    Args:
        event: What happened
        session: The session the event is about
        profiles: Candidate profiles; must include everyone referenced by the
            session creator and the RSVPs for the RSVP-driven events
        rsvps: The session's RSVP rows
        actor_id: The member who triggered the event; never emailed

    Returns:
        Unique email addresses in first-seen order
    """
    by_id = {str(p.id): p for p in profiles}
    actor_key = str(actor_id) if actor_id is not None else None
    creator_key = str(session.created_by)
    selected: List[Profile] = []

    if event is NotificationEvent.session_created:
        actor_key = actor_key or creator_key
        if session.is_private:
            selected = [
                by_id[str(user_id)]
                for user_id in (session.invited_users or [])
                if str(user_id) in by_id and by_id[str(user_id)].wants_notifications
            ]
        else:
            selected = [p for p in by_id.values() if p.wants_notifications and str(p.id) != creator_key]
    else:
        creator = by_id.get(creator_key)
        if creator is not None and creator.wants_rsvp_updates:
            selected.append(creator)
        for rsvp in rsvps:
            if _status(rsvp) != RSVPStatusEnum.yes.value:
                continue
            holder = by_id.get(str(rsvp.user_id))
            if holder is not None and holder.wants_rsvp_updates:
                selected.append(holder)

    actor = by_id.get(actor_key) if actor_key else None
    excluded_email = actor.email.lower() if actor is not None and actor.email else None

    addresses: List[str] = []
    seen = set()
    for profile in selected:
        if str(profile.id) == actor_key or not profile.email:
            continue
        key = profile.email.lower()
        if key == excluded_email or key in seen:
            continue
        seen.add(key)
        addresses.append(profile.email)
    return addresses


async def dispatch(
    addresses: List[str],
    message: EmailMessage,
    sender: Optional[Sender] = None,
    delay: Optional[float] = None,
) -> DispatchReport:
    """
    Send ``message`` to each address in turn.

    Returns:
        Per-address success flags. Nothing is raised for failed sends.
    """
    sender = sender or send_email
    delay = settings.EMAIL_SEND_DELAY_SECONDS if delay is None else delay
    results: Dict[str, bool] = {}

    for index, address in enumerate(addresses):
        try:
            outcome = await asyncio.to_thread(sender, address, message.subject, message.html)
            ok = bool(outcome and outcome.get("success"))
        except Exception as e:
            logger.error(f"Error sending '{message.subject}' to {address}: {e}")
            ok = False

        if ok:
            logger.info(f"Email '{message.subject}' sent to {address}")
        else:
            logger.warning(f"Email '{message.subject}' could not be delivered to {address}")
        results[address] = ok

        if delay > 0 and index < len(addresses) - 1:
            await asyncio.sleep(delay)

    return DispatchReport(results=results)


class NotificationService:
    """Loads a fresh snapshot for an event, selects recipients and sends."""

    def __init__(self, db: AsyncSession, sender: Optional[Sender] = None, delay: Optional[float] = None):
        self.db = db
        self.sender = sender
        self.delay = delay

    async def handle(self, event_type: str, payload: dict) -> DispatchReport:
        try:
            event = NotificationEvent(event_type)
        except ValueError:
            logger.warning(f"Ignoring unknown notification event: {event_type}")
            return EMPTY_REPORT

        try:
            session_id = uuid.UUID(str(payload["session_id"]))
            actor_id = uuid.UUID(str(payload["actor_id"])) if payload.get("actor_id") else None
        except (KeyError, ValueError) as e:
            logger.error(f"Malformed {event_type} payload {payload}: {e}")
            return EMPTY_REPORT

        try:
            if event is NotificationEvent.session_created:
                return await self.notify_session_created(session_id)
            if event is NotificationEvent.session_updated:
                return await self.notify_session_updated(session_id, actor_id)
            return await self.notify_rsvp_confirmed(session_id, actor_id)
        except SQLAlchemyError as e:
            logger.error(f"Recipient lookup for {event_type} on session {session_id} failed: {e}")
            return EMPTY_REPORT

    async def notify_session_created(self, session_id: uuid.UUID) -> DispatchReport:
        play_session = await get_session_row(self.db, session_id)
        if play_session is None:
            logger.warning(f"Session {session_id} no longer exists; skipping creation notice")
            return EMPTY_REPORT

        profiles = await list_profiles(self.db)
        recipients = select_recipients(NotificationEvent.session_created, play_session, profiles)
        if not recipients:
            logger.info(f"No recipients for new session {session_id}")
            return EMPTY_REPORT

        creator = next((p for p in profiles if p.id == play_session.created_by), None)
        rsvps = await list_rsvps_for_session(self.db, session_id)
        yes_count = sum(1 for r in rsvps if _status(r) == RSVPStatusEnum.yes.value)
        message = build_session_created_email(
            play_session.id,
            play_session.title,
            play_session.date_time,
            play_session.location,
            creator.name if creator else None,
            cost_per_person(play_session.total_cost, yes_count),
        )
        return await dispatch(recipients, message, self.sender, self.delay)

    async def notify_rsvp_confirmed(self, session_id: uuid.UUID, user_id: Optional[uuid.UUID]) -> DispatchReport:
        play_session = await get_session_row(self.db, session_id)
        if play_session is None:
            logger.warning(f"Session {session_id} no longer exists; skipping RSVP notice")
            return EMPTY_REPORT

        rsvps = await list_rsvps_for_session(self.db, session_id)
        profile_ids = {play_session.created_by, *(r.user_id for r in rsvps)}
        if user_id is not None:
            profile_ids.add(user_id)
        profiles = await get_profiles_by_ids(self.db, profile_ids)

        recipients = select_recipients(
            NotificationEvent.rsvp_confirmed, play_session, profiles.values(), rsvps, actor_id=user_id
        )
        if not recipients:
            logger.info(f"No recipients for RSVP on session {session_id}")
            return EMPTY_REPORT

        member = profiles.get(user_id) if user_id is not None else None
        yes_count = sum(1 for r in rsvps if _status(r) == RSVPStatusEnum.yes.value)
        message = build_rsvp_confirmed_email(
            play_session.id,
            play_session.title,
            play_session.date_time,
            play_session.location,
            member.name if member else None,
            yes_count,
            play_session.max_players,
        )
        return await dispatch(recipients, message, self.sender, self.delay)

    async def notify_session_updated(self, session_id: uuid.UUID, actor_id: Optional[uuid.UUID]) -> DispatchReport:
        play_session = await get_session_row(self.db, session_id)
        if play_session is None:
            return EMPTY_REPORT

        rsvps = await list_rsvps_for_session(self.db, session_id)
        profiles = await get_profiles_by_ids(self.db, {play_session.created_by, *(r.user_id for r in rsvps)})
        recipients = select_recipients(
            NotificationEvent.session_updated, play_session, profiles.values(), rsvps, actor_id=actor_id
        )
        if not recipients:
            return EMPTY_REPORT

        yes_count = sum(1 for r in rsvps if _status(r) == RSVPStatusEnum.yes.value)
        message = build_session_updated_email(
            play_session.id,
            play_session.title,
            play_session.date_time,
            play_session.location,
            cost_per_person(play_session.total_cost, yes_count),
        )
        return await dispatch(recipients, message, self.sender, self.delay)
