"""Database models package."""
from pickleball_crew.db.models.profile import Profile, RoleEnum
from pickleball_crew.db.models.play_session import PlaySession
from pickleball_crew.db.models.rsvp import RSVP, RSVPStatusEnum

__all__ = ["Profile", "RoleEnum", "PlaySession", "RSVP", "RSVPStatusEnum"]
