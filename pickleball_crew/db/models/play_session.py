from sqlalchemy import (
    Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, JSON, String, Text, Uuid, func,
)
import uuid
from sqlalchemy.orm import relationship
from pickleball_crew.db.session import Base


class PlaySession(Base):
    """A court booking that crew members RSVP to."""

    __tablename__ = "sessions"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    created_by = Column(Uuid, ForeignKey("profiles.id"), nullable=False)
    title = Column(String(255), nullable=False)
    # Venue-local wall-clock time, stored naive
    date_time = Column(DateTime(timezone=False), nullable=False)
    location = Column(String(255), nullable=False)
    max_players = Column(Integer, nullable=False, default=8)
    duration_hours = Column(Float, nullable=False, default=1.0)
    # Derived from date_time, duration_hours and location by the pricing engine
    total_cost = Column(Float, nullable=False, default=0.0)
    is_peak_time = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)
    is_private = Column(Boolean, nullable=False, default=False)
    private_key = Column(String(64), nullable=True, unique=True)
    # Profile ids as strings; only consulted when is_private is set
    invited_users = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    creator = relationship("Profile")
    rsvps = relationship(
        "RSVP",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index('idx_session_date', 'date_time'),
        Index('idx_session_creator', 'created_by'),
    )

    def is_invited(self, profile_id) -> bool:
        return str(profile_id) in {str(user_id) for user_id in (self.invited_users or [])}
