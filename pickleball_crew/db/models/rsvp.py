from sqlalchemy import Column, DateTime, ForeignKey, func, Enum, Index, UniqueConstraint, Uuid
import uuid
from sqlalchemy.orm import relationship
from pickleball_crew.db.session import Base
import enum


class RSVPStatusEnum(str, enum.Enum):
    yes = "yes"
    maybe = "maybe"
    no = "no"


class RSVP(Base):
    __tablename__ = "rsvps"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id = Column(Uuid, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("profiles.id"), nullable=False)
    status = Column(Enum(RSVPStatusEnum), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    profile = relationship("Profile")
    session = relationship("PlaySession", back_populates="rsvps")

    # One row per (session, user); status changes update it in place
    __table_args__ = (
        UniqueConstraint('session_id', 'user_id', name='uq_session_user_rsvp'),
        Index('idx_rsvp_user', 'user_id'),
        Index('idx_rsvp_session', 'session_id'),
    )
