from sqlalchemy import Column, String, Boolean, DateTime, func, Enum, Uuid
import uuid
from pickleball_crew.db.session import Base
import enum


class RoleEnum(str, enum.Enum):
    member = "member"
    admin = "admin"


class Profile(Base):
    __tablename__ = "profiles"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=True)
    wants_notifications = Column(Boolean, nullable=False, default=True)
    wants_rsvp_updates = Column(Boolean, nullable=False, default=True)
    role = Column(Enum(RoleEnum), default=RoleEnum.member, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def is_admin(self) -> bool:
        return self.role == RoleEnum.admin
