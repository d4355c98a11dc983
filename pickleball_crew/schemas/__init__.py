from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Generic, List, Optional, TypeVar
from uuid import UUID
from datetime import datetime
from enum import Enum

from pickleball_crew.services.pricing import validate_duration, venue_wall_time

T = TypeVar("T")


class ProfileRole(str, Enum):
    member = "member"
    admin = "admin"


class RSVPStatus(str, Enum):
    yes = "yes"
    maybe = "maybe"
    no = "no"


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class TokenResponse(BaseModel):
    """Access token plus the refresh token used to renew it."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class ProfileCreate(BaseModel):
    email: EmailStr
    password: str
    name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = None


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = None
    wants_notifications: Optional[bool] = None
    wants_rsvp_updates: Optional[bool] = None


class ProfileOut(BaseModel):
    id: UUID
    email: EmailStr
    name: str
    phone: Optional[str] = None
    wants_notifications: bool
    wants_rsvp_updates: bool
    role: ProfileRole

    class Config:
        from_attributes = True


def _check_duration(value: Optional[float]) -> Optional[float]:
    if value is None:
        return value
    return validate_duration(value)


class SessionCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    date_time: datetime
    location: str = Field(..., min_length=1, max_length=255)
    max_players: int = Field(8, ge=2)
    duration_hours: float = 1.0
    notes: Optional[str] = None
    is_private: bool = False
    invited_users: List[UUID] = []

    @field_validator("title", "location")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()

    @field_validator("date_time")
    @classmethod
    def to_wall_time(cls, value: datetime) -> datetime:
        return venue_wall_time(value)

    @field_validator("duration_hours")
    @classmethod
    def allowed_duration(cls, value: float) -> float:
        return _check_duration(value)


class SessionUpdate(BaseModel):
    """Partial update; total_cost and is_peak_time are always recomputed."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    date_time: Optional[datetime] = None
    location: Optional[str] = Field(None, min_length=1, max_length=255)
    max_players: Optional[int] = Field(None, ge=2)
    duration_hours: Optional[float] = None
    notes: Optional[str] = None
    is_private: Optional[bool] = None
    invited_users: Optional[List[UUID]] = None

    @field_validator("title", "location")
    @classmethod
    def not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            raise ValueError("must not be blank")
        return value.strip() if value is not None else value

    @field_validator("date_time")
    @classmethod
    def to_wall_time(cls, value: Optional[datetime]) -> Optional[datetime]:
        return venue_wall_time(value) if value is not None else value

    @field_validator("duration_hours")
    @classmethod
    def allowed_duration(cls, value: Optional[float]) -> Optional[float]:
        return _check_duration(value)


class RSVPSet(BaseModel):
    status: RSVPStatus
    # Lets holders of an invite link answer a private session
    private_key: Optional[str] = None


class RSVPOut(BaseModel):
    id: UUID
    session_id: UUID
    user_id: UUID
    status: RSVPStatus
    name: Optional[str] = None

    class Config:
        from_attributes = True


class SessionOut(BaseModel):
    id: UUID
    created_by: UUID
    creator_name: Optional[str] = None
    title: str
    date_time: datetime
    location: str
    max_players: int
    duration_hours: float
    total_cost: float
    is_peak_time: bool
    notes: Optional[str] = None
    is_private: bool
    private_key: Optional[str] = None
    invited_users: List[UUID] = []
    yes_count: int = 0
    cost_per_person: float = 0.0
    rsvps: List[RSVPOut] = []

    class Config:
        from_attributes = True


class PaginationMetadata(BaseModel):
    total: int
    page: int
    per_page: int
    total_pages: int
    has_next: bool
    has_prev: bool


class PaginatedResponse(BaseModel, Generic[T]):
    items: List[T]
    pagination: PaginationMetadata
