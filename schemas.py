"""
Database Schemas for Wrist Titans

Each stored Pydantic model corresponds to a MongoDB collection.
Collection name = lowercase class name:
- User -> "user"
- Match -> "match"
- Event -> "event"

Field names follow the public JSON surface (camelCase). References to other
documents are stored as ObjectIds. Datetimes are stored as naive UTC.
"""
from datetime import datetime, timezone
from typing import List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

Role = Literal["user", "admin"]
UserStatus = Literal["pending", "approved", "rejected"]
MatchStatus = Literal["pending", "approved", "completed"]
MatchResult = Literal["win", "loss", "draw"]
EventStatus = Literal["upcoming", "ongoing", "completed"]

ADMIN_ROLE: Role = "admin"


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class _Document(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)


# Stored documents
class User(_Document):
    name: str
    email: str
    password: str = Field(..., description="bcrypt hash; never leaves the API")
    phone: str
    weight: Optional[str] = None
    experience: Optional[str] = None
    city: Optional[str] = None
    role: Role = "user"
    status: UserStatus = "pending"
    registeredAt: datetime = Field(default_factory=utcnow)
    profileImage: Optional[str] = Field(None, description="Filename under the uploads mount")
    matches: List[ObjectId] = Field(default_factory=list)
    events: List[ObjectId] = Field(default_factory=list)


class Match(_Document):
    challenger: ObjectId
    opponent: Optional[ObjectId] = None
    weightClass: str
    date: datetime
    venue: Optional[str] = None
    status: MatchStatus = "pending"
    result: Optional[MatchResult] = None
    winner: Optional[ObjectId] = None
    referee: Optional[str] = None
    recordedAt: datetime = Field(default_factory=utcnow)

    utc_date = field_validator("date")(naive_utc)


class Event(_Document):
    title: str
    description: str
    date: datetime
    venue: str
    organizer: Optional[str] = None
    participants: List[ObjectId] = Field(default_factory=list)
    registrationFee: Optional[float] = None
    status: EventStatus = "upcoming"
    createdAt: datetime = Field(default_factory=utcnow)

    utc_date = field_validator("date")(naive_utc)


# Request payloads
class RegisterPayload(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    weight: Optional[str] = None
    experience: Optional[str] = None
    city: Optional[str] = None


class LoginPayload(BaseModel):
    email: EmailStr
    password: str


class ChallengePayload(BaseModel):
    opponentId: Optional[str] = None
    weightClass: str = Field(..., min_length=1)
    date: datetime
    venue: Optional[str] = None

    utc_date = field_validator("date")(naive_utc)


class StatusUpdate(BaseModel):
    status: UserStatus


class EventCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    date: datetime
    venue: str = Field(..., min_length=1)
    organizer: Optional[str] = None
    registrationFee: Optional[float] = Field(None, ge=0)
    status: EventStatus = "upcoming"

    utc_date = field_validator("date")(naive_utc)


class EventUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    date: Optional[datetime] = None
    venue: Optional[str] = Field(None, min_length=1)
    organizer: Optional[str] = None
    registrationFee: Optional[float] = Field(None, ge=0)
    status: Optional[EventStatus] = None

    utc_date = field_validator("date")(naive_utc)


class MatchResultUpdate(BaseModel):
    result: MatchResult
    winner: Optional[str] = None
    referee: Optional[str] = None
    status: MatchStatus = "completed"
