# itasks/api/v1/schemas/users.py
import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, UUID4, field_validator

from itasks.db.models import UserRole


def _check_password(password: str) -> str:
    if not re.search(r"[a-z]", password):
        raise ValueError("Password must contain at least one lowercase letter.")
    if not re.search(r"[A-Z]", password):
        raise ValueError("Password must contain at least one uppercase letter.")
    if not re.search(r"\d", password):
        raise ValueError("Password must contain at least one digit.")
    return password


class UserSummary(BaseModel):
    """Compact user reference embedded in other responses"""
    id: UUID4
    name: str
    email: EmailStr
    role: UserRole

    @classmethod
    def from_model(cls, user):
        if user is None:
            return None
        return cls(id=user.uuid, name=user.name, email=user.email, role=user.role)


class TeamBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None


class TeamCreate(TeamBase):
    pass


class TeamUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None


class TeamResponse(TeamBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID4
    created_at: datetime

    @classmethod
    def from_model(cls, team):
        return cls(id=team.uuid, name=team.name, description=team.description, created_at=team.created_at)


class UserCreate(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=8, max_length=64)
    role: UserRole = UserRole.TECHNICIAN
    team_id: Optional[UUID4] = None

    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        return _check_password(v)


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    role: Optional[UserRole] = None
    team_id: Optional[UUID4] = None
    is_active: Optional[bool] = None
    password: Optional[str] = Field(None, min_length=8, max_length=64)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        return _check_password(v) if v is not None else v


class UserResponse(BaseModel):
    """User as returned by the admin and profile endpoints"""
    id: UUID4
    email: EmailStr
    name: str
    role: UserRole
    is_active: bool
    team: Optional[TeamResponse] = None
    created_at: datetime

    @classmethod
    def from_model(cls, user):
        team = user.__dict__.get("team")
        return cls(
            id=user.uuid,
            email=user.email,
            name=user.name,
            role=user.role,
            is_active=user.is_active,
            team=TeamResponse.from_model(team) if team is not None else None,
            created_at=user.created_at,
        )
