"""Pydantic models for request bodies, stored records and responses."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, field_validator

# bcrypt only looks at the first 72 bytes of its input.
MAX_PASSWORD_BYTES = 72


def _check_password_length(value: str) -> str:
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


Password = Annotated[str, Field(min_length=1), AfterValidator(_check_password_length)]


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


# --- Request bodies -------------------------------------------------------


class RegisterIn(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    email: EmailStr
    password: Password


class UserCreate(RegisterIn):
    role: UserRole = Field(UserRole.USER, description="Defaults to a regular user")


class LoginIn(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ProfileUpdateIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    username: Optional[str] = Field(None, min_length=1, max_length=64)
    email: Optional[EmailStr] = None


class PasswordChangeIn(BaseModel):
    password: Password


class UserUpdate(BaseModel):
    """Patch for a user. Passwords go through ``Storage.change_password``."""

    model_config = ConfigDict(extra="forbid")

    username: Optional[str] = Field(None, min_length=1, max_length=64)
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None

    @field_validator("username", "email", "role")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("Field may be omitted but not set to null")
        return value


class ToolUsageCreate(BaseModel):
    tool_name: str = Field(..., min_length=1, description="Tool slug, e.g. pdf-to-word")
    category: str = Field(..., min_length=1, description="Tool category, e.g. pdf")
    user_id: Optional[str] = Field(None, description="Identifier of a registered user")
    session_id: Optional[str] = Field(None, description="Session identifier for anonymous visitors")
    processing_time: Optional[int] = Field(None, ge=0, description="Processing time in milliseconds")
    file_size: Optional[int] = Field(None, ge=0, description="Input size in bytes")
    success: bool


class AdSlotCreate(BaseModel):
    name: str = Field(..., min_length=1)
    position: str = Field(..., min_length=1, description="header, sidebar, footer, tool-top, ...")
    page: str = Field(..., min_length=1, description="Site section, e.g. home or pdf-tools")
    is_active: bool = True
    ad_provider: Optional[str] = None
    ad_code: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None


class AdSlotUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1)
    position: Optional[str] = Field(None, min_length=1)
    page: Optional[str] = Field(None, min_length=1)
    is_active: Optional[bool] = None
    ad_provider: Optional[str] = None
    ad_code: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None

    @field_validator("name", "position", "page", "is_active")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("Field may be omitted but not set to null")
        return value


# --- Stored records -------------------------------------------------------


class User(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    username: str
    email: str
    password_hash: str
    role: UserRole
    created_at: datetime
    updated_at: datetime


class ToolUsage(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    tool_name: str
    category: str
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    timestamp: datetime
    processing_time: Optional[int] = None
    file_size: Optional[int] = None
    success: bool


class AdSlot(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    name: str
    position: str
    page: str
    is_active: bool
    ad_provider: Optional[str] = None
    ad_code: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None
    created_at: datetime


# --- Responses ------------------------------------------------------------


class UserOut(BaseModel):
    id: str
    username: str
    email: str
    role: UserRole
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(**user.model_dump(exclude={"password_hash"}))


class UserEnvelope(BaseModel):
    user: UserOut


class ToolStat(BaseModel):
    name: str
    category: str
    usage_count: int
    success_rate: int = Field(..., description="Whole percent of successful runs")
    avg_processing_time: int = Field(..., description="Mean processing time in milliseconds")


class AnalyticsSummary(BaseModel):
    total_usage: int
    most_popular: str
    popular_usage: int
    success_rate: str = Field(..., description="Global success rate, e.g. 92.3%")
    tool_stats: List[ToolStat] = Field(default_factory=list)


class MessageOut(BaseModel):
    message: str


class HealthOut(BaseModel):
    status: str
    timestamp: datetime
