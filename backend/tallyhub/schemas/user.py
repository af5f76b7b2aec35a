"""
TallyHub Backend — User Request/Response Schemas
==================================================

What:  Pydantic models for the /api/users contract.

Request models:
    Every field is Optional at the schema level. Presence, length and format
    rules live in tallyhub.validation so that a single request reports every
    violated rule at once instead of stopping at pydantic's first type error.
    Unknown keys are rejected (extra="forbid"); in particular a password can
    never sneak into an update.

Response models:
    UserResponse has no password field at all, so no code path can serialize
    the hash by accident.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from tallyhub.database import ensure_utc
from tallyhub.schemas.envelope import CamelModel


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class UserCreate(BaseModel):
    name: Optional[str] = Field(default=None, description="2-100 letters and spaces")
    email: Optional[str] = Field(default=None, description="Unique e-mail address")
    password: Optional[str] = Field(
        default=None,
        description="8-128 chars with upper case, lower case and a digit",
    )

    model_config = {"extra": "forbid"}


class UserUpdate(BaseModel):
    """Partial update. Only name and email are updatable through the API."""

    name: Optional[str] = Field(default=None)
    email: Optional[str] = Field(default=None)

    model_config = {"extra": "forbid"}


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class UserResponse(CamelModel):
    id: uuid.UUID
    name: str
    email: str
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def attach_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class Pagination(CamelModel):
    """
    Offset pagination metadata.

    pages = ceil(total / limit); has_next = page < pages; has_prev = page > 1
    """

    page: int
    limit: int
    total: int
    pages: int
    has_next: bool
    has_prev: bool


class UserListResponse(CamelModel):
    users: List[UserResponse]
    pagination: Pagination


class UserStatistics(CamelModel):
    total_users: int
    users_today: int
    users_this_week: int
    users_this_month: int


class UserExistsResponse(CamelModel):
    exists: bool
    user_id: str
