"""Response payloads for the /api/access endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from tallyhub.schemas.envelope import CamelModel


class CounterResponse(CamelModel):
    """Counter value after an increment/reset, or as currently stored."""

    count: int = Field(description="Current counter value")
    last_updated: datetime = Field(description="Time of the last mutation (UTC)")


class CounterStatistics(CamelModel):
    """
    Counter value plus usage statistics.

    average_accesses_per_day and created_at are only present once the
    counter row exists.
    """

    count: int
    last_updated: datetime
    average_accesses_per_day: Optional[float] = None
    created_at: Optional[datetime] = None


class IntegrityResponse(CamelModel):
    status: str = Field(default="healthy")
    valid: bool = Field(default=True)
