"""
TallyHub Backend — Health & Diagnostics Schemas
=================================================

What:  Payloads for /health, /health/detailed, /info and /metrics.
Who:   Docker health checks, load balancers and operators.
"""

from typing import Dict

from pydantic import Field

from tallyhub.schemas.envelope import CamelModel


class HealthResponse(CamelModel):
    """Liveness: the process is up and serving requests."""

    status: str = Field(description="Always 'healthy' when the process answers")
    timestamp: str = Field(description="Server time (UTC ISO 8601)")
    uptime: float = Field(description="Seconds since the process started")
    environment: str = Field(description="Runtime mode: development, test, production")
    version: str = Field(description="Application version")


class MemoryUsage(CamelModel):
    max_rss: int = Field(description="Peak resident set size in bytes")
    formatted: Dict[str, str] = Field(default_factory=dict)


class ApplicationCheck(CamelModel):
    status: str
    uptime: float
    memory: MemoryUsage
    timestamp: str


class DatabaseCheck(CamelModel):
    """
    status is 'healthy' when SELECT 1 succeeds; response_time is the round
    trip in milliseconds (0 when the check failed).
    """

    status: str
    connected: bool
    response_time: float


class HealthChecks(CamelModel):
    application: ApplicationCheck
    database: DatabaseCheck


class DetailedHealthResponse(CamelModel):
    """Readiness: application plus every dependency it needs to serve traffic."""

    status: str = Field(description="healthy when every check is healthy, otherwise unhealthy")
    timestamp: str
    checks: HealthChecks
