from typing import Literal

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str


class ReadinessDependency(BaseModel):
    name: str
    status: Literal["ok", "error", "not_configured"]


class ReadinessResponse(BaseModel):
    status: Literal["ok", "degraded"]
    dependencies: list[ReadinessDependency]


class TimingStats(BaseModel):
    count: int
    avg_s: float
    max_s: float


class MetricsResponse(BaseModel):
    counters: dict[str, int]
    timings: dict[str, TimingStats]
    retry_queue_pending: int
    retry_queue_exhausted: int
