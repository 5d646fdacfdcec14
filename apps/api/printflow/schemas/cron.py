from pydantic import BaseModel, Field


class ReconcileRunResponse(BaseModel):
    scanned: int
    repaired: list[str] = Field(default_factory=list)
    skipped: list[dict] = Field(default_factory=list)
    errors: list[dict] = Field(default_factory=list)


class StaleCleanupResponse(BaseModel):
    reminded: list[str] = Field(default_factory=list)
    cancelled: list[str] = Field(default_factory=list)
    threshold_hours: int
