from typing import Literal

from pydantic import BaseModel, Field

from printflow.models.conversion_job import ConversionJobStatus


class ConversionRequest(BaseModel):
    word_url: str = Field(min_length=1)
    order_id: str | None = None
    mode: Literal["sync", "async"] = "sync"


class ConversionResponse(BaseModel):
    status: ConversionJobStatus
    provider: str | None = None
    pdf_url: str | None = None
    job_id: str | None = None
    failed_providers: list[str] = Field(default_factory=list)


class ConversionStatusResponse(BaseModel):
    job_id: str
    status: ConversionJobStatus
    progress: int = Field(ge=0, le=100)
    pdf_url: str | None = None
    word_url: str | None = None
    error: str | None = None
