from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RenderWebhookPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(min_length=1, alias="orderId")
    job_id: str = Field(min_length=1, alias="jobId")
    status: Literal["completed", "failed"]
    pdf_url: str | None = Field(default=None, alias="pdfUrl")
    pdf_buffer: str | None = Field(default=None, alias="pdfBuffer")
    error: str | None = None

    @model_validator(mode="after")
    def check_pdf_source(self) -> "RenderWebhookPayload":
        if self.status == "completed" and not (self.pdf_url or self.pdf_buffer):
            raise ValueError("completed webhook requires pdfUrl or pdfBuffer")
        return self


class RenderWebhookResponse(BaseModel):
    success: bool
    message: str
