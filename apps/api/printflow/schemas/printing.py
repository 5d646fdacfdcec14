from pydantic import BaseModel, Field


class PrinterHealthResponse(BaseModel):
    url: str
    online: bool
    detail: dict | str | None = None


class PrinterFleetHealthResponse(BaseModel):
    printers: list[PrinterHealthResponse]


class PrinterQueueResponse(BaseModel):
    url: str
    ok: bool
    detail: dict | str | None = None


class PrinterQueueListResponse(BaseModel):
    printers: list[PrinterQueueResponse]


class DispatchRequest(BaseModel):
    printer_index: int | None = Field(default=None, ge=1)


class DispatchResponse(BaseModel):
    success: bool
    delivery_number: str | None
    message: str


class RetryEntryResponse(BaseModel):
    order_id: str
    printer_index: int
    attempts: int
    next_attempt_at: float
    last_error: str


class RetryQueueResponse(BaseModel):
    pending: list[RetryEntryResponse]
    exhausted: list[RetryEntryResponse]


class RetryDrainResponse(BaseModel):
    attempted: int
    succeeded: int
    rescheduled: int
    exhausted: int
    dropped: int
