from typing import Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field

from printflow.config import settings
from printflow.integrations.errors import (
    IntegrationBadGatewayError,
    IntegrationTimeoutError,
    IntegrationUnavailableError,
)
from printflow.integrations.transport import build_timeout, raise_for_upstream_status

_SERVICE = "render_service"


class RenderSubmission(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = False
    job_id: str | None = Field(default=None, alias="jobId")
    message: str | None = None


class RenderJobStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str
    pdf_url: str | None = Field(default=None, alias="pdfUrl")
    error: str | None = None


class RenderServiceProtocol(Protocol):
    @property
    def configured(self) -> bool: ...

    def submit(self, docx_url: str, order_id: str, callback_url: str) -> str: ...

    def status(self, job_id: str) -> RenderJobStatus: ...

    def health(self) -> bool: ...


class RenderServiceClient:
    def __init__(self, base_url: str, api_key: str, timeout_s: float) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_s = timeout_s

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            return {}
        return {"Authorization": f"Bearer {self.api_key}"}

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        if not self.configured:
            raise IntegrationUnavailableError(_SERVICE, "Render service URL is not configured")
        try:
            with httpx.Client(timeout=build_timeout(self.timeout_s)) as client:
                return client.request(
                    method, f"{self.base_url}{path}", headers=self._headers(), **kwargs
                )
        except httpx.TimeoutException as err:
            raise IntegrationTimeoutError(_SERVICE) from err
        except httpx.TransportError as err:
            raise IntegrationUnavailableError(_SERVICE, str(err)) from err

    def submit(self, docx_url: str, order_id: str, callback_url: str) -> str:
        response = self._request(
            "POST",
            "/api/convert",
            json={"docxUrl": docx_url, "orderId": order_id, "callbackUrl": callback_url},
        )
        raise_for_upstream_status(_SERVICE, response, "Render service")
        try:
            submission = RenderSubmission.model_validate(response.json())
        except ValueError as err:
            raise IntegrationBadGatewayError(
                _SERVICE, "Render service returned malformed payload"
            ) from err
        if not submission.success or not submission.job_id:
            raise IntegrationBadGatewayError(
                _SERVICE, submission.message or "Render service did not accept the job"
            )
        return submission.job_id

    def status(self, job_id: str) -> RenderJobStatus:
        response = self._request("GET", f"/api/status/{job_id}")
        raise_for_upstream_status(_SERVICE, response, "Render status")
        try:
            return RenderJobStatus.model_validate(response.json())
        except ValueError as err:
            raise IntegrationBadGatewayError(
                _SERVICE, "Render status returned malformed payload"
            ) from err

    def health(self) -> bool:
        try:
            response = self._request("GET", "/health")
        except (IntegrationTimeoutError, IntegrationUnavailableError):
            return False
        return response.status_code < 400


def get_render_service_client() -> RenderServiceProtocol:
    return RenderServiceClient(
        base_url=settings.render_service_url,
        api_key=settings.render_api_key,
        timeout_s=settings.render_timeout_s,
    )
