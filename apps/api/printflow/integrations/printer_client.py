import json
import re
from typing import Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field

from printflow.config import printer_api_urls, settings
from printflow.integrations.errors import (
    IntegrationBadGatewayError,
    IntegrationTimeoutError,
    IntegrationUnavailableError,
)
from printflow.integrations.transport import build_timeout, raise_for_upstream_status

_SERVICE = "printer_api"
_TRAILING_SLASHES = re.compile(r"/+$")


def parse_printer_urls(raw: str | None) -> list[str]:
    """Normalize the printer endpoint setting into an ordered list of base URLs.

    Accepted forms:

    * a JSON array of strings, e.g. ``["http://a", "http://b"]``
    * a bracket-wrapped list that is not valid JSON, e.g. ``[http://a, http://b]``
    * a comma-separated list, e.g. ``http://a,http://b``
    * a single URL

    Entries are stripped, empty entries dropped, and trailing slashes removed.
    Anything unparseable yields an empty list.
    """
    if not raw:
        return []
    trimmed = raw.strip()
    if not trimmed:
        return []

    if trimmed.startswith("[") and trimmed.endswith("]"):
        try:
            decoded = json.loads(trimmed)
        except ValueError:
            entries = trimmed[1:-1].split(",")
        else:
            if not isinstance(decoded, list):
                return []
            entries = [item for item in decoded if isinstance(item, str)]
    else:
        entries = trimmed.split(",")

    urls = []
    for entry in entries:
        cleaned = entry.strip().strip("\"'").strip()
        cleaned = _TRAILING_SLASHES.sub("", cleaned)
        if cleaned:
            urls.append(cleaned)
    return urls


class PrinterCustomerInfo(BaseModel):
    name: str
    email: str | None = None
    phone: str | None = None


class PrintJobRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_url: str = Field(serialization_alias="fileUrl")
    file_name: str = Field(serialization_alias="fileName")
    file_type: str = Field(default="application/pdf", serialization_alias="fileType")
    printing_options: dict = Field(serialization_alias="printingOptions")
    printer_index: int = Field(ge=1, serialization_alias="printerIndex")
    order_id: str = Field(serialization_alias="orderId")
    delivery_number: str | None = Field(default=None, serialization_alias="deliveryNumber")
    customer_info: PrinterCustomerInfo | None = Field(
        default=None, serialization_alias="customerInfo"
    )


class PrintJobResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = False
    message: str = ""
    job_id: str | None = Field(default=None, alias="jobId")
    delivery_number: str | None = Field(default=None, alias="deliveryNumber")
    error: str | None = None


class PrinterHealth(BaseModel):
    url: str
    online: bool
    detail: dict | str | None = None


class PrinterClientProtocol(Protocol):
    urls: list[str]

    def url_for_index(self, printer_index: int) -> str: ...

    def send_print_job(self, request: PrintJobRequest) -> PrintJobResponse: ...

    def check_health(self, url: str) -> PrinterHealth: ...

    def queue_status(self, url: str) -> dict: ...

    def pause_queue(self, url: str) -> dict: ...

    def resume_queue(self, url: str) -> dict: ...


class PrinterApiClient:
    def __init__(self, urls: list[str], api_key: str, timeout_s: float) -> None:
        self.urls = list(urls)
        self.api_key = api_key
        self.timeout_s = timeout_s

    def url_for_index(self, printer_index: int) -> str:
        if not self.urls:
            raise IntegrationUnavailableError(_SERVICE, "No printer URLs configured")
        return self.urls[(printer_index - 1) % len(self.urls)]

    def _headers(self) -> dict[str, str]:
        return {"X-API-Key": self.api_key, "Content-Type": "application/json"}

    def _request(self, method: str, url: str, *, authenticated: bool, **kwargs) -> httpx.Response:
        try:
            with httpx.Client(timeout=build_timeout(self.timeout_s)) as client:
                return client.request(
                    method,
                    url,
                    headers=self._headers() if authenticated else None,
                    **kwargs,
                )
        except httpx.TimeoutException as err:
            raise IntegrationTimeoutError(_SERVICE) from err
        except httpx.TransportError as err:
            raise IntegrationUnavailableError(_SERVICE, str(err)) from err

    def send_print_job(self, request: PrintJobRequest) -> PrintJobResponse:
        base_url = self.url_for_index(request.printer_index)
        response = self._request(
            "POST",
            f"{base_url}/api/print",
            authenticated=True,
            json=request.model_dump(mode="json", by_alias=True, exclude_none=True),
        )
        raise_for_upstream_status(_SERVICE, response, "Printer API")
        try:
            result = PrintJobResponse.model_validate(response.json())
        except ValueError as err:
            raise IntegrationBadGatewayError(
                _SERVICE, "Printer API returned malformed payload"
            ) from err
        if not result.success:
            raise IntegrationBadGatewayError(
                _SERVICE, result.error or result.message or "Printer API rejected the job"
            )
        return result

    def check_health(self, url: str) -> PrinterHealth:
        try:
            response = self._request("GET", f"{url}/health", authenticated=False)
        except (IntegrationTimeoutError, IntegrationUnavailableError) as err:
            return PrinterHealth(url=url, online=False, detail=err.message)
        if response.status_code >= 400:
            return PrinterHealth(url=url, online=False, detail=f"HTTP {response.status_code}")
        try:
            detail = response.json()
        except ValueError:
            detail = response.text
        return PrinterHealth(url=url, online=True, detail=detail)

    def _admin_call(self, method: str, url: str, path: str) -> dict:
        response = self._request(method, f"{url}{path}", authenticated=True)
        raise_for_upstream_status(_SERVICE, response, "Printer API")
        try:
            payload = response.json()
        except ValueError as err:
            raise IntegrationBadGatewayError(
                _SERVICE, "Printer API returned malformed payload"
            ) from err
        if not isinstance(payload, dict):
            raise IntegrationBadGatewayError(_SERVICE, "Printer API returned malformed payload")
        return payload

    def queue_status(self, url: str) -> dict:
        return self._admin_call("GET", url, "/api/queue/status")

    def pause_queue(self, url: str) -> dict:
        return self._admin_call("POST", url, "/api/queue/pause")

    def resume_queue(self, url: str) -> dict:
        return self._admin_call("POST", url, "/api/queue/resume")


def get_printer_client() -> PrinterClientProtocol:
    return PrinterApiClient(
        urls=printer_api_urls(),
        api_key=settings.printer_api_key,
        timeout_s=settings.printer_api_timeout_s,
    )
