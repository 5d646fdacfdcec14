import httpx

from printflow.config import settings
from printflow.integrations.errors import (
    IntegrationAuthError,
    IntegrationBadGatewayError,
    IntegrationQuotaError,
    IntegrationTimeoutError,
    IntegrationUnavailableError,
)
from printflow.integrations.transport import build_timeout

_SERVICE = "conversion_api"


class RemoteConversionClient:
    """Synchronous DOCX to PDF conversion over the hosted conversion API."""

    name = "remote_api"

    def __init__(self, base_url: str, api_key: str, timeout_s: float) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_s = timeout_s

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    def convert(self, docx_bytes: bytes) -> bytes:
        if not self.configured:
            raise IntegrationUnavailableError(_SERVICE, "Conversion API key is not configured")

        try:
            with httpx.Client(timeout=build_timeout(self.timeout_s)) as client:
                response = client.post(
                    f"{self.base_url}/convert/docx/to/pdf",
                    headers={
                        "Apikey": self.api_key,
                        "Content-Type": "application/octet-stream",
                    },
                    content=docx_bytes,
                )
        except httpx.TimeoutException as err:
            raise IntegrationTimeoutError(_SERVICE) from err
        except httpx.TransportError as err:
            raise IntegrationUnavailableError(_SERVICE, str(err)) from err

        if response.status_code == 401:
            raise IntegrationAuthError(_SERVICE, "Conversion API rejected the API key")
        if response.status_code == 429:
            raise IntegrationQuotaError(_SERVICE, "Conversion API quota exceeded")
        if response.status_code >= 500:
            raise IntegrationUnavailableError(_SERVICE, "Conversion API returned 5xx")
        if response.status_code >= 400:
            raise IntegrationBadGatewayError(
                _SERVICE, f"Conversion API returned {response.status_code}"
            )
        if not response.content.startswith(b"%PDF"):
            raise IntegrationBadGatewayError(_SERVICE, "Conversion API returned a non-PDF body")
        return response.content


def get_remote_conversion_client() -> RemoteConversionClient:
    return RemoteConversionClient(
        base_url=settings.conversion_api_url,
        api_key=settings.conversion_api_key,
        timeout_s=settings.conversion_api_timeout_s,
    )
