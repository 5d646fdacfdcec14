import uuid
from typing import Protocol

import httpx

from printflow.config import settings
from printflow.integrations.errors import (
    IntegrationBadGatewayError,
    IntegrationUnavailableError,
)
from printflow.integrations.transport import (
    build_timeout,
    call_with_retries,
    raise_for_upstream_status,
)

_SERVICE = "storage"

_EXTENSIONS = {
    "application/pdf": "pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
}


class ObjectStorageProtocol(Protocol):
    def upload_file(self, content: bytes, folder: str, mime_type: str) -> str: ...

    def fetch(self, url: str) -> bytes: ...


class HttpObjectStorage:
    """Object storage reached over a small HTTP upload API."""

    def __init__(self, base_url: str, api_key: str, timeout_s: float, max_retries: int = 1) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_s = timeout_s
        self.max_retries = max_retries

    def upload_file(self, content: bytes, folder: str, mime_type: str) -> str:
        if not self.base_url:
            raise IntegrationUnavailableError(_SERVICE, "Storage base URL is not configured")

        filename = f"{uuid.uuid4().hex}.{_EXTENSIONS.get(mime_type, 'bin')}"

        def send() -> httpx.Response:
            with httpx.Client(timeout=build_timeout(self.timeout_s)) as client:
                return client.post(
                    f"{self.base_url}/upload",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    data={"folder": folder},
                    files={"file": (filename, content, mime_type)},
                )

        response = call_with_retries(_SERVICE, send, max_retries=self.max_retries, backoff_s=0.5)
        raise_for_upstream_status(_SERVICE, response, "Storage upload")
        try:
            url = response.json()["url"]
        except (ValueError, KeyError, TypeError) as err:
            raise IntegrationBadGatewayError(_SERVICE, "Storage upload returned no URL") from err
        if not isinstance(url, str) or not url:
            raise IntegrationBadGatewayError(_SERVICE, "Storage upload returned no URL")
        return url

    def fetch(self, url: str) -> bytes:
        def send() -> httpx.Response:
            with httpx.Client(
                timeout=build_timeout(self.timeout_s), follow_redirects=True
            ) as client:
                return client.get(url)

        response = call_with_retries(_SERVICE, send, max_retries=self.max_retries, backoff_s=0.5)
        raise_for_upstream_status(_SERVICE, response, "Storage download")
        return response.content


def get_object_storage() -> ObjectStorageProtocol:
    return HttpObjectStorage(
        base_url=settings.storage_base_url,
        api_key=settings.storage_api_key,
        timeout_s=settings.storage_timeout_s,
    )
