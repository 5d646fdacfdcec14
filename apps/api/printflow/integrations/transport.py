import time
from collections.abc import Callable

import httpx

from printflow.integrations.errors import (
    IntegrationBadGatewayError,
    IntegrationTimeoutError,
    IntegrationUnavailableError,
)


def build_timeout(timeout_s: float) -> httpx.Timeout:
    return httpx.Timeout(connect=timeout_s, read=timeout_s, write=timeout_s, pool=timeout_s)


def raise_for_upstream_status(service: str, response: httpx.Response, label: str) -> None:
    if response.status_code >= 500:
        raise IntegrationUnavailableError(service, f"{label} returned 5xx")
    if response.status_code >= 400:
        raise IntegrationBadGatewayError(service, f"{label} returned {response.status_code}")


def call_with_retries(
    service: str,
    send: Callable[[], httpx.Response],
    *,
    max_retries: int,
    backoff_s: float,
) -> httpx.Response:
    """Run ``send`` until it yields a response that is not a retryable failure.

    Timeouts, transport errors and 5xx responses are retried with exponential
    backoff; 4xx responses are returned to the caller to interpret.
    """
    for attempt in range(max_retries + 1):
        try:
            response = send()
            if response.status_code >= 500:
                raise IntegrationUnavailableError(service, f"{service} returned 5xx")
            return response
        except httpx.TimeoutException:
            integration_error = IntegrationTimeoutError(service)
        except httpx.TransportError as err:
            integration_error = IntegrationUnavailableError(service, str(err))
        except IntegrationUnavailableError as err:
            integration_error = err

        if attempt >= max_retries:
            raise integration_error
        time.sleep(backoff_s * (2**attempt))

    raise IntegrationUnavailableError(service)
