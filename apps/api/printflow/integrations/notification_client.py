import logging
from typing import Protocol

import httpx

from printflow.config import settings
from printflow.integrations.transport import build_timeout
from printflow.observability import log_event, metrics_store


class NotifierProtocol(Protocol):
    def notify(self, event: str, payload: dict) -> bool: ...


class HttpNotifier:
    """Fire-and-forget notifications; failures are reported as ``False``."""

    def __init__(self, base_url: str, timeout_s: float) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s

    def notify(self, event: str, payload: dict) -> bool:
        order_id = payload.get("order_id")
        try:
            with httpx.Client(timeout=build_timeout(self.timeout_s)) as client:
                response = client.post(
                    f"{self.base_url}/notify", json={"event": event, "payload": payload}
                )
        except httpx.HTTPError as err:
            metrics_store.increment("notification_failure_total")
            log_event(
                "notification_failed",
                order_id=order_id,
                level=logging.WARNING,
                event=event,
                error=str(err),
            )
            return False

        if response.status_code >= 400:
            metrics_store.increment("notification_failure_total")
            log_event(
                "notification_rejected",
                order_id=order_id,
                level=logging.WARNING,
                event=event,
                status_code=response.status_code,
            )
            return False
        return True


class LoggingNotifier:
    def notify(self, event: str, payload: dict) -> bool:
        log_event("notification_logged", order_id=payload.get("order_id"), event=event)
        return True


def get_notifier() -> NotifierProtocol:
    if not settings.notification_base_url:
        return LoggingNotifier()
    return HttpNotifier(settings.notification_base_url, settings.notification_timeout_s)
