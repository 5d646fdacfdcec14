from dataclasses import dataclass, field


class OrderNotFound(Exception):
    def __init__(self, reference: str) -> None:
        super().__init__(f"Order not found: {reference}")
        self.reference = reference


class InvalidSignature(Exception):
    def __init__(self, message: str = "Payment signature verification failed") -> None:
        super().__init__(message)


class GatewayNotConfigured(Exception):
    def __init__(self, message: str = "Payment gateway credentials are not configured") -> None:
        super().__init__(message)


class InvalidTransition(Exception):
    def __init__(self, from_status: str, to_status: str, reason: str) -> None:
        super().__init__(f"Invalid state transition: {from_status} -> {to_status} ({reason})")
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason


class ConversionJobNotFound(Exception):
    def __init__(self, job_id: str) -> None:
        super().__init__(f"Conversion job not found: {job_id}")
        self.job_id = job_id


@dataclass
class ProviderAttempt:
    provider: str
    code: str
    message: str


@dataclass
class ConversionFailed(Exception):
    attempts: list[ProviderAttempt] = field(default_factory=list)

    def __str__(self) -> str:
        if not self.attempts:
            return "No conversion provider available"
        return "; ".join(f"{a.provider}:{a.code}:{a.message}" for a in self.attempts)


class WebhookUnauthorized(Exception):
    pass


class MalformedWebhook(Exception):
    pass


class TemplateFillError(Exception):
    def __init__(self, message: str, missing_fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.missing_fields = missing_fields or []


class InvalidOrderRequest(Exception):
    pass
