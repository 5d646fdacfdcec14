class IntegrationError(Exception):
    """An upstream call failed; subclasses fix the code and whether a retry can help."""

    code = "UPSTREAM"
    retryable = False
    default_message = "Upstream request failed"

    def __init__(self, service: str, message: str | None = None) -> None:
        self.service = service
        self.message = message or self.default_message
        super().__init__(service, self.message)

    def __str__(self) -> str:
        return f"{self.service}:{self.code}:{self.message}"

    def detail(self) -> dict[str, str]:
        return {"service": self.service, "code": self.code, "message": self.message}


class IntegrationTimeoutError(IntegrationError):
    code = "TIMEOUT"
    retryable = True
    default_message = "Upstream timeout"


class IntegrationUnavailableError(IntegrationError):
    code = "UNAVAILABLE"
    retryable = True
    default_message = "Upstream unavailable"


class IntegrationBadGatewayError(IntegrationError):
    code = "BAD_GATEWAY"
    default_message = "Unexpected upstream response"


# Conversion providers: the pipeline skips these without retrying the same provider.
class IntegrationAuthError(IntegrationError):
    code = "AUTH"
    default_message = "Upstream rejected credentials"


class IntegrationQuotaError(IntegrationError):
    code = "QUOTA"
    default_message = "Upstream quota exhausted"
