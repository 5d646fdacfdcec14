from printflow.integrations.errors import (
    IntegrationAuthError,
    IntegrationBadGatewayError,
    IntegrationError,
    IntegrationQuotaError,
    IntegrationTimeoutError,
    IntegrationUnavailableError,
)

__all__ = [
    "IntegrationError",
    "IntegrationTimeoutError",
    "IntegrationUnavailableError",
    "IntegrationBadGatewayError",
    "IntegrationAuthError",
    "IntegrationQuotaError",
]
