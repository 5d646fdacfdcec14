from fastapi import HTTPException, status

from printflow.integrations.errors import IntegrationError
from printflow.services.errors import InvalidTransition


def translate_integration_error(err: IntegrationError) -> HTTPException:
    code = status.HTTP_503_SERVICE_UNAVAILABLE if err.retryable else status.HTTP_502_BAD_GATEWAY
    return HTTPException(status_code=code, detail=err.detail())


def translate_invalid_transition(err: InvalidTransition) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={
            "from_status": err.from_status,
            "to_status": err.to_status,
            "reason": err.reason,
        },
    )


def not_found(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=message)


def gateway_not_configured() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Payment gateway is not configured",
    )
