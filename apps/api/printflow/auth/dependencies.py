import hmac

from fastapi import Header, HTTPException, status

from printflow.config import settings


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization.removeprefix("Bearer ").strip()


def require_admin(authorization: str | None = Header(default=None)) -> None:
    token = _bearer_token(authorization)
    if not token:
        raise _unauthorized("Missing bearer token")
    if not hmac.compare_digest(token, settings.admin_api_token):
        raise _unauthorized("Invalid admin token")


def require_cron_secret(
    authorization: str | None = Header(default=None),
    x_cron_secret: str | None = Header(default=None),
) -> None:
    """Accept the cron secret as a bearer token or in ``X-Cron-Secret``."""
    provided = x_cron_secret or _bearer_token(authorization)
    if not provided:
        raise _unauthorized("Missing cron secret")
    if not hmac.compare_digest(provided, settings.cron_secret):
        raise _unauthorized("Invalid cron secret")
