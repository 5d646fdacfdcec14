import json

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from printflow.db.session import get_db
from printflow.dependencies import get_render_webhook_handler
from printflow.integrations.errors import IntegrationError
from printflow.routers.errors import not_found, translate_integration_error
from printflow.schemas.webhook import RenderWebhookResponse
from printflow.services.errors import MalformedWebhook, OrderNotFound, WebhookUnauthorized
from printflow.services.render_webhook_service import (
    RenderWebhookHandler,
    parse_webhook,
    verify_webhook_secret,
)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/render", response_model=RenderWebhookResponse, summary="Render service callback")
async def render_webhook(
    request: Request,
    x_render_webhook_secret: str | None = Header(default=None),
    db: Session = Depends(get_db),
    handler: RenderWebhookHandler = Depends(get_render_webhook_handler),
) -> RenderWebhookResponse:
    try:
        verify_webhook_secret(x_render_webhook_secret)
    except WebhookUnauthorized as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook secret"
        ) from err

    raw = await request.body()
    try:
        payload = parse_webhook(json.loads(raw or b"null"))
    except (MalformedWebhook, ValueError) as err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err)) from err

    try:
        # storage transfer and commits block; keep them off the event loop
        message = await run_in_threadpool(handler.handle, db, payload)
    except OrderNotFound as err:
        raise not_found("Order not found") from err
    except MalformedWebhook as err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err)) from err
    except IntegrationError as err:
        raise translate_integration_error(err) from err

    return RenderWebhookResponse(success=True, message=message)
