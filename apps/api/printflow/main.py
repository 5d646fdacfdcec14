from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from printflow.config import allowed_origins, ensure_secure_runtime_settings, settings
from printflow.db.migration_check import maybe_create_schema
from printflow.db.session import engine
from printflow.observability import (
    configure_logging,
    log_event,
    metrics_store,
    observe_timing,
    set_request_id,
)
from printflow.routers.conversions import router as conversions_router
from printflow.routers.cron import router as cron_router
from printflow.routers.health import router as health_router
from printflow.routers.metrics import router as metrics_router
from printflow.routers.orders import router as orders_router
from printflow.routers.payments import router as payments_router
from printflow.routers.printing import router as printing_router
from printflow.routers.webhooks import router as webhooks_router


@asynccontextmanager
async def lifespan(_app: FastAPI):
    import printflow.models  # noqa: F401 (register all SQLAlchemy models)

    configure_logging()
    ensure_secure_runtime_settings()
    maybe_create_schema(engine)
    yield


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    description="Print order lifecycle, payment verification and document production API",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next) -> Response:
    request_id = request.headers.get("X-Request-ID") or str(uuid4())
    set_request_id(request_id)

    with observe_timing("http_request_duration_seconds"):
        response = await call_next(request)

    response.headers["X-Request-ID"] = request_id
    metrics_store.increment("http_requests_total")
    log_event(
        "http_request",
        order_id=request.path_params.get("order_id"),
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
    )
    return response


for router in (
    health_router,
    orders_router,
    payments_router,
    webhooks_router,
    conversions_router,
    printing_router,
    cron_router,
    metrics_router,
):
    app.include_router(router)
