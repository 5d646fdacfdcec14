from fastapi import APIRouter, Depends

from printflow.auth.dependencies import require_admin
from printflow.observability import metrics_store
from printflow.schemas.ops import MetricsResponse
from printflow.services.print_dispatch_service import get_retry_queue

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get(
    "",
    summary="Observability metrics",
    response_model=MetricsResponse,
    dependencies=[Depends(require_admin)],
)
def metrics_endpoint() -> MetricsResponse:
    snapshot = metrics_store.snapshot()
    retry_queue = get_retry_queue()
    return MetricsResponse(
        counters=snapshot.counters,
        timings=snapshot.timings,
        retry_queue_pending=len(retry_queue.pending()),
        retry_queue_exhausted=len(retry_queue.exhausted()),
    )
