from fastapi import APIRouter, Depends, HTTPException, status

from printflow.auth.dependencies import require_admin
from printflow.dependencies import get_conversion_pipeline
from printflow.integrations.errors import IntegrationError
from printflow.models.conversion_job import ConversionJobStatus
from printflow.routers.errors import not_found, translate_integration_error
from printflow.schemas.conversion import (
    ConversionRequest,
    ConversionResponse,
    ConversionStatusResponse,
)
from printflow.services.conversion_pipeline import ConversionPipeline
from printflow.services.errors import ConversionFailed, ConversionJobNotFound

router = APIRouter(prefix="/api/v1/conversions", tags=["conversions"])


@router.post(
    "",
    response_model=ConversionResponse,
    summary="Convert a DOCX document to PDF",
    dependencies=[Depends(require_admin)],
)
def convert_document_endpoint(
    payload: ConversionRequest,
    pipeline: ConversionPipeline = Depends(get_conversion_pipeline),
) -> ConversionResponse:
    try:
        outcome = pipeline.convert_document(
            payload.word_url,
            order_id=payload.order_id,
            prefer_async=payload.mode == "async",
        )
    except ConversionFailed as err:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "message": "All conversion providers failed",
                "attempts": [
                    {"provider": a.provider, "code": a.code, "message": a.message}
                    for a in err.attempts
                ],
            },
        ) from err
    except IntegrationError as err:
        raise translate_integration_error(err) from err

    failed = [attempt.provider for attempt in outcome.failures]
    if outcome.job is not None:
        return ConversionResponse(
            status=ConversionJobStatus.PROCESSING,
            job_id=outcome.job.job_id,
            provider="render_service",
            failed_providers=failed,
        )
    return ConversionResponse(
        status=ConversionJobStatus.COMPLETED,
        provider=outcome.provider,
        pdf_url=outcome.pdf_url,
        failed_providers=failed,
    )


@router.get(
    "/{job_id}/status",
    response_model=ConversionStatusResponse,
    summary="Conversion job status",
)
def conversion_status_endpoint(
    job_id: str,
    pipeline: ConversionPipeline = Depends(get_conversion_pipeline),
) -> ConversionStatusResponse:
    try:
        view = pipeline.job_status(job_id)
    except ConversionJobNotFound as err:
        raise not_found("Conversion job not found") from err
    return ConversionStatusResponse(
        job_id=view.job_id,
        status=view.status,
        progress=view.progress,
        pdf_url=view.pdf_url,
        word_url=view.word_url,
        error=view.error,
    )
