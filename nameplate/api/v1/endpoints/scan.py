import base64
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile

from nameplate.api.v1.schemas.schemas import AssignAcceptedResponse, ExtractionRequest, PreviewResponse
from nameplate.core.config import settings
from nameplate.core.context import get_correlation_id
from nameplate.core.dependencies import get_extractor, get_quick_extractor, get_scan_service
from nameplate.core.exceptions import PreprocessingFailure, RecognitionFailure
from nameplate.core.limiter import limiter
from nameplate.core.logging import LoggerRegistry
from nameplate.domain.models import NameplateRecord, RecognitionOptions
from nameplate.extraction.extractor import NameplateExtractor
from nameplate.services.image_preprocessor import load_captured_image
from nameplate.services.scan_service import NameplateScanService
from nameplate.tasks.celery_worker import run_scan_task

router = APIRouter()
logger = LoggerRegistry.get_api_logger("scan")


async def _read_upload(file: UploadFile) -> bytes:
    data = await file.read()
    if len(data) > settings.MAX_CAPTURE_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"Upload is {len(data)} bytes; the limit is {settings.MAX_CAPTURE_BYTES}.",
        )
    return data


@router.post("/extract", response_model=NameplateRecord)
@limiter.limit("60/minute")
async def extract_text(
    request: Request,
    body: ExtractionRequest,
    extractor: NameplateExtractor = Depends(get_extractor),
    quick_extractor: NameplateExtractor = Depends(get_quick_extractor),
):
    """Runs the extraction rules over text that has already been recognized."""
    return (extractor if body.strict else quick_extractor).extract(body.text)


@router.post("/preview", response_model=PreviewResponse)
@limiter.limit("20/minute")
async def preview_scan(
    request: Request,
    file: UploadFile = File(...),
    engine: Optional[str] = Form(None),
    language: Optional[str] = Form(None),
    service: NameplateScanService = Depends(get_scan_service),
):
    """
    Synchronous quick scan of a single photo.

    Uses the quick extraction rules and never stores or assigns anything, so a
    client can show the reading before committing it.
    """
    data = await _read_upload(file)
    options = RecognitionOptions(
        engine=engine or settings.OCR_DEFAULT_ENGINE,
        language=language or settings.OCR_LANGUAGE,
    )
    try:
        image = load_captured_image(data, mime_type=file.content_type, file_name=file.filename)
        outcome = await service.preview(image, options)
    except PreprocessingFailure as e:
        logger.warning("scan.preview.preprocessing_failed", error=str(e), size=e.size)
        raise HTTPException(status_code=413, detail=str(e))
    except RecognitionFailure as e:
        logger.error(
            "scan.preview.recognition_failed",
            failure=e.result.failure.value if e.result.failure else None,
            attempts=e.result.attempts,
        )
        raise HTTPException(status_code=502, detail=str(e))

    return PreviewResponse(
        request_id=outcome.request_id,
        record=outcome.record,
        engine=outcome.engine,
        attempts=outcome.attempts,
    )


@router.post("/assign", response_model=AssignAcceptedResponse, status_code=202)
@limiter.limit("30/minute")
async def assign_scan(
    request: Request,
    file: Optional[UploadFile] = File(None),
    installation_id: Optional[int] = Form(None),
    service: NameplateScanService = Depends(get_scan_service),
):
    """
    Accepts a nameplate photo for an installation and processes it in the background.

    Preprocessing runs here so an image that can never fit the upload budget is
    rejected before a task is queued. The prepared image is what the worker
    recognizes and stores.
    """
    if file is None or installation_id is None:
        raise HTTPException(status_code=400, detail="Both 'file' and 'installation_id' are required.")

    data = await _read_upload(file)
    if not data:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")

    try:
        image = load_captured_image(data, mime_type=file.content_type, file_name=file.filename)
        prepared = service.prepare(image)
    except PreprocessingFailure as e:
        logger.warning("scan.assign.preprocessing_failed", error=str(e), size=e.size)
        raise HTTPException(status_code=413, detail=str(e))

    request_id = get_correlation_id()
    run_scan_task.delay(
        image_b64=base64.b64encode(prepared.data).decode("ascii"),
        mime_type=prepared.mime_type,
        installation_id=installation_id,
        request_id=request_id,
    )
    logger.info(
        "scan.assign.queued",
        request_id=request_id,
        installation_id=installation_id,
        prepared_size=prepared.size,
        reencoded=prepared.reencoded,
    )
    return AssignAcceptedResponse(request_id=request_id)
