"""
Merchant Onboarding Routes - public form endpoints.
Document pre-fill (OCR), application submission, and submission lookups.
"""
from fastapi import APIRouter, HTTPException, Request, Response, status
from models import AuditAction
from models.merchant import ExtractDocumentsRequest, SubmitApplicationRequest
from services.document_errors import DocumentPipelineError
from services.document_extraction import empty_extraction, extract_documents
from services.document_pipeline import missing_attachments
from services.storage_adapter import StorageError
from services.submission_service import (
    SubmissionNotFound,
    get_submission,
    get_submission_pdf,
    process_submission,
    submission_summary,
)
from utils.audit import create_audit_log
from utils.rate_limiter import SUBMIT_RATE_LIMIT, SUBMIT_RATE_WINDOW_MINUTES, rate_limiter
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["merchant-onboarding"])


def _error_payload(message: str, error_code: str = "VALIDATION_FAILED", **extra) -> dict:
    """Consistent error payload for 4xx responses."""
    return {
        "error_code": error_code,
        "message": message,
        **extra,
    }


@router.post("/extract")
async def extract_document_fields(body: ExtractDocumentsRequest):
    """
    Pre-fill form fields from the three uploaded documents.
    - All three documents are required.
    - Without consent no document leaves the server; empty groups are returned.
    """
    if not (body.id_image_data_url and body.check_image_data_url and body.w9_image_data_url):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_error_payload(
                "All 3 documents are required (ID, Check/Letter, W-9).",
                "DOCUMENTS_REQUIRED",
            ),
        )

    if not body.consent:
        logger.info("Extraction skipped: no consent")
        return {"success": True, "extracted": empty_extraction()}

    extracted = await extract_documents(
        body.id_image_data_url,
        body.check_image_data_url,
        body.w9_image_data_url,
    )
    await create_audit_log(
        action=AuditAction.DOCUMENTS_EXTRACTED,
        resource_type="extraction",
        metadata={group: sum(1 for v in fields.values() if v) for group, fields in extracted.items()},
    )
    return {"success": True, "extracted": extracted}


@router.post("/submit")
async def submit_application(body: SubmitApplicationRequest, request: Request):
    """
    Submit a merchant application.
    Renders the application, merges it with ID / check / W-9 and delivers the package.
    """
    client_ip = request.client.host if request.client else "unknown"

    if body.form_data is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_error_payload("formData is required.", "FORM_DATA_REQUIRED"),
        )

    missing = missing_attachments(body.file_attachments)
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_error_payload(
                "All 3 documents are required (ID, Check/Letter, W-9).",
                "DOCUMENTS_REQUIRED",
                missing=missing,
            ),
        )

    allowed, retry_after = await rate_limiter.check_rate_limit(
        f"submit:{client_ip}", SUBMIT_RATE_LIMIT, SUBMIT_RATE_WINDOW_MINUTES
    )
    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=_error_payload(
                f"Too many submissions. Try again in {retry_after} seconds.",
                "RATE_LIMITED",
                retry_after=retry_after,
            ),
        )

    try:
        record = await process_submission(body, ip_address=client_ip)
    except DocumentPipelineError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=_error_payload(e.message, e.error_code),
        )

    return {
        "success": True,
        "appId": record.app_id,
        "businessName": record.business_name,
        "ownerName": record.owner_name,
        "createdAt": record.created_at.isoformat(),
        "pageCount": record.page_count,
    }


@router.get("/submission/{app_id}")
async def get_submission_details(app_id: str):
    """Submission metadata and delivery links for the success page."""
    try:
        record = await get_submission(app_id)
    except SubmissionNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=_error_payload(f"Submission not found: {app_id}", "SUBMISSION_NOT_FOUND"),
        )
    return {"success": True, **submission_summary(record)}


@router.get("/submission/{app_id}/pdf")
async def download_submission_pdf(app_id: str):
    """Download the merged application package."""
    try:
        content, filename = await get_submission_pdf(app_id)
    except (SubmissionNotFound, StorageError):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=_error_payload(f"Submission PDF not found: {app_id}", "SUBMISSION_NOT_FOUND"),
        )

    await create_audit_log(
        action=AuditAction.APPLICATION_DOWNLOADED,
        resource_type="submission",
        resource_id=app_id,
    )
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
