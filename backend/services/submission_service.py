"""
Submission Service - end-to-end processing of a merchant application.

Flow:
1. Decode the three uploads and assign an application ID
2. Build the merged package (render -> normalize -> merge) in the thread pool
3. Deliver: GridFS, Google Drive, Monday.com, internal + merchant email, WhatsApp
4. Persist the submission record and audit the outcome

Pipeline errors abort the submission. Delivery failures are logged, audited, and
never fail the submission.
"""
import asyncio
import logging
import os
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from database import database
from models import AuditAction, DeliveryChannel
from models.merchant import FormSubmission, SubmissionRecord, SubmitApplicationRequest
from services.application_id import get_next_app_id
from services.document_errors import DocumentPipelineError
from services.document_pipeline import attachments_from_uploads, build_application_package
from services.drive_storage import drive_storage
from services.email_service import email_service, parse_recipients
from services.monday_service import monday_integration
from services.pdf_document import PdfDocument
from services.storage_adapter import storage_adapter, upload_application_pdf
from services.whatsapp_service import whatsapp_service
from utils.audit import create_audit_log
from utils.filenames import application_pdf_filename
from utils.public_app_url import submission_pdf_url

logger = logging.getLogger(__name__)

SUBMISSIONS_COLLECTION = "merchant_submissions"


class SubmissionNotFound(Exception):
    pass


async def _deliver(channel: DeliveryChannel, app_id: str, step: Callable[[], Awaitable[Any]]) -> Any:
    """Run one delivery step; failures are logged and audited, never raised."""
    try:
        return await step()
    except Exception as e:
        logger.error(f"Delivery via {channel.value} failed for {app_id}: {e}")
        await create_audit_log(
            action=AuditAction.APPLICATION_DELIVERY_FAILED,
            resource_type="submission",
            resource_id=app_id,
            metadata={"channel": channel.value, "error": str(e)[:500], "error_type": type(e).__name__},
        )
        return None


async def build_package(form: FormSubmission, app_id: str, attachments, generated_at: datetime) -> PdfDocument:
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(
        None,
        lambda: build_application_package(form, app_id, attachments, generated_at),
    )


async def process_submission(request: SubmitApplicationRequest, ip_address: Optional[str] = None) -> SubmissionRecord:
    """Build and deliver one application package. Raises DocumentPipelineError on bad documents."""
    db = database.get_db()
    form = request.form_data or FormSubmission()

    try:
        attachments = attachments_from_uploads(request.file_attachments)
    except DocumentPipelineError as e:
        await create_audit_log(
            action=AuditAction.APPLICATION_REJECTED,
            resource_type="submission",
            metadata={"error_code": e.error_code, "message": e.message},
            ip_address=ip_address,
        )
        raise

    app_id = await get_next_app_id()
    created_at = datetime.now(timezone.utc)

    try:
        package = await build_package(form, app_id, attachments, created_at)
    except DocumentPipelineError as e:
        logger.warning(f"Application {app_id} rejected: {e.error_code} - {e.message}")
        await create_audit_log(
            action=AuditAction.APPLICATION_REJECTED,
            resource_type="submission",
            resource_id=app_id,
            metadata={"error_code": e.error_code, "message": e.message},
            ip_address=ip_address,
        )
        raise

    business_name = form.dba_name or form.legal_business_name
    owner_name = form.owner_name
    created_iso = created_at.isoformat()
    filename = application_pdf_filename(form.dba_name, form.legal_business_name, app_id)

    record = SubmissionRecord(
        app_id=app_id,
        business_name=business_name,
        owner_name=owner_name,
        created_at=created_at,
        pdf_filename=filename,
        page_count=package.page_count,
    )
    delivered = []

    stored = await _deliver(
        DeliveryChannel.STORAGE, app_id,
        lambda: upload_application_pdf(app_id, package.content, filename),
    )
    if stored:
        record.pdf_file_id = stored.file_id
        delivered.append(DeliveryChannel.STORAGE.value)

    drive = await _deliver(
        DeliveryChannel.DRIVE, app_id,
        lambda: drive_storage.upload_pdf(package.content, filename, created_at),
    )
    if drive and not drive.get("skipped"):
        record.drive_file_id = drive.get("file_id")
        record.drive_web_view_link = drive.get("web_view_link")
        record.drive_direct_download_url = drive.get("direct_download_url")
        delivered.append(DeliveryChannel.DRIVE.value)

    crm_item_id = await _deliver(
        DeliveryChannel.CRM, app_id,
        lambda: monday_integration.create_application_item(app_id, business_name, owner_name, created_iso),
    )
    if crm_item_id:
        record.crm_item_id = crm_item_id
        delivered.append(DeliveryChannel.CRM.value)

    await db[SUBMISSIONS_COLLECTION].insert_one(record.model_dump(mode="json"))

    recipients = parse_recipients(os.getenv("RECIPIENTS"))
    if recipients:
        logs = await _deliver(
            DeliveryChannel.EMAIL_INTERNAL, app_id,
            lambda: email_service.send_internal_notification(
                recipients=recipients,
                app_id=app_id,
                business_name=business_name,
                owner_name=owner_name,
                created_at=created_iso,
                page_count=package.page_count,
                filename=filename,
                pdf_content=package.content,
                drive_link=record.drive_web_view_link,
            ),
        )
        if logs and all(log.status == "sent" for log in logs):
            delivered.append(DeliveryChannel.EMAIL_INTERNAL.value)
    else:
        logger.warning("RECIPIENTS not set - internal notification skipped")

    if form.contact_email:
        log = await _deliver(
            DeliveryChannel.EMAIL_MERCHANT, app_id,
            lambda: email_service.send_merchant_confirmation(
                recipient=form.contact_email,
                app_id=app_id,
                business_name=business_name,
                owner_name=owner_name,
            ),
        )
        if log and log.status == "sent":
            delivered.append(DeliveryChannel.EMAIL_MERCHANT.value)

    media_url = record.drive_direct_download_url or submission_pdf_url(app_id)
    whatsapp = await _deliver(
        DeliveryChannel.WHATSAPP, app_id,
        lambda: whatsapp_service.notify_new_application(app_id, business_name, owner_name, created_iso, media_url),
    )
    if whatsapp and not whatsapp.get("skipped"):
        failed = [r for r in whatsapp.get("results", []) if not r.get("success")]
        if failed:
            await create_audit_log(
                action=AuditAction.APPLICATION_DELIVERY_FAILED,
                resource_type="submission",
                resource_id=app_id,
                metadata={"channel": DeliveryChannel.WHATSAPP.value, "failed_recipients": len(failed)},
            )
        if len(failed) < len(whatsapp.get("results", [])):
            delivered.append(DeliveryChannel.WHATSAPP.value)

    await create_audit_log(
        action=AuditAction.APPLICATION_SUBMITTED,
        resource_type="submission",
        resource_id=app_id,
        metadata={"page_count": package.page_count, "delivered": delivered},
        ip_address=ip_address,
    )
    logger.info(f"Application {app_id} processed ({package.page_count} pages, delivered: {delivered})")
    return record


async def get_submission(app_id: str) -> SubmissionRecord:
    db = database.get_db()
    doc = await db[SUBMISSIONS_COLLECTION].find_one({"app_id": app_id}, {"_id": 0})
    if not doc:
        raise SubmissionNotFound(app_id)
    return SubmissionRecord(**doc)


async def get_submission_pdf(app_id: str) -> tuple[bytes, str]:
    """Merged PDF bytes and filename for a stored submission."""
    record = await get_submission(app_id)
    if not record.pdf_file_id:
        raise SubmissionNotFound(app_id)
    content, _ = await storage_adapter.download_file(record.pdf_file_id)
    return content, record.pdf_filename


def submission_summary(record: SubmissionRecord) -> Dict[str, Any]:
    return {
        "appId": record.app_id,
        "businessName": record.business_name,
        "ownerName": record.owner_name,
        "createdAt": record.created_at.isoformat(),
        "pageCount": record.page_count,
        "pdfFilename": record.pdf_filename,
        "driveFileId": record.drive_file_id,
        "driveWebViewLink": record.drive_web_view_link,
        "driveDirectDownloadUrl": record.drive_direct_download_url,
        "crmItemId": record.crm_item_id,
    }
