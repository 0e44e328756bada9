"""Document Pipeline - render, normalize and merge into one application package.

The package is always ordered: application, photo ID, voided check / bank letter, W-9.
Any pipeline error aborts the whole build; callers never receive a partial buffer.
"""
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from models.merchant import FileAttachment, FileAttachments, FormSubmission
from services.application_renderer import render
from services.document_errors import DecodeError
from services.document_merger import merge
from services.document_normalizer import Attachment, normalize
from services.pdf_document import PdfDocument
from utils.data_url import parse_data_url

logger = logging.getLogger(__name__)

ATTACHMENT_SLOTS = (
    ("id_file", "Photo ID"),
    ("check_file", "Voided Check / Bank Letter"),
    ("w9_file", "W-9"),
)


def attachment_from_upload(upload: FileAttachment, label: str) -> Attachment:
    """Decode one uploaded {filename, mimeType, dataUrl} object."""
    parsed = parse_data_url(upload.data_url)
    if parsed is None:
        raise DecodeError(f"{label}: upload is not a valid base64 data URL")
    url_media_type, content = parsed
    return Attachment(
        media_type=(upload.mime_type or url_media_type or "").strip().lower(),
        content=content,
        filename=upload.filename,
        label=label,
    )


def missing_attachments(files: Optional[FileAttachments]) -> List[str]:
    """Labels of the required uploads that are absent or empty."""
    missing = []
    for slot, label in ATTACHMENT_SLOTS:
        upload = getattr(files, slot, None) if files else None
        if upload is None or not (upload.data_url or "").strip():
            missing.append(label)
    return missing


def attachments_from_uploads(files: FileAttachments) -> List[Attachment]:
    return [attachment_from_upload(getattr(files, slot), label) for slot, label in ATTACHMENT_SLOTS]


def build_application_package(
    form: FormSubmission,
    app_id: str,
    attachments: Sequence[Attachment],
    generated_at: Optional[datetime] = None,
) -> PdfDocument:
    """Render the application and append each attachment's pages in the given order."""
    application = render(form, app_id, generated_at)
    documents = [application]
    for attachment in attachments:
        documents.append(normalize(attachment))
    package = merge(documents)
    logger.info(
        f"Built package for {app_id}: application={application.page_count} pages, "
        f"attachments={[d.page_count for d in documents[1:]]}, total={package.page_count}"
    )
    return package
