"""Document Normalizer - turns an uploaded attachment into a PDF document.

PDF uploads pass through byte-for-byte after a structural check. PNG/JPEG uploads are
embedded on a single Letter page, scaled uniformly and centered inside a fixed margin.
Detection goes by content sniffing first; the declared media type is only consulted
to choose the error when nothing sniffs.
"""
import io
import logging
from dataclasses import dataclass, field
from typing import Optional

from PIL import Image, ImageOps
from reportlab.lib.pagesizes import letter
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from services.document_errors import DecodeError, UnsupportedFormat
from services.pdf_document import PAGE_HEIGHT, PAGE_WIDTH, PdfDocument, fit_within

logger = logging.getLogger(__name__)

IMAGE_MARGIN = 20.0
PDF_SNIFF_WINDOW = 1024

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
JPEG_SIGNATURE = b"\xff\xd8\xff"

ACCEPTED_MEDIA_TYPES = {"application/pdf", "image/png", "image/jpeg", "image/jpg"}


@dataclass(frozen=True)
class Attachment:
    """One uploaded file awaiting normalization."""
    media_type: str
    content: bytes = field(repr=False)
    filename: Optional[str] = None
    label: str = "Attachment"


def sniff_format(content: bytes) -> Optional[str]:
    """Return "pdf", "png", "jpeg" or None based on the leading bytes."""
    if b"%PDF-" in content[:PDF_SNIFF_WINDOW]:
        return "pdf"
    if content.startswith(PNG_SIGNATURE):
        return "png"
    if content.startswith(JPEG_SIGNATURE):
        return "jpeg"
    return None


def normalize(attachment: Attachment) -> PdfDocument:
    """Convert an attachment into a PdfDocument or raise DecodeError / UnsupportedFormat."""
    content = attachment.content or b""
    if not content:
        raise DecodeError(f"{attachment.label}: file is empty")

    detected = sniff_format(content)
    if detected == "pdf":
        document = PdfDocument.from_bytes(content, source=attachment.label)
        logger.info(f"{attachment.label}: PDF passthrough ({document.page_count} pages)")
        return document
    if detected in ("png", "jpeg"):
        return image_to_pdf(content, attachment.label)

    declared = (attachment.media_type or "").split(";")[0].strip().lower()
    if declared in ACCEPTED_MEDIA_TYPES:
        raise DecodeError(f"{attachment.label}: content does not match declared type {declared}")
    raise UnsupportedFormat(
        f"{attachment.label}: unsupported file type {declared or 'unknown'} "
        f"(accepted: PDF, PNG, JPEG)"
    )


def image_to_pdf(content: bytes, label: str = "image") -> PdfDocument:
    """Draw a raster image centered on one Letter page, preserving aspect ratio."""
    try:
        with Image.open(io.BytesIO(content)) as img:
            img.load()
            img = ImageOps.exif_transpose(img)
            if img.mode not in ("RGB", "RGBA", "L"):
                img = img.convert("RGB")
            width, height = img.size
            buffer = io.BytesIO()
            img.save(buffer, format="PNG")
    except Exception as e:
        raise DecodeError(f"{label}: image could not be decoded ({e})") from e
    if width <= 0 or height <= 0:
        raise DecodeError(f"{label}: image has no pixels")

    usable_w = PAGE_WIDTH - 2 * IMAGE_MARGIN
    usable_h = PAGE_HEIGHT - 2 * IMAGE_MARGIN
    draw_w, draw_h = fit_within(width, height, usable_w, usable_h)
    x = (PAGE_WIDTH - draw_w) / 2
    y = (PAGE_HEIGHT - draw_h) / 2

    out = io.BytesIO()
    c = canvas.Canvas(out, pagesize=letter, invariant=1)
    c.drawImage(ImageReader(io.BytesIO(buffer.getvalue())), x, y, width=draw_w, height=draw_h, mask="auto")
    c.showPage()
    c.save()

    logger.info(f"{label}: embedded {width}x{height} image at {draw_w:.0f}x{draw_h:.0f} pt")
    return PdfDocument.from_bytes(out.getvalue(), source=label)
