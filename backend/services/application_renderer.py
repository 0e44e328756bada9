"""Application Renderer - draws the laid-out merchant application onto a reportlab canvas.

Layout decisions live in services.application_layout; this module only:
- decodes the signature image (Pillow)
- converts top-down layout coordinates to PDF space
- draws each page's body, then its footer
"""
import io
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from PIL import Image, ImageOps
from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from models.merchant import FormSubmission
from services.application_layout import (
    COMPANY_NAME,
    DrawCommand,
    ImageCommand,
    LineCommand,
    RectCommand,
    SignatureImage,
    TextCommand,
    layout_application,
    stamp_footers,
    unencodable_chars,
)
from services.document_errors import RenderError, RenderFallback
from services.pdf_document import PAGE_HEIGHT, PdfDocument
from utils.data_url import parse_data_url

logger = logging.getLogger(__name__)


def load_signature(data_url: Optional[str]) -> Optional[SignatureImage]:
    """Decode a signature data URL into PNG bytes. Returns None if absent or unreadable."""
    try:
        return _decode_signature(data_url)
    except RenderFallback as e:
        logger.warning(f"Signature image skipped: {e}")
        return None


def _decode_signature(data_url: Optional[str]) -> Optional[SignatureImage]:
    if not (data_url or "").strip():
        return None
    parsed = parse_data_url(data_url)
    if parsed is None:
        raise RenderFallback("signature is not a base64 data URL")
    _, content = parsed
    try:
        with Image.open(io.BytesIO(content)) as img:
            img = ImageOps.exif_transpose(img)
            if img.mode not in ("RGB", "RGBA"):
                img = img.convert("RGBA")
            buffer = io.BytesIO()
            img.save(buffer, format="PNG")
            width, height = img.size
    except Exception as e:
        raise RenderFallback(f"signature could not be decoded ({e})") from e
    if width <= 0 or height <= 0:
        raise RenderFallback("signature has no pixels")
    return SignatureImage(content=buffer.getvalue(), width=width, height=height)


class ApplicationRenderer:
    """Render a FormSubmission + application ID into a multi-page PDF."""

    def render(
        self,
        form: FormSubmission,
        app_id: str,
        generated_at: Optional[datetime] = None,
    ) -> PdfDocument:
        generated_at = generated_at or datetime.now(timezone.utc)
        signature = load_signature(form.signature_image_data_url)

        layout = layout_application(form, app_id, signature)
        self._warn_unencodable(layout.commands, app_id)
        footers = stamp_footers(layout.page_count, generated_at)

        try:
            content = self._draw(layout.page_count, layout.commands, footers, app_id)
        except RenderError:
            raise
        except Exception as e:
            logger.error(f"Application render failed for {app_id}: {e}")
            raise RenderError(f"Application PDF could not be drawn: {e}") from e

        document = PdfDocument.from_bytes(content, source="application")
        if document.page_count != layout.page_count:
            raise RenderError(
                f"Rendered {document.page_count} pages, layout produced {layout.page_count}"
            )
        logger.info(f"Rendered application {app_id}: {document.page_count} pages")
        return document

    def _warn_unencodable(self, commands: Iterable[DrawCommand], app_id: str):
        affected = [c for c in commands if isinstance(c, TextCommand) and unencodable_chars(c.text)]
        if affected:
            logger.warning(
                f"Application {app_id}: {len(affected)} value(s) contain characters outside the "
                f"WinAnsi font encoding and will render as boxes"
            )

    def _draw(
        self,
        page_count: int,
        body: Iterable[DrawCommand],
        footers: Iterable[DrawCommand],
        app_id: str,
    ) -> bytes:
        buffer = io.BytesIO()
        c = canvas.Canvas(buffer, pagesize=letter, invariant=1)
        c.setTitle(f"Merchant Application APP-{app_id}")
        c.setAuthor(COMPANY_NAME)
        c.setSubject("Merchant Application")

        pages: Dict[int, List[DrawCommand]] = {i: [] for i in range(page_count)}
        for command in body:
            pages[command.page].append(command)
        footer_pages: Dict[int, List[DrawCommand]] = {i: [] for i in range(page_count)}
        for command in footers:
            footer_pages[command.page].append(command)

        for page in range(page_count):
            for command in pages[page] + footer_pages[page]:
                self._draw_command(c, command)
            c.showPage()

        c.save()
        return buffer.getvalue()

    def _draw_command(self, c: canvas.Canvas, command: DrawCommand):
        if isinstance(command, TextCommand):
            self._draw_text(c, command)
        elif isinstance(command, RectCommand):
            self._draw_rect(c, command)
        elif isinstance(command, LineCommand):
            c.setStrokeColor(colors.HexColor(command.color))
            c.setLineWidth(command.line_width)
            c.line(command.x1, PAGE_HEIGHT - command.y1, command.x2, PAGE_HEIGHT - command.y2)
        elif isinstance(command, ImageCommand):
            try:
                self._draw_image(c, command)
            except RenderFallback as e:
                logger.warning(f"Image replaced with placeholder: {e}")
                for fallback in command.fallback:
                    self._draw_command(c, fallback)
        else:
            raise RenderError(f"Unknown draw command: {type(command).__name__}")

    def _draw_text(self, c: canvas.Canvas, command: TextCommand):
        c.setFont(command.font, command.size)
        c.setFillColor(colors.HexColor(command.color))
        y = PAGE_HEIGHT - command.baseline
        if command.align == "center":
            c.drawCentredString(command.x, y, command.text)
        elif command.align == "right":
            c.drawRightString(command.x, y, command.text)
        else:
            c.drawString(command.x, y, command.text)

    def _draw_rect(self, c: canvas.Canvas, command: RectCommand):
        fill = 1 if command.fill else 0
        stroke = 1 if command.stroke else 0
        if command.fill:
            c.setFillColor(colors.HexColor(command.fill))
        if command.stroke:
            c.setStrokeColor(colors.HexColor(command.stroke))
            c.setLineWidth(command.line_width)
        y = PAGE_HEIGHT - command.top - command.height
        if command.radius:
            c.roundRect(command.x, y, command.width, command.height, command.radius, stroke=stroke, fill=fill)
        else:
            c.rect(command.x, y, command.width, command.height, stroke=stroke, fill=fill)

    def _draw_image(self, c: canvas.Canvas, command: ImageCommand):
        try:
            reader = ImageReader(io.BytesIO(command.image))
            c.drawImage(
                reader,
                command.x,
                PAGE_HEIGHT - command.top - command.height,
                width=command.width,
                height=command.height,
                mask="auto",
            )
        except Exception as e:
            raise RenderFallback(str(e)) from e


# Singleton instance
application_renderer = ApplicationRenderer()


def render(form: FormSubmission, app_id: str, generated_at: Optional[datetime] = None) -> PdfDocument:
    return application_renderer.render(form, app_id, generated_at)
