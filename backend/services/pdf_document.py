"""In-memory PDF document shared by the normalizer, renderer and merger."""
import io
from dataclasses import dataclass

from pypdf import PdfReader

from services.document_errors import DecodeError

# US Letter, used for every generated page
PAGE_WIDTH = 612.0
PAGE_HEIGHT = 792.0

PDF_MEDIA_TYPE = "application/pdf"


@dataclass(frozen=True)
class PdfDocument:
    """A finalized PDF byte buffer and its page count (always >= 1)."""
    content: bytes
    page_count: int

    @classmethod
    def from_bytes(cls, content: bytes, source: str = "document") -> "PdfDocument":
        """Parse a PDF buffer, keeping the original bytes untouched."""
        page_count = count_pages(content, source)
        return cls(content=content, page_count=page_count)

    def reader(self) -> PdfReader:
        return PdfReader(io.BytesIO(self.content))

    @property
    def size_bytes(self) -> int:
        return len(self.content)


def fit_within(src_width: float, src_height: float, box_width: float, box_height: float) -> tuple[float, float]:
    """Uniformly scale (src_width, src_height) to fit inside the box without cropping."""
    if src_width <= 0 or src_height <= 0:
        raise ValueError(f"Invalid image size: {src_width}x{src_height}")
    scale = min(box_width / src_width, box_height / src_height)
    return src_width * scale, src_height * scale


def count_pages(content: bytes, source: str = "document") -> int:
    """Return the page count of a PDF buffer or raise DecodeError."""
    if not content:
        raise DecodeError(f"{source}: empty PDF payload")
    try:
        reader = PdfReader(io.BytesIO(content))
        page_count = len(reader.pages)
    except Exception as e:
        raise DecodeError(f"{source}: PDF could not be parsed ({e})") from e
    if page_count < 1:
        raise DecodeError(f"{source}: PDF has no pages")
    return page_count
