"""Document Merger - concatenates PDF documents in caller order."""
import io
import logging
from typing import Sequence

from pypdf import PdfReader, PdfWriter

from services.document_errors import MergeError
from services.pdf_document import PdfDocument

logger = logging.getLogger(__name__)


def merge(documents: Sequence[PdfDocument]) -> PdfDocument:
    """
    Append every page of every document, in order, into one PDF.

    Raises MergeError on an empty sequence, an unreadable or empty input,
    or when the output page count is not the sum of the inputs.
    """
    if not documents:
        raise MergeError("Nothing to merge: no documents supplied")

    writer = PdfWriter()
    expected = 0
    for index, document in enumerate(documents):
        try:
            reader = PdfReader(io.BytesIO(document.content))
            pages = list(reader.pages)
        except Exception as e:
            raise MergeError(f"Document {index} could not be read ({e})") from e
        if not pages:
            raise MergeError(f"Document {index} has no pages")
        for page in pages:
            writer.add_page(page)
        expected += len(pages)

    buffer = io.BytesIO()
    try:
        writer.write(buffer)
    except Exception as e:
        raise MergeError(f"Merged PDF could not be written ({e})") from e
    content = buffer.getvalue()

    try:
        actual = len(PdfReader(io.BytesIO(content)).pages)
    except Exception as e:
        raise MergeError(f"Merged PDF could not be re-read ({e})") from e
    if actual != expected:
        raise MergeError(f"Merged PDF has {actual} pages, expected {expected}")

    logger.info(f"Merged {len(documents)} documents into {actual} pages")
    return PdfDocument(content=content, page_count=actual)
