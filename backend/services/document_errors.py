"""Error taxonomy for the application document pipeline.

DecodeError / UnsupportedFormat / MergeError abort a submission and surface to the
caller with a readable message. RenderFallback never leaves the renderer: it is raised
and caught at the point of failure so a placeholder can be drawn instead.
"""


class DocumentPipelineError(Exception):
    """Base exception for document pipeline failures."""
    error_code = "DOCUMENT_PIPELINE_FAILED"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DecodeError(DocumentPipelineError):
    """Payload bytes do not parse under the declared or sniffed format."""
    error_code = "DOCUMENT_DECODE_FAILED"


class UnsupportedFormat(DocumentPipelineError):
    """Payload is neither a PDF nor an accepted raster image."""
    error_code = "UNSUPPORTED_DOCUMENT_FORMAT"


class MergeError(DocumentPipelineError):
    """An input to the merger is structurally invalid."""
    error_code = "DOCUMENT_MERGE_FAILED"


class RenderError(DocumentPipelineError):
    """Unrecoverable drawing failure while rendering the application."""
    error_code = "APPLICATION_RENDER_FAILED"


class RenderFallback(Exception):
    """A drawing step failed and must be substituted with a placeholder."""
    pass
