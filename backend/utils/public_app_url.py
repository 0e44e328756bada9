"""
Canonical public backend base URL for links sent outside the app (WhatsApp media links).
No other code should build absolute links to this API directly.
"""
import os
import logging
from typing import Optional

logger = logging.getLogger(__name__)


def get_public_base_url() -> Optional[str]:
    """
    Return normalized PUBLIC_BASE_URL (no trailing slash), or None when unset.
    In production (non-localhost), https is enforced.
    """
    raw = (os.getenv("PUBLIC_BASE_URL") or "").strip().rstrip("/")
    if not raw:
        return None
    if raw.startswith("http://") and "localhost" not in raw:
        raw = "https://" + raw.split("://", 1)[1]
    return raw


def submission_pdf_url(app_id: str) -> Optional[str]:
    """Public download link for a submission's merged PDF, if a public URL is configured."""
    base = get_public_base_url()
    if not base:
        logger.warning("PUBLIC_BASE_URL not set - no public PDF link available")
        return None
    return f"{base}/api/submission/{app_id}/pdf"
