"""Filenames for generated application packages."""
import os
import re

FILENAME_TAG = os.getenv("FILENAME_TAG", "halo")
MAX_NAME_LENGTH = 40


def sanitize_name(value: str) -> str:
    """Lowercase, collapse non-alphanumerics to "_", trim, cap length. Falls back to "merchant"."""
    cleaned = re.sub(r"[^a-z0-9]+", "_", (value or "").lower()).strip("_")
    cleaned = cleaned[:MAX_NAME_LENGTH]
    return cleaned or "merchant"


def application_pdf_filename(dba_name: str, legal_name: str, app_id: str) -> str:
    """<dba or legal name>_<tag>_<app_id>.pdf"""
    return f"{sanitize_name(dba_name or legal_name)}_{FILENAME_TAG}_{app_id}.pdf"
