"""
Google Drive delivery for merged application PDFs.

Files land in <DRIVE_ROOT_FOLDER_ID>/<YYYY>/<Mon>, folders created on demand.
Uses a service account (DRIVE_SA_JSON inline, or DRIVE_SA_PATH to a key file) and
supports shared drives. The Drive SDK is synchronous, so calls run in the thread pool.
"""
import asyncio
import io
import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.http import MediaIoBaseUpload

logger = logging.getLogger(__name__)

DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive"]
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

MONTH_LABELS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


class DriveConfigError(Exception):
    """Service account credentials are missing or unreadable."""
    pass


def _as_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() == "true"


def drive_folder_path(now: datetime) -> Tuple[str, str]:
    """Year and short month label for the destination folder, e.g. ("2026", "Oct")."""
    return str(now.year), MONTH_LABELS[now.month - 1]


def drive_direct_download_url(file_id: str) -> str:
    return f"https://drive.google.com/uc?export=download&id={quote(file_id, safe='')}"


def _escape_query_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _load_credentials():
    inline = (os.getenv("DRIVE_SA_JSON") or "").strip()
    if inline.startswith("{"):
        info = json.loads(inline)
    else:
        path = (os.getenv("DRIVE_SA_PATH") or "").strip()
        if not path:
            raise DriveConfigError("Missing env: DRIVE_SA_JSON or DRIVE_SA_PATH")
        with open(path, "r", encoding="utf-8") as f:
            info = json.load(f)
    return service_account.Credentials.from_service_account_info(info, scopes=DRIVE_SCOPES)


class DriveStorage:
    """Finds or creates Year/Month folders and uploads PDFs into them."""

    def __init__(self, service=None):
        self._service = service

    def _get_service(self):
        if self._service is None:
            self._service = build("drive", "v3", credentials=_load_credentials(), cache_discovery=False)
        return self._service

    def find_folder(self, parent_id: str, name: str) -> Optional[str]:
        query = (
            f"mimeType='{FOLDER_MIME_TYPE}' and "
            f"name='{_escape_query_value(name)}' and "
            f"'{_escape_query_value(parent_id)}' in parents and trashed=false"
        )
        resp = self._get_service().files().list(
            q=query,
            fields="files(id,name)",
            pageSize=10,
            supportsAllDrives=True,
            includeItemsFromAllDrives=True,
        ).execute()
        files = resp.get("files") or []
        return files[0]["id"] if files else None

    def ensure_folder(self, parent_id: str, name: str) -> str:
        existing = self.find_folder(parent_id, name)
        if existing:
            return existing
        created = self._get_service().files().create(
            body={"name": name, "mimeType": FOLDER_MIME_TYPE, "parents": [parent_id]},
            fields="id,name",
            supportsAllDrives=True,
        ).execute()
        folder_id = created.get("id")
        if not folder_id:
            raise RuntimeError(f"Failed to create Drive folder: {name}")
        logger.info(f"Drive folder created: {name} ({folder_id})")
        return folder_id

    def make_public(self, file_id: str):
        self._get_service().permissions().create(
            fileId=file_id,
            body={"type": "anyone", "role": "reader"},
            supportsAllDrives=True,
        ).execute()

    def upload_pdf_sync(self, content: bytes, filename: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        if _as_bool(os.getenv("DRIVE_DISABLE")):
            logger.warning("Drive upload disabled (DRIVE_DISABLE=true)")
            return {"skipped": True, "file_id": None, "web_view_link": None, "direct_download_url": None}

        root_id = os.getenv("DRIVE_ROOT_FOLDER_ID") or "root"
        year, month = drive_folder_path(now or datetime.now(timezone.utc))
        try:
            year_id = self.ensure_folder(root_id, year)
        except Exception as e:
            raise RuntimeError(
                f"Drive year folder failed (root={root_id}). "
                f"Make sure the service account has access. Original: {e}"
            ) from e
        month_id = self.ensure_folder(year_id, month)

        media = MediaIoBaseUpload(io.BytesIO(content), mimetype="application/pdf", resumable=False)
        created = self._get_service().files().create(
            body={"name": filename, "parents": [month_id]},
            media_body=media,
            fields="id, webViewLink",
            supportsAllDrives=True,
        ).execute()
        file_id = created.get("id")

        direct_url = None
        if file_id and _as_bool(os.getenv("DRIVE_MAKE_PUBLIC")):
            self.make_public(file_id)
            direct_url = drive_direct_download_url(file_id)

        logger.info(f"Drive upload complete: {year}/{month}/{filename} ({file_id})")
        return {
            "skipped": False,
            "file_id": file_id,
            "web_view_link": created.get("webViewLink"),
            "direct_download_url": direct_url,
        }

    async def upload_pdf(self, content: bytes, filename: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Async upload. Runs sync SDK in thread pool."""
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, lambda: self.upload_pdf_sync(content, filename, now))


# Singleton instance
drive_storage = DriveStorage()
