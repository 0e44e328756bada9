"""
Storage Adapter - GridFS-backed storage for merged application packages.
Packages are stored under submissions/<app_id>/<filename>; the abstraction keeps
an S3 (or similar) backend possible without touching the submission flow.
"""
import hashlib
import io
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorGridFSBucket
from database import database

logger = logging.getLogger(__name__)

APPLICATION_BUCKET = "application_files"


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StoredFileNotFound(StorageError):
    pass


@dataclass(frozen=True)
class StoredFile:
    file_id: str
    filename: str
    content_type: str
    size_bytes: int
    sha256_hash: str
    uploaded_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class StorageAdapter(ABC):
    @abstractmethod
    async def upload_file(
        self,
        content: bytes,
        filename: str,
        content_type: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> StoredFile:
        pass

    @abstractmethod
    async def download_file(self, file_id: str) -> tuple[bytes, StoredFile]:
        pass


class GridFSStorageAdapter(StorageAdapter):
    def __init__(self, bucket_name: str = APPLICATION_BUCKET):
        self.bucket_name = bucket_name
        self._bucket = None

    def _get_bucket(self) -> AsyncIOMotorGridFSBucket:
        if self._bucket is None:
            self._bucket = AsyncIOMotorGridFSBucket(database.get_db(), bucket_name=self.bucket_name)
        return self._bucket

    async def upload_file(
        self,
        content: bytes,
        filename: str,
        content_type: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> StoredFile:
        sha256_hash = hashlib.sha256(content).hexdigest()
        uploaded_at = datetime.now(timezone.utc)

        file_id = await self._get_bucket().upload_from_stream(
            filename,
            io.BytesIO(content),
            metadata={
                "content_type": content_type,
                "sha256_hash": sha256_hash,
                "upload_timestamp": uploaded_at.isoformat(),
                "custom_metadata": metadata or {},
            },
        )
        stored = StoredFile(
            file_id=str(file_id),
            filename=filename,
            content_type=content_type,
            size_bytes=len(content),
            sha256_hash=sha256_hash,
            uploaded_at=uploaded_at,
            metadata=metadata or {},
        )
        logger.info(f"File uploaded to GridFS: {filename} ({stored.file_id}, {stored.size_bytes} bytes)")
        return stored

    async def download_file(self, file_id: str) -> tuple[bytes, StoredFile]:
        """Raises StoredFileNotFound for unknown or malformed IDs."""
        try:
            object_id = ObjectId(file_id)
        except (InvalidId, TypeError):
            raise StoredFileNotFound(f"Invalid file ID: {file_id}")

        db = database.get_db()
        file_doc = await db[f"{self.bucket_name}.files"].find_one({"_id": object_id})
        if not file_doc:
            raise StoredFileNotFound(f"File not found: {file_id}")

        stream = io.BytesIO()
        await self._get_bucket().download_to_stream(object_id, stream)

        gridfs_meta = file_doc.get("metadata") or {}
        uploaded = gridfs_meta.get("upload_timestamp")
        stored = StoredFile(
            file_id=str(file_doc["_id"]),
            filename=file_doc["filename"],
            content_type=gridfs_meta.get("content_type", "application/octet-stream"),
            size_bytes=file_doc["length"],
            sha256_hash=gridfs_meta.get("sha256_hash", ""),
            uploaded_at=datetime.fromisoformat(uploaded) if uploaded else None,
            metadata=gridfs_meta.get("custom_metadata", {}),
        )
        return stream.getvalue(), stored


storage_adapter = GridFSStorageAdapter()


async def upload_application_pdf(app_id: str, content: bytes, filename: str) -> StoredFile:
    """Store the merged application package for a submission."""
    return await storage_adapter.upload_file(
        content=content,
        filename=f"submissions/{app_id}/{filename}",
        content_type="application/pdf",
        metadata={"app_id": app_id, "document_type": "merged_application"},
    )
