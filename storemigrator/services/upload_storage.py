"""Storage for uploaded migration spreadsheets."""

import hashlib
import re
import secrets
import time
from pathlib import Path

import aiofiles
from fastapi import HTTPException, UploadFile, status
from pydantic import BaseModel

from storemigrator.config import settings
from storemigrator.services.migration.constants import ALLOWED_EXTENSIONS
from storemigrator.services.migration.parsers import get_file_extension

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class StoredUpload(BaseModel):
    """An upload written to disk."""

    original_file_name: str
    stored_file_name: str
    path: str
    file_hash: str
    size: int


def sanitize_filename(filename: str) -> str:
    """Reduce a client file name to a safe basename."""
    name = Path(filename.replace("\\", "/")).name
    name = _UNSAFE_CHARS.sub("_", name).strip("._")
    return name or "upload"


class UploadStorageService:
    """Writes uploads under ``uploads_dir`` with a timestamped unique name."""

    def __init__(
        self,
        storage_path: Path | None = None,
        max_size_bytes: int | None = None,
    ) -> None:
        """Initialize the upload storage service.

        Args:
            storage_path: Directory for uploads. Defaults to config setting.
            max_size_bytes: Maximum upload size in bytes. Defaults to config setting.
        """
        self.storage_path = Path(storage_path or settings.uploads_dir)
        self.storage_path.mkdir(parents=True, exist_ok=True)
        self.max_size_bytes = max_size_bytes or settings.max_upload_size_bytes

    @staticmethod
    def validate_extension(filename: str | None) -> str:
        """Return the lowercase extension or raise 400 if it is not accepted."""
        ext = get_file_extension(filename)
        if ext not in ALLOWED_EXTENSIONS:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Only .xlsx, .xls, .csv files are allowed",
            )
        return ext

    async def save_upload(self, upload_file: UploadFile) -> StoredUpload:
        """Validate and persist an uploaded spreadsheet.

        Raises:
            HTTPException: 400 for a missing or unsupported file, 413 when too large.
        """
        if not upload_file.filename:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File is required")
        self.validate_extension(upload_file.filename)

        content = await upload_file.read()
        if not content:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty")
        if len(content) > self.max_size_bytes:
            max_mb = self.max_size_bytes / (1024 * 1024)
            raise HTTPException(
                status_code=status.HTTP_413_CONTENT_TOO_LARGE,
                detail=f"File size exceeds maximum allowed size of {max_mb:.1f} MB",
            )

        safe_name = sanitize_filename(upload_file.filename)
        stored_name = f"{int(time.time() * 1000)}_{secrets.token_hex(4)}_{safe_name}"
        file_path = self.storage_path / stored_name

        async with aiofiles.open(file_path, "wb") as f:
            await f.write(content)

        return StoredUpload(
            original_file_name=upload_file.filename,
            stored_file_name=stored_name,
            path=str(file_path),
            file_hash=hashlib.sha256(content).hexdigest(),
            size=len(content),
        )
