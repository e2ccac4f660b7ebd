# itasks/integrations/storage.py
"""Local filesystem storage for task attachments"""
import asyncio
import os
import re
import uuid
from pathlib import Path
from typing import Iterable, Optional

from loguru import logger

from itasks.core.config import settings
from itasks.exceptions.domain import ValidationError, DependencyFailure

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(filename: str) -> str:
    name = _UNSAFE.sub("_", os.path.basename(filename or "")).strip("._")
    return name or "file"


class AttachmentStorage:
    """Validates uploads against the MIME allow-list and size limit, then writes them under one root"""

    def __init__(
            self,
            root: Optional[str] = None,
            allowed_types: Optional[Iterable[str]] = None,
            max_bytes: Optional[int] = None,
    ):
        self.root = Path(root or settings.ATTACHMENT_DIR)
        self.allowed_types = set(allowed_types or settings.attachment_allowed_types)
        self.max_bytes = max_bytes or settings.ATTACHMENT_MAX_BYTES

    def validate(self, filename: str, mime_type: str, size: int) -> None:
        if not filename:
            raise ValidationError("Filename is required", field="file")
        if mime_type not in self.allowed_types:
            raise ValidationError(f"File type '{mime_type}' is not allowed", field="file")
        if size <= 0:
            raise ValidationError("File is empty", field="file")
        if size > self.max_bytes:
            raise ValidationError(
                f"File exceeds the maximum size of {self.max_bytes // (1024 * 1024)} MB", field="file"
            )

    def _write(self, path: Path, content: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)

    async def save(self, task_uuid, filename: str, content: bytes) -> str:
        path = self.root / str(task_uuid) / f"{uuid.uuid4().hex}_{safe_filename(filename)}"
        try:
            await asyncio.to_thread(self._write, path, content)
        except OSError as e:
            logger.error(f"Failed to store attachment {filename}: {e}")
            raise DependencyFailure("attachment storage", f"could not store {filename}")
        logger.debug(f"Stored attachment at {path}")
        return str(path)

    def resolve(self, file_path: str) -> Path:
        """Absolute path of a stored file, refusing paths outside the root"""
        path = Path(file_path).resolve()
        if self.root.resolve() not in path.parents:
            raise ValidationError("Attachment path is outside the storage directory")
        return path

    async def delete(self, file_path: str) -> None:
        path = Path(file_path)
        if path.exists():
            await asyncio.to_thread(path.unlink)
            logger.debug(f"Removed attachment file {path}")
