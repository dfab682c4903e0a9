"""
File Store Module

Stores uploaded receipt files and returns a public URL for each.
"""

import os
import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from .errors import UploadError
from .logging_config import get_logger, log_action


MAX_UPLOAD_BYTES = 10 * 1024 * 1024


@dataclass
class Receipt:
    """An uploaded receipt file awaiting storage"""
    content: bytes
    filename: str = "receipt"
    content_type: Optional[str] = None


def _safe_name(filename: Optional[str]) -> str:
    name = os.path.basename(filename or "receipt")
    name = re.sub(r"[^A-Za-z0-9._-]", "_", name)
    return name or "receipt"


class FileStore(ABC):
    """Object storage for receipts"""

    @abstractmethod
    def upload(self, content: bytes, filename: str,
               content_type: Optional[str] = None) -> str:
        """Store content and return its public URL"""
        pass

    def store(self, receipt: Receipt) -> str:
        return self.upload(receipt.content, receipt.filename, receipt.content_type)

    def _check(self, content: bytes) -> None:
        if not content:
            raise UploadError("Uploaded file is empty")
        if len(content) > MAX_UPLOAD_BYTES:
            raise UploadError("Uploaded file exceeds the 10MB limit")


class LocalFileStore(FileStore):
    """Writes files under a directory served at ``base_url``"""

    def __init__(self, root: Union[str, Path], base_url: str = "/files"):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")
        self.logger = get_logger("daybook.file_store")

    def upload(self, content: bytes, filename: str,
               content_type: Optional[str] = None) -> str:
        self._check(content)
        stored_name = f"{uuid.uuid4().hex}_{_safe_name(filename)}"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            (self.root / stored_name).write_bytes(content)
        except OSError as e:
            raise UploadError(f"Failed to upload receipt: {e}") from e

        url = f"{self.base_url}/{stored_name}"
        log_action(
            self.logger, "info", "Receipt uploaded",
            action="upload_receipt", resource=url,
            extra={"size": len(content), "content_type": content_type}
        )
        return url


class InMemoryFileStore(FileStore):
    """Keeps uploads in a dict; used in tests"""

    def __init__(self, base_url: str = "memory://receipts"):
        self.base_url = base_url.rstrip("/")
        self.files: Dict[str, Tuple[bytes, Optional[str]]] = {}

    def upload(self, content: bytes, filename: str,
               content_type: Optional[str] = None) -> str:
        self._check(content)
        url = f"{self.base_url}/{uuid.uuid4().hex}_{_safe_name(filename)}"
        self.files[url] = (content, content_type)
        return url
