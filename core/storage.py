import os
import shutil
import uuid
import logging
from dataclasses import dataclass
from typing import BinaryIO, Protocol

from core.database import settings
from core.exceptions import UpstreamFailure

logger = logging.getLogger(__name__)


@dataclass
class StoredFile:
    path: str
    url: str
    size: int


class FileStorage(Protocol):
    def save(self, filename: str, fileobj: BinaryIO) -> StoredFile:
        ...


class LocalFileStorage:
    """Stores uploads in a directory served under ``<base_url>/uploads``."""

    def __init__(self, upload_dir: str, base_url: str):
        self.upload_dir = upload_dir
        self.base_url = base_url.rstrip("/")

    def save(self, filename: str, fileobj: BinaryIO) -> StoredFile:
        safe_name = os.path.basename(filename or "upload")
        stored_name = f"{uuid.uuid4().hex}_{safe_name}"
        destination = os.path.join(self.upload_dir, stored_name)
        try:
            os.makedirs(self.upload_dir, exist_ok=True)
            with open(destination, "wb") as out:
                shutil.copyfileobj(fileobj, out)
            size = os.path.getsize(destination)
        except OSError as e:
            logger.error(f"Failed to store upload {safe_name}: {e}")
            raise UpstreamFailure(f"Could not store file '{safe_name}'")
        return StoredFile(path=stored_name, url=f"{self.base_url}/uploads/{stored_name}", size=size)


def get_file_storage() -> FileStorage:
    return LocalFileStorage(settings.UPLOAD_DIR, settings.BASE_URL)
