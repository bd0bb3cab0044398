from __future__ import annotations
import logging
import mimetypes
import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from config import Settings
from errors import ValidationError

log = logging.getLogger(__name__)

CHUNK = 64 * 1024


@dataclass(frozen=True)
class StoredBlob:
    key: str
    url: str
    size: int
    mime_type: Optional[str]


class BlobStore(Protocol):
    """Хранилище файлов материалов."""

    def upload(self, file: FileStorage) -> StoredBlob:
        ...

    def destroy(self, key: str) -> None:
        ...


class LocalBlobStore:
    """Файлы на локальном диске: <root>/<uuid>_<secure name>."""

    def __init__(self, root: str, settings: Settings, url_prefix: str = "/api/v1/materials/files"):
        self.root = Path(root)
        self.settings = settings
        self.url_prefix = url_prefix.rstrip("/")

    def path_for(self, key: str) -> Path:
        safe = secure_filename(key)
        if not safe or safe != key:
            raise ValidationError("Bad file key", code="invalid_file_key")
        return self.root / safe

    def _check_extension(self, filename: str) -> None:
        ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
        allowed = self.settings.upload_allowed_extensions
        if allowed and ext not in allowed:
            raise ValidationError(
                f"File type .{ext or '?'} is not allowed", code="unsupported_file_type",
                details={"allowed": list(allowed)},
            )

    def upload(self, file: FileStorage) -> StoredBlob:
        filename = secure_filename(file.filename or "")
        if not filename:
            raise ValidationError("File name is required", code="missing_file")
        self._check_extension(filename)

        self.root.mkdir(parents=True, exist_ok=True)
        key = f"{uuid.uuid4().hex}_{filename}"
        path = self.root / key
        limit = self.settings.upload_max_bytes
        size = 0
        with open(path, "wb") as out:
            while True:
                chunk = file.stream.read(CHUNK)
                if not chunk:
                    break
                size += len(chunk)
                if size > limit:
                    break
                out.write(chunk)
        if size > limit:
            os.remove(path)
            raise ValidationError(
                f"File is larger than {limit // (1024 * 1024)} MB", code="file_too_large",
            )
        mime = file.mimetype or mimetypes.guess_type(filename)[0]
        return StoredBlob(key=key, url=f"{self.url_prefix}/{key}", size=size, mime_type=mime)

    def destroy(self, key: str) -> None:
        try:
            os.remove(self.path_for(key))
        except FileNotFoundError:
            pass
        except OSError as e:
            # запись в БД уже удалена, осиротевший файл только логируем
            log.warning("could not remove blob %s: %s", key, e, extra={"event": "blob_destroy_failed"})
