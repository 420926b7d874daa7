import enum
import logging
import secrets
import time
from pathlib import Path
from typing import Callable, Protocol
from urllib.parse import unquote, urlsplit

from app.config import Settings
from app.models import StoredFile
from app.sanitize import (
    UnsafePathError,
    confine,
    safe_extension,
    safe_segment,
    safe_stem,
    safe_stored_name,
)

logger = logging.getLogger(__name__)

PUBLIC_PREFIX = "uploads"
DEFAULT_PARTITION = "general"
ALLOWED_MIME = {"application/pdf": ".pdf"}
PDF_MAGIC = b"%PDF-"
CHUNK_SIZE = 1024 * 1024
_NAME_ATTEMPTS = 5


class UploadErrorKind(enum.Enum):
    UNSUPPORTED_TYPE = "unsupported_type"
    TOO_LARGE = "too_large"
    EMPTY_FILE = "empty_file"
    INVALID_PARTITION = "invalid_partition"
    INVALID_REFERENCE = "invalid_reference"
    NO_FILE = "no_file"
    MALFORMED_BODY = "malformed_body"


_STATUS = {
    UploadErrorKind.UNSUPPORTED_TYPE: 415,
    UploadErrorKind.TOO_LARGE: 413,
}


class UploadError(Exception):
    def __init__(self, kind: UploadErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def status_code(self) -> int:
        return _STATUS.get(self.kind, 400)


class ByteStream(Protocol):
    async def read(self, size: int = -1) -> bytes: ...


def normalize_mime(declared: str | None) -> str:
    return (declared or "").split(";", 1)[0].strip().lower()


class UploadIngestor:
    """Stores uploaded PDFs under ``<root>/<partition>/<generated name>``."""

    def __init__(self, settings: Settings, clock: Callable[[], float] = time.time):
        self.root = settings.upload_root
        self.max_bytes = settings.max_upload_bytes
        self._clock = clock

    def ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def partition_dir(self, partition_hint: str | None) -> tuple[str, Path]:
        raw = (partition_hint or "").strip() or DEFAULT_PARTITION
        try:
            partition = safe_segment(raw)
            return partition, confine(self.root, partition)
        except UnsafePathError as e:
            raise UploadError(UploadErrorKind.INVALID_PARTITION, "invalid upload type") from e

    def generate_name(self, original_name: str, mime: str) -> str:
        millis = int(self._clock() * 1000)
        suffix = secrets.token_hex(4)
        stem = safe_stem(original_name)
        ext = safe_extension(original_name, ALLOWED_MIME[mime])
        return f"{millis}-{suffix}-{stem}{ext}"

    def _create_exclusive(self, directory: Path, original_name: str, mime: str):
        for _ in range(_NAME_ATTEMPTS):
            target = directory / self.generate_name(original_name, mime)
            try:
                return target, target.open("xb")
            except FileExistsError:
                continue
        raise RuntimeError("could not allocate a unique file name")

    async def ingest(
        self,
        stream: ByteStream,
        declared_mime: str | None,
        declared_name: str | None,
        partition_hint: str | None,
        base_url: str,
    ) -> StoredFile:
        mime = normalize_mime(declared_mime)
        original_name = declared_name or ""
        if mime not in ALLOWED_MIME:
            logger.warning("upload rejected: type=%r name=%r", declared_mime, original_name)
            raise UploadError(UploadErrorKind.UNSUPPORTED_TYPE, "Only PDF files are allowed")

        partition, directory = self.partition_dir(partition_hint)

        head = await stream.read(len(PDF_MAGIC))
        if not head:
            raise UploadError(UploadErrorKind.EMPTY_FILE, "Uploaded file is empty")
        if not head.startswith(PDF_MAGIC):
            logger.warning("upload rejected: not a pdf signature name=%r", original_name)
            raise UploadError(UploadErrorKind.UNSUPPORTED_TYPE, "Only PDF files are allowed")

        directory.mkdir(parents=True, exist_ok=True)
        target, out = self._create_exclusive(directory, original_name, mime)
        total = 0
        try:
            with out:
                chunk = head
                while chunk:
                    total += len(chunk)
                    if total > self.max_bytes:
                        raise UploadError(
                            UploadErrorKind.TOO_LARGE,
                            f"File too large. Maximum size is {self.max_bytes} bytes",
                        )
                    out.write(chunk)
                    chunk = await stream.read(CHUNK_SIZE)
        except BaseException:
            target.unlink(missing_ok=True)
            raise

        stored = StoredFile(
            generated_name=target.name,
            original_name=original_name,
            mime_type=mime,
            size_bytes=total,
            partition=partition,
            storage_path=target,
            public_url=f"{base_url.rstrip('/')}/{PUBLIC_PREFIX}/{partition}/{target.name}",
        )
        logger.info("stored upload %s/%s (%s bytes)", partition, target.name, total)
        return stored

    def _path_from_url(self, public_url: str) -> Path:
        path = unquote(urlsplit(public_url or "").path)
        parts = [p for p in path.split("/") if p]
        try:
            if len(parts) != 3 or parts[0] != PUBLIC_PREFIX:
                raise UnsafePathError("not an upload reference")
            return self.resolve_path(parts[1], parts[2])
        except UnsafePathError as e:
            raise UploadError(UploadErrorKind.INVALID_REFERENCE, "invalid file reference") from e

    def resolve_path(self, partition: str, name: str) -> Path:
        return confine(self.root, safe_segment(partition), safe_stored_name(name))

    def resolve(self, partition: str, name: str) -> Path | None:
        """Locate a stored file for serving; ``None`` when unknown or unsafe."""
        try:
            f = self.resolve_path(partition, name)
        except UnsafePathError:
            return None
        return f if f.is_file() else None

    def delete(self, public_url: str) -> bool:
        target = self._path_from_url(public_url)
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        logger.info("deleted upload %s", target.relative_to(self.root))
        return True
