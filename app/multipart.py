"""Incremental multipart reader for the upload route.

The request body is pulled from the ASGI stream only as fast as the
ingestor consumes the file part, so an oversized or hostile body is
abandoned after at most ``max_body_bytes`` have been received.
"""

from typing import AsyncIterator

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from app.storage import UploadError, UploadErrorKind

# Room for part headers and boundaries on top of the file size limit.
MULTIPART_OVERHEAD = 16 * 1024


def multipart_boundary(content_type: str | None) -> bytes:
    ctype, options = parse_options_header(content_type)
    boundary = options.get(b"boundary")
    if ctype != b"multipart/form-data" or not boundary:
        raise UploadError(UploadErrorKind.NO_FILE, "No file uploaded")
    return boundary


class MultipartFileReader:
    """Exposes one file field of a multipart body as an async ``read()`` stream."""

    def __init__(
        self,
        chunks: AsyncIterator[bytes],
        boundary: bytes,
        max_body_bytes: int,
        field_name: str = "file",
    ):
        self._chunks = chunks.__aiter__()
        self._field = field_name.encode("utf-8")
        self._max_body = max_body_bytes
        self.received = 0
        self.filename: str | None = None
        self.content_type: str | None = None

        self._buffer = bytearray()
        self._headers: dict[bytes, bytes] = {}
        self._header_name = b""
        self._header_value = b""
        self._in_file = False
        self._file_done = False
        self._body_done = False
        self._parser = MultipartParser(
            boundary,
            callbacks={
                "on_part_begin": self._on_part_begin,
                "on_part_data": self._on_part_data,
                "on_part_end": self._on_part_end,
                "on_header_field": self._on_header_field,
                "on_header_value": self._on_header_value,
                "on_header_end": self._on_header_end,
                "on_headers_finished": self._on_headers_finished,
            },
        )

    def _on_part_begin(self) -> None:
        self._headers = {}
        self._in_file = False

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        if self._in_file:
            self._buffer += data[start:end]

    def _on_part_end(self) -> None:
        if self._in_file:
            self._in_file = False
            self._file_done = True

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_name += data[start:end]

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def _on_header_end(self) -> None:
        self._headers[self._header_name.lower()] = self._header_value
        self._header_name = b""
        self._header_value = b""

    def _on_headers_finished(self) -> None:
        if self.filename is not None:
            return
        _, options = parse_options_header(self._headers.get(b"content-disposition"))
        filename = options.get(b"filename")
        if options.get(b"name") != self._field or not filename:
            return
        self.filename = filename.decode("utf-8", errors="replace")
        self.content_type = self._headers.get(b"content-type", b"").decode("latin-1")
        self._in_file = True

    async def _pull(self) -> None:
        try:
            chunk = await self._chunks.__anext__()
        except StopAsyncIteration:
            chunk = b""
        if not chunk:
            self._body_done = True
            return
        self.received += len(chunk)
        if self.received > self._max_body:
            raise UploadError(UploadErrorKind.TOO_LARGE, "Request body too large")
        try:
            self._parser.write(chunk)
        except MultipartParseError as e:
            raise UploadError(UploadErrorKind.MALFORMED_BODY, "Malformed multipart body") from e

    async def open(self) -> "MultipartFileReader":
        """Read up to the start of the file part's content."""
        while self.filename is None:
            if self._body_done:
                raise UploadError(UploadErrorKind.NO_FILE, "No file uploaded")
            await self._pull()
        return self

    async def read(self, size: int = -1) -> bytes:
        while not self._file_done and (size < 0 or len(self._buffer) < size):
            if self._body_done:
                raise UploadError(UploadErrorKind.MALFORMED_BODY, "Malformed multipart body")
            await self._pull()
        n = len(self._buffer) if size < 0 else min(size, len(self._buffer))
        data = bytes(self._buffer[:n])
        del self._buffer[:n]
        return data
