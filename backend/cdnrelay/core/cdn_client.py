from __future__ import annotations

import io
import logging
import os
from dataclasses import dataclass
from typing import BinaryIO, Callable, List, Optional, Sequence, Tuple, Union

import httpx

from cdnrelay.core.config import Settings
from cdnrelay.core.errors import PayloadTooLarge, RelayError, UpstreamFetchFailed, UpstreamUploadFailed

logger = logging.getLogger("cdn-relay")

ByteSource = Union[bytes, bytearray, BinaryIO]
ProgressCallback = Callable[[int], None]
# (index, percent, total)
FileProgressCallback = Callable[[int, int, int], None]
# (source, filename) or (source, filename, content_type)
BatchItem = Union[Tuple[ByteSource, str], Tuple[ByteSource, str, Optional[str]]]


@dataclass(frozen=True)
class CdnUpload:
    url: str
    filename: str


@dataclass(frozen=True)
class BatchResult:
    """Outcome of one file in an ``upload_many`` batch."""

    index: int
    filename: str
    upload: Optional[CdnUpload] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.upload is not None


def source_length(source: BinaryIO) -> int:
    """Remaining bytes in a seekable source; the read position is restored."""
    start = source.tell()
    end = source.seek(0, os.SEEK_END)
    source.seek(start)
    return end - start


class _ProgressReader:
    """File wrapper reporting whole-percent progress as the body is read."""

    def __init__(self, raw: BinaryIO, total: int, on_progress: ProgressCallback):
        self._raw = raw
        self._total = total
        self._on_progress = on_progress
        self._sent = 0
        self._last = -1

    def fileno(self) -> int:
        return self._raw.fileno()

    def tell(self) -> int:
        return self._raw.tell()

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        pos = self._raw.seek(offset, whence)
        # The multipart encoder rewinds before streaming; count from wherever it lands.
        self._sent = pos
        return pos

    def read(self, size: int = -1) -> bytes:
        chunk = self._raw.read(size)
        self._sent += len(chunk)
        percent = 100 if self._total <= 0 else min(100, self._sent * 100 // self._total)
        if percent != self._last:
            self._last = percent
            self._on_progress(percent)
        return chunk


class CdnClient:
    """Client for the CloudKu CDN upload API and its public origin."""

    def __init__(
        self,
        upload_url: str,
        max_file_size: int,
        connect_timeout: float = 10.0,
        upload_timeout: float = 300.0,
        fetch_timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.upload_url = upload_url
        self.max_file_size = max_file_size
        self._upload_timeout = httpx.Timeout(upload_timeout, connect=connect_timeout)
        self._fetch_timeout = httpx.Timeout(fetch_timeout, connect=connect_timeout)
        self._client = client or httpx.AsyncClient(follow_redirects=True)

    @classmethod
    def from_settings(cls, settings: Settings, client: Optional[httpx.AsyncClient] = None) -> "CdnClient":
        return cls(
            upload_url=settings.CDN_UPLOAD_URL,
            max_file_size=settings.MAX_FILE_SIZE,
            connect_timeout=settings.CDN_CONNECT_TIMEOUT,
            upload_timeout=settings.CDN_UPLOAD_TIMEOUT,
            fetch_timeout=settings.CDN_FETCH_TIMEOUT,
            client=client,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def upload(
        self,
        source: ByteSource,
        filename: str,
        content_type: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> CdnUpload:
        if isinstance(source, (bytes, bytearray)):
            source = io.BytesIO(source)

        size = source_length(source)
        if size > self.max_file_size:
            raise PayloadTooLarge(f"Upload limit exceeded ({self.max_file_size // (1024 * 1024)}MB max)")
        if on_progress is not None:
            source = _ProgressReader(source, size, on_progress)

        files = {"file": (filename or "file", source, content_type or "application/octet-stream")}
        try:
            resp = await self._client.post(self.upload_url, files=files, timeout=self._upload_timeout)
        except httpx.HTTPError as e:
            logger.error("CDN upload request failed for %s: %s", filename, e)
            raise UpstreamUploadFailed(f"CDN upload failed: {str(e) or 'Upload failed'}") from e

        try:
            payload = resp.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            raise UpstreamUploadFailed(f"CDN upload failed: unexpected response (HTTP {resp.status_code})")

        if resp.is_error or payload.get("status") == "error":
            message = payload.get("message") or "Upload failed"
            raise UpstreamUploadFailed(f"CDN upload failed: {message}")

        url = payload.get("url")
        remote_name = payload.get("filename")
        if not url or not remote_name:
            raise UpstreamUploadFailed("CDN upload failed: response is missing url or filename")
        return CdnUpload(url=url, filename=remote_name)

    async def upload_many(
        self,
        items: Sequence[BatchItem],
        on_file_progress: Optional[FileProgressCallback] = None,
    ) -> List[BatchResult]:
        """Upload ``items`` one after another.

        A failed file is recorded in its ``BatchResult`` and the batch carries
        on; results keep the order of ``items``.
        """
        total = len(items)
        results: List[BatchResult] = []
        for index, item in enumerate(items):
            source, filename = item[0], item[1]
            content_type = item[2] if len(item) > 2 else None
            logger.info("Uploading file %d/%d: %s", index + 1, total, filename)

            on_progress = None
            if on_file_progress is not None:
                def on_progress(percent: int, index: int = index) -> None:
                    on_file_progress(index, percent, total)

            try:
                upload = await self.upload(source, filename, content_type, on_progress=on_progress)
            except RelayError as e:
                logger.error("Batch upload %d/%d failed: %s", index + 1, total, e.message)
                results.append(BatchResult(index=index, filename=filename, error=e.message))
            else:
                results.append(BatchResult(index=index, filename=filename, upload=upload))
        return results

    async def fetch(self, url: str) -> httpx.Response:
        """Open a streamed GET against the CDN origin.

        The caller owns the returned response and must ``aclose()`` it.
        """
        request = self._client.build_request("GET", url, timeout=self._fetch_timeout)
        try:
            resp = await self._client.send(request, stream=True)
        except httpx.HTTPError as e:
            logger.error("CDN fetch failed for %s: %s", url, e)
            raise UpstreamFetchFailed("Error fetching file from CDN") from e

        if not resp.is_success:
            await resp.aclose()
            logger.error("CDN origin returned %s for %s", resp.status_code, url)
            raise UpstreamFetchFailed("Error fetching file from CDN")
        return resp
