from __future__ import annotations

import inspect
import io
import logging
import os
import tempfile
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator, BinaryIO, Optional

from cdnrelay.core.cdn_client import CdnClient
from cdnrelay.core.errors import AllocationExhausted, PayloadTooLarge, UpstreamUploadFailed
from cdnrelay.models.file_record import FileRecord
from cdnrelay.monitoring.setup import report_upload
from cdnrelay.services.allocator import Exhausted, ShortNameAllocator

logger = logging.getLogger("cdn-relay")

PUBLIC_PREFIX = "/f/"
CHUNK_SIZE = 1024 * 1024


def public_path(short_name: str) -> str:
    return PUBLIC_PREFIX + short_name


@dataclass(frozen=True)
class UploadResult:
    record: FileRecord
    public_path: str


@dataclass(frozen=True)
class StagedFile:
    path: str
    handle: BinaryIO
    size: int


async def _read_chunk(source, size: int) -> bytes:
    chunk = source.read(size)
    if inspect.isawaitable(chunk):
        chunk = await chunk
    return chunk


class UploadOrchestrator:
    """Runs one upload: stage locally, push to the CDN, claim a short name.

    A record is written only after the CDN accepted the bytes, and the
    staged temporary file is gone by the time :meth:`process` returns or
    raises.
    """

    def __init__(
        self,
        cdn: CdnClient,
        allocator: ShortNameAllocator,
        max_file_size: int,
        staging_dir: str,
    ):
        self.cdn = cdn
        self.allocator = allocator
        self.max_file_size = max_file_size
        self.staging_dir = staging_dir

    def _limit_message(self) -> str:
        return f"Upload limit exceeded ({self.max_file_size // (1024 * 1024)}MB max)"

    @asynccontextmanager
    async def staged(self, source) -> AsyncIterator[StagedFile]:
        if isinstance(source, (bytes, bytearray)):
            source = io.BytesIO(source)

        os.makedirs(self.staging_dir, exist_ok=True)
        tmp = tempfile.NamedTemporaryFile(delete=False, dir=self.staging_dir, prefix="upload_")
        temp_path = tmp.name
        try:
            size = 0
            with tmp:
                while True:
                    chunk = await _read_chunk(source, CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > self.max_file_size:
                        raise PayloadTooLarge(self._limit_message())
                    tmp.write(chunk)

            with open(temp_path, "rb") as handle:
                yield StagedFile(path=temp_path, handle=handle, size=size)
        finally:
            try:
                os.remove(temp_path)
                logger.debug("Temporary file deleted: %s", temp_path)
            except FileNotFoundError:
                pass

    async def process(
        self,
        source,
        original_name: str,
        declared_size: Optional[int] = None,
        mimetype: Optional[str] = None,
    ) -> UploadResult:
        started = time.time()
        if declared_size is not None and declared_size > self.max_file_size:
            report_upload("too_large")
            raise PayloadTooLarge(self._limit_message())

        try:
            async with self.staged(source) as staged:
                logger.info("Uploading to CDN: file=%s size=%.2fMB", original_name, staged.size / 1024 / 1024)
                remote = await self.cdn.upload(staged.handle, original_name, mimetype)
                size = staged.size
        except PayloadTooLarge:
            report_upload("too_large")
            raise
        except UpstreamUploadFailed as e:
            report_upload("upstream_failed")
            logger.error("CDN upload failed for %s: %s", original_name, e.message)
            raise

        logger.info("CDN upload success: url=%s remote_name=%s", remote.url, remote.filename)

        file_id = str(uuid.uuid4())
        uploaded_at = datetime.utcnow()

        def make_record(short_name: str) -> FileRecord:
            return FileRecord(
                id=file_id,
                filename=short_name,
                original_name=original_name,
                size=size,
                mimetype=mimetype,
                upload_date=uploaded_at,
                remote_url=remote.url,
                remote_name=remote.filename,
            )

        extension = os.path.splitext(original_name or "")[1]
        result = await self.allocator.allocate(extension, make_record)
        if isinstance(result, Exhausted):
            report_upload("exhausted")
            raise AllocationExhausted("Failed to generate unique filename after maximum attempts")

        report_upload("success", time.time() - started)
        logger.info("File saved: short_name=%s attempts=%s", result.short_name, result.attempts)
        return UploadResult(record=result.record, public_path=public_path(result.short_name))
