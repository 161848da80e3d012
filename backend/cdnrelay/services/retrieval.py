from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from cdnrelay.core.cdn_client import CdnClient
from cdnrelay.core.errors import NotFound, UpstreamFetchFailed
from cdnrelay.core.store import FileStore
from cdnrelay.models.file_record import FileRecord
from cdnrelay.monitoring.setup import report_fetch_failure

logger = logging.getLogger("cdn-relay")


@dataclass
class RemoteFile:
    record: FileRecord
    upstream: httpx.Response


async def open_remote_file(store: FileStore, cdn: CdnClient, short_name: str) -> RemoteFile:
    """Look up ``short_name`` and open a byte stream from its CDN origin.

    Raises NotFound for an unknown name and UpstreamFetchFailed when the
    record exists but the origin cannot serve it.
    """
    record = await store.get(short_name)
    if record is None:
        raise NotFound("File not found")

    logger.info("Fetching file: %s from CDN (%s)", record.filename, record.remote_url)
    try:
        upstream = await cdn.fetch(record.remote_url)
    except UpstreamFetchFailed:
        report_fetch_failure()
        raise
    return RemoteFile(record=record, upstream=upstream)
