from __future__ import annotations

import logging
import urllib.parse
from typing import AsyncIterator

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse, StreamingResponse

from cdnrelay.core.cdn_client import CdnClient
from cdnrelay.core.errors import NotFound, UpstreamFetchFailed
from cdnrelay.core.store import FileStore
from cdnrelay.dependencies.components import get_cdn, get_store
from cdnrelay.services.retrieval import open_remote_file

logger = logging.getLogger("cdn-relay")

router = APIRouter(tags=["Serve"])


def _rfc5987_filename(value: str) -> str:
    quoted = urllib.parse.quote(value, safe="")
    plain = value.encode("latin-1", "ignore").decode("latin-1")
    plain = "".join(c for c in plain if c.isprintable() and c != '"')
    return f'filename="{plain}"; filename*=UTF-8\'\'{quoted}'


async def _relay(upstream: httpx.Response) -> AsyncIterator[bytes]:
    try:
        async for chunk in upstream.aiter_bytes():
            yield chunk
    finally:
        await upstream.aclose()


@router.get("/f/{short_name}")
async def serve_file(
    short_name: str,
    store: FileStore = Depends(get_store),
    cdn: CdnClient = Depends(get_cdn),
):
    try:
        remote = await open_remote_file(store, cdn, short_name)
    except NotFound as e:
        return PlainTextResponse(e.message, status_code=e.status_code)
    except UpstreamFetchFailed as e:
        return PlainTextResponse(e.message, status_code=e.status_code)

    record, upstream = remote.record, remote.upstream
    original_name = record.original_name or record.filename
    headers = {
        "Content-Disposition": f"inline; {_rfc5987_filename(original_name)}",
        "Cache-Control": "public, max-age=31536000, immutable",
        "X-Content-Source": "cloudku-cdn",
        "X-Original-Filename": urllib.parse.quote(original_name, safe=""),
    }
    # aiter_bytes() decodes any Content-Encoding, so the origin length only holds for identity bodies
    length = upstream.headers.get("content-length")
    if length and not upstream.headers.get("content-encoding"):
        headers["Content-Length"] = length

    logger.info("Serving file: %s", record.filename)
    return StreamingResponse(
        _relay(upstream),
        media_type=record.mimetype or "application/octet-stream",
        headers=headers,
    )
