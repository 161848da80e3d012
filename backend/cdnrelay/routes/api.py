from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from cdnrelay.core.errors import NotFound
from cdnrelay.core.store import FileStore
from cdnrelay.dependencies.components import get_store
from cdnrelay.models.file_record import FileRecord
from cdnrelay.schemas.file import (
    FileInfo,
    FileInfoResponse,
    FileListResponse,
    MessageResponse,
    Stats,
    StatsResponse,
)
from cdnrelay.utils.urls import public_file_url

router = APIRouter(prefix="/api", tags=["Files"])

DEFAULT_LIMIT = 50
MAX_LIMIT = 1000


def _int_param(value: str | None, default: int, minimum: int) -> int:
    # Unparsable or out-of-range values fall back to the default instead of a 422.
    try:
        parsed = int(value) if value is not None else default
    except ValueError:
        return default
    return parsed if parsed >= minimum else default


def _file_info(request: Request, record: FileRecord) -> FileInfo:
    return FileInfo(
        id=record.id,
        filename=record.filename,
        original_name=record.original_name,
        size=record.size,
        mimetype=record.mimetype,
        upload_date=record.upload_date,
        public_url=public_file_url(request, record.filename),
        cloudku_url=record.remote_url,
        cloudku_filename=record.remote_name,
    )


@router.get("/file/{short_name}", response_model=FileInfoResponse)
async def get_file_info(short_name: str, request: Request, store: FileStore = Depends(get_store)):
    record = await store.get(short_name)
    if record is None:
        raise NotFound("File not found")
    return FileInfoResponse(data=_file_info(request, record))


@router.get("/files", response_model=FileListResponse)
async def list_files(
    request: Request,
    limit: str | None = Query(None),
    offset: str | None = Query(None),
    store: FileStore = Depends(get_store),
):
    limit = min(_int_param(limit, DEFAULT_LIMIT, 1), MAX_LIMIT)
    offset = _int_param(offset, 0, 0)
    rows = await store.list_files(limit=limit, offset=offset)
    files = [_file_info(request, r) for r in rows]
    return FileListResponse(data=files, count=len(files), limit=limit, offset=offset)


@router.delete("/file/{short_name}", response_model=MessageResponse)
async def delete_file(short_name: str, store: FileStore = Depends(get_store)):
    # Local metadata only; the CDN copy stays where it is.
    if not await store.delete(short_name):
        raise NotFound("File not found")
    return MessageResponse(status="success", message="File deleted successfully")


@router.get("/stats", response_model=StatsResponse)
async def get_stats(store: FileStore = Depends(get_store)):
    total_files, total_size = await store.stats()
    return StatsResponse(
        data=Stats(
            total_files=total_files,
            total_size=total_size,
            total_size_mb=f"{total_size / 1024 / 1024:.2f}",
        )
    )
