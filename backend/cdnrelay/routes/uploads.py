from __future__ import annotations

import html
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse
from starlette.datastructures import UploadFile

from cdnrelay.core.errors import InvalidInput, RelayError
from cdnrelay.dependencies.components import get_orchestrator
from cdnrelay.schemas.file import UploadResponse
from cdnrelay.services.uploads import UploadOrchestrator, UploadResult
from cdnrelay.utils.urls import public_file_url

logger = logging.getLogger("cdn-relay")

router = APIRouter(tags=["Uploads"])


def _wants_json(request: Request) -> bool:
    return "application/json" in request.headers.get("accept", "")


def _upload_response(request: Request, result: UploadResult) -> UploadResponse:
    record = result.record
    return UploadResponse(
        url=public_file_url(request, record.filename),
        filename=record.filename,
        original_name=record.original_name,
        cloudku_url=record.remote_url,
        cloudku_filename=record.remote_name,
        size=record.size,
        mimetype=record.mimetype,
    )


async def _process(request: Request, orchestrator: UploadOrchestrator) -> UploadResult:
    async with request.form() as form:
        # A plain text value under "file" counts as no file at all.
        file = form.get("file")
        if not isinstance(file, UploadFile):
            raise InvalidInput("No file provided")
        return await orchestrator.process(
            file,
            original_name=file.filename or "file",
            declared_size=file.size,
            mimetype=file.content_type,
        )


def _confirmation_page(url: str, original_name: str) -> str:
    safe_url = html.escape(url)
    return f"""<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>Uploaded {html.escape(original_name)}</title>
</head>
<body>
  <p><strong>{html.escape(original_name)}</strong> uploaded.</p>
  <p><a href="{safe_url}">{safe_url}</a></p>
</body>
</html>"""


@router.post("/upload", response_model=None)
async def upload_form(
    request: Request,
    orchestrator: UploadOrchestrator = Depends(get_orchestrator),
):
    wants_json = _wants_json(request)
    try:
        result = await _process(request, orchestrator)
    except RelayError as e:
        logger.error("Upload error: %s", e.message)
        if wants_json:
            return JSONResponse(status_code=e.status_code, content={"status": "error", "message": e.message})
        return PlainTextResponse(f"Error: {e.message}", status_code=e.status_code)

    resp = _upload_response(request, result)
    if wants_json:
        return JSONResponse(resp.model_dump(by_alias=True))
    return HTMLResponse(_confirmation_page(resp.url, resp.original_name))


@router.post("/cdn/api.php", response_model=UploadResponse)
async def upload_api(
    request: Request,
    orchestrator: UploadOrchestrator = Depends(get_orchestrator),
):
    result = await _process(request, orchestrator)
    return _upload_response(request, result)
