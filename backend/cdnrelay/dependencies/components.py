from fastapi import Request

from cdnrelay.core.cdn_client import CdnClient
from cdnrelay.core.store import FileStore
from cdnrelay.services.uploads import UploadOrchestrator


def get_store(request: Request) -> FileStore:
    return request.app.state.store


def get_cdn(request: Request) -> CdnClient:
    return request.app.state.cdn


def get_orchestrator(request: Request) -> UploadOrchestrator:
    return request.app.state.orchestrator
