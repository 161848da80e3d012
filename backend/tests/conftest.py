import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient

from cdnrelay.core.cdn_client import CdnClient, CdnUpload
from cdnrelay.core.config import Settings
from cdnrelay.core.errors import UpstreamUploadFailed
from cdnrelay.core.store import FileStore
from cdnrelay.main import create_app


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'relay.db'}",
        UPLOAD_TMP_DIR=str(tmp_path / "uploads"),
        PUBLIC_BASE_URL="",
        METRICS_ENABLED=False,
    )


@pytest.fixture
def store(settings):
    store = FileStore(settings.DATABASE_URL)
    asyncio.run(store.create_all())
    yield store
    asyncio.run(store.dispose())


class FakeCdn:
    """Stands in for CdnClient.upload; remembers what it was sent."""

    def __init__(self, url="https://x/y", filename="y", error=None):
        self.url = url
        self.filename = filename
        self.error = error
        self.calls = []

    async def upload(self, source, filename, content_type=None):
        self.calls.append({"filename": filename, "data": source.read(), "content_type": content_type})
        if self.error:
            raise UpstreamUploadFailed(f"CDN upload failed: {self.error}")
        return CdnUpload(url=self.url, filename=self.filename)

    async def aclose(self):
        pass


@pytest.fixture
def fake_cdn():
    return FakeCdn()


class TrackedStream(httpx.AsyncByteStream):
    """Origin body that remembers being closed; optionally breaks after `fail_after` chunks."""

    def __init__(self, chunks, fail_after=None):
        self.chunks = chunks
        self.fail_after = fail_after
        self.closed = False

    async def __aiter__(self):
        for i, chunk in enumerate(self.chunks):
            if i == self.fail_after:
                raise httpx.ReadError("connection reset by origin")
            yield chunk

    async def aclose(self):
        self.closed = True


class FakeOrigin:
    """httpx MockTransport handler playing both the upload API and the CDN origin."""

    upload_url = "https://cdn.test/cdn/api.php"

    def __init__(self):
        self.files = {}
        self.streams = {}
        self.next_upload = {"status": "success", "url": "https://x/y", "filename": "y"}
        self.uploads = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST" and str(request.url) == self.upload_url:
            self.uploads.append(request.content)
            status = 200 if self.next_upload.get("status") != "error" else 400
            return httpx.Response(status, json=self.next_upload)
        stream = self.streams.get(str(request.url))
        if stream is not None:
            return httpx.Response(200, stream=stream, headers={"content-type": "application/octet-stream"})
        body = self.files.get(str(request.url))
        if body is None:
            return httpx.Response(404, text="missing")
        return httpx.Response(200, content=body, headers={"content-type": "application/octet-stream"})


@pytest.fixture
def origin():
    return FakeOrigin()


@pytest.fixture
def app(settings, origin):
    settings.CDN_UPLOAD_URL = origin.upload_url
    cdn = CdnClient.from_settings(settings, client=httpx.AsyncClient(transport=httpx.MockTransport(origin)))
    return create_app(settings, cdn=cdn)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client
