import asyncio
import io

import httpx
import pytest

from cdnrelay.core.cdn_client import BatchResult, CdnClient, CdnUpload, source_length
from cdnrelay.core.errors import PayloadTooLarge, UpstreamFetchFailed, UpstreamUploadFailed

UPLOAD_URL = "https://api.cdn.test/cdn/api.php"


def make_client(handler, max_file_size=1024):
    transport = httpx.MockTransport(handler)
    return CdnClient(UPLOAD_URL, max_file_size=max_file_size, client=httpx.AsyncClient(transport=transport))


def test_upload_posts_multipart_file_field():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["content_type"] = request.headers["content-type"]
        seen["body"] = request.content
        return httpx.Response(200, json={"status": "success", "url": "https://cdn.test/q1.txt", "filename": "q1.txt"})

    cdn = make_client(handler)
    result = asyncio.run(cdn.upload(io.BytesIO(b"hello world"), "notes.txt", "text/plain"))

    assert result == CdnUpload(url="https://cdn.test/q1.txt", filename="q1.txt")
    assert seen["method"] == "POST"
    assert seen["url"] == UPLOAD_URL
    assert seen["content_type"].startswith("multipart/form-data")
    assert b'name="file"; filename="notes.txt"' in seen["body"]
    assert b"hello world" in seen["body"]


def test_upload_accepts_bytes():
    def handler(request):
        return httpx.Response(200, json={"status": "success", "url": "https://cdn.test/b", "filename": "b"})

    result = asyncio.run(make_client(handler).upload(b"raw", "b.bin"))

    assert result.url == "https://cdn.test/b"


def test_upload_error_status_carries_cdn_message():
    def handler(request):
        return httpx.Response(200, json={"status": "error", "message": "Unsupported file"})

    with pytest.raises(UpstreamUploadFailed) as excinfo:
        asyncio.run(make_client(handler).upload(b"raw", "x.exe"))
    assert "Unsupported file" in excinfo.value.message


def test_upload_http_error_uses_body_message():
    def handler(request):
        return httpx.Response(503, json={"message": "maintenance"})

    with pytest.raises(UpstreamUploadFailed) as excinfo:
        asyncio.run(make_client(handler).upload(b"raw", "x.txt"))
    assert "maintenance" in excinfo.value.message


def test_upload_non_json_response():
    def handler(request):
        return httpx.Response(502, text="<html>bad gateway</html>")

    with pytest.raises(UpstreamUploadFailed):
        asyncio.run(make_client(handler).upload(b"raw", "x.txt"))


def test_upload_missing_url():
    def handler(request):
        return httpx.Response(200, json={"status": "success"})

    with pytest.raises(UpstreamUploadFailed):
        asyncio.run(make_client(handler).upload(b"raw", "x.txt"))


def test_upload_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamUploadFailed) as excinfo:
        asyncio.run(make_client(handler).upload(b"raw", "x.txt"))
    assert "connection refused" in excinfo.value.message


def test_upload_over_limit_is_not_sent():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    with pytest.raises(PayloadTooLarge):
        asyncio.run(make_client(handler, max_file_size=4).upload(b"12345", "x.txt"))
    assert calls == []


def test_fetch_streams_origin_body():
    def handler(request):
        return httpx.Response(200, content=b"file-bytes")

    async def run():
        resp = await make_client(handler).fetch("https://cdn.test/q1.txt")
        try:
            return b"".join([chunk async for chunk in resp.aiter_bytes()])
        finally:
            await resp.aclose()

    assert asyncio.run(run()) == b"file-bytes"


def test_fetch_non_success_status():
    def handler(request):
        return httpx.Response(404)

    with pytest.raises(UpstreamFetchFailed):
        asyncio.run(make_client(handler).fetch("https://cdn.test/missing"))


def test_fetch_unreachable_origin():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(UpstreamFetchFailed):
        asyncio.run(make_client(handler).fetch("https://cdn.test/slow"))


def test_source_length_keeps_position():
    buf = io.BytesIO(b"abcdef")
    buf.seek(2)

    assert source_length(buf) == 4
    assert buf.tell() == 2


def test_upload_reports_progress_up_to_100():
    data = b"x" * (200 * 1024)
    seen = {}

    def handler(request):
        seen["body"] = request.content
        return httpx.Response(200, json={"status": "success", "url": "https://cdn.test/big", "filename": "big"})

    progress = []
    cdn = make_client(handler, max_file_size=1024 * 1024)
    result = asyncio.run(cdn.upload(io.BytesIO(data), "big.bin", on_progress=progress.append))

    assert result.filename == "big"
    assert data in seen["body"]
    assert len(progress) > 1
    assert progress == sorted(progress)
    assert progress[-1] == 100
    assert all(0 <= p <= 100 for p in progress)


def test_upload_progress_for_empty_file():
    def handler(request):
        return httpx.Response(200, json={"status": "success", "url": "https://cdn.test/e", "filename": "e"})

    progress = []
    asyncio.run(make_client(handler).upload(b"", "empty.txt", on_progress=progress.append))

    assert progress[-1] == 100


def test_upload_many_keeps_order_and_isolates_failures():
    def handler(request):
        if b'filename="bad.exe"' in request.content:
            return httpx.Response(200, json={"status": "error", "message": "Unsupported file"})
        name = "r-" + request.content.split(b'filename="')[1].split(b'"')[0].decode()
        return httpx.Response(200, json={"status": "success", "url": f"https://cdn.test/{name}", "filename": name})

    items = [
        (b"one", "a.txt"),
        (b"two", "bad.exe", "application/octet-stream"),
        (io.BytesIO(b"three"), "c.txt", "text/plain"),
        (b"too large for the cap", "d.txt"),
    ]
    results = asyncio.run(make_client(handler, max_file_size=8).upload_many(items))

    assert [r.index for r in results] == [0, 1, 2, 3]
    assert results[0] == BatchResult(index=0, filename="a.txt", upload=CdnUpload("https://cdn.test/r-a.txt", "r-a.txt"))
    assert not results[1].ok
    assert "Unsupported file" in results[1].error
    assert results[2].ok and results[2].upload.filename == "r-c.txt"
    assert not results[3].ok
    assert "Upload limit exceeded" in results[3].error


def test_upload_many_reports_per_file_progress():
    def handler(request):
        return httpx.Response(200, json={"status": "success", "url": "https://cdn.test/f", "filename": "f"})

    events = []
    items = [(b"first", "1.txt"), (b"second", "2.txt")]
    results = asyncio.run(
        make_client(handler).upload_many(items, on_file_progress=lambda i, p, t: events.append((i, p, t)))
    )

    assert all(r.ok for r in results)
    assert (0, 100, 2) in events
    assert (1, 100, 2) in events
    assert events.index((0, 100, 2)) < events.index((1, 100, 2))
    assert {t for _, _, t in events} == {2}
