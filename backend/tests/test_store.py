import asyncio
from datetime import datetime, timedelta

import pytest

from cdnrelay.core.errors import DuplicateShortName
from cdnrelay.models.file_record import FileRecord


def record(short_name, size=10, uploaded=None, remote_url="https://x/y"):
    return FileRecord(
        filename=short_name,
        original_name="orig-" + short_name,
        size=size,
        mimetype="text/plain",
        upload_date=uploaded or datetime.utcnow(),
        remote_url=remote_url,
        remote_name="y",
    )


def test_duplicate_short_name_is_rejected_not_overwritten(store):
    asyncio.run(store.insert(record("abc123.txt", remote_url="https://x/first")))

    with pytest.raises(DuplicateShortName):
        asyncio.run(store.insert(record("abc123.txt", remote_url="https://x/second")))

    assert asyncio.run(store.get("abc123.txt")).remote_url == "https://x/first"


def test_get_unknown_returns_none(store):
    assert asyncio.run(store.get("nope.txt")) is None


def test_delete_twice(store):
    asyncio.run(store.insert(record("gone01.bin")))

    assert asyncio.run(store.delete("gone01.bin")) is True
    assert asyncio.run(store.delete("gone01.bin")) is False
    assert asyncio.run(store.get("gone01.bin")) is None


def test_list_newest_first_with_pagination(store):
    base = datetime(2026, 1, 1)
    for i in range(5):
        asyncio.run(store.insert(record(f"file0{i}.txt", uploaded=base + timedelta(minutes=i))))

    first_page = asyncio.run(store.list_files(limit=2, offset=0))
    second_page = asyncio.run(store.list_files(limit=2, offset=2))

    assert [r.filename for r in first_page] == ["file04.txt", "file03.txt"]
    assert [r.filename for r in second_page] == ["file02.txt", "file01.txt"]


def test_stats(store):
    assert asyncio.run(store.stats()) == (0, 0)

    asyncio.run(store.insert(record("aaaaaa", size=1024)))
    asyncio.run(store.insert(record("bbbbbb", size=2048)))

    assert asyncio.run(store.stats()) == (2, 3072)


def test_ping(store):
    asyncio.run(store.ping())
