import asyncio
import os
import sys

import pytest
import pytest_asyncio

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from jpeg_cache.services.blob_store import BlobStore, StoreStatus


@pytest_asyncio.fixture
async def store(tmp_path):
    """A blob store over an initialized, empty cache directory."""
    store = BlobStore(tmp_path / "cache")
    await store.initialize()
    return store


def test_location(tmp_path):
    store = BlobStore(tmp_path)
    assert store.location("042") == tmp_path / "042.jpeg"


@pytest.mark.parametrize("key", ["42", "4200", "abc", "/42", "٤٢٠", ""])
def test_location_rejects_malformed_keys(tmp_path, key):
    with pytest.raises(ValueError):
        BlobStore(tmp_path).location(key)


@pytest.mark.asyncio
async def test_read_missing(store):
    result = await store.read("404")
    assert result.status is StoreStatus.NOT_FOUND
    assert result.data is None


@pytest.mark.asyncio
async def test_write_then_read(store):
    content = os.urandom(4096)

    result = await store.write("200", content)
    assert result.status is StoreStatus.OK

    result = await store.read("200")
    assert result.status is StoreStatus.OK
    assert result.data == content
    assert sorted(p.name for p in store.cache_dir.iterdir()) == ["200.jpeg"]


@pytest.mark.asyncio
async def test_delete(store):
    await store.write("200", b"jpeg")

    result = await store.delete("200")
    assert result.status is StoreStatus.OK
    assert not store.location("200").exists()

    result = await store.delete("200")
    assert result.status is StoreStatus.NOT_FOUND


@pytest.mark.asyncio
async def test_io_errors_are_reported_not_raised(store):
    store.location("300").mkdir()

    for result in (
        await store.read("300"),
        await store.write("300", b"jpeg"),
        await store.delete("300"),
    ):
        assert result.status is StoreStatus.IO_ERROR
        assert result.detail

    # Failed write leaves no temporary file behind
    assert [p.name for p in store.cache_dir.iterdir()] == ["300.jpeg"]


@pytest.mark.asyncio
async def test_concurrent_writes_last_one_wins(store):
    payloads = [bytes([i]) * 10000 for i in range(10)]

    results = await asyncio.gather(*(store.write("555", p) for p in payloads))

    assert all(r.status is StoreStatus.OK for r in results)
    assert (await store.read("555")).data in payloads
    assert not list(store.cache_dir.glob(".*.tmp"))


@pytest.mark.asyncio
async def test_initialize_removes_stale_temp_files(tmp_path):
    cache_dir = tmp_path / "cache"
    cache_dir.mkdir()
    (cache_dir / "100.jpeg").write_bytes(b"kept")
    (cache_dir / ".100.jpeg.abc123.tmp").write_bytes(b"partial")
    (cache_dir / ".101.jpeg.def456.tmp").write_bytes(b"partial")

    store = BlobStore(cache_dir)
    await store.initialize()

    assert sorted(p.name for p in cache_dir.iterdir()) == ["100.jpeg"]
    assert (await store.read("100")).data == b"kept"


@pytest.mark.asyncio
async def test_initialize_creates_directory(tmp_path):
    cache_dir = tmp_path / "a" / "b"
    await BlobStore(cache_dir).initialize()
    assert cache_dir.is_dir()
