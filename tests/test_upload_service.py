import pytest

from application.services.image_list_service import ImageListService
from application.services.upload_service import ImageUploadService, IncomingFile
from domain.common.exceptions import (
    NoFileProvidedException,
    TooManyFilesException,
    UploadFailedException,
)
from infrastructure.cache import BoundedCache
from shared.codes import BusinessCode

ORIGIN = "https://img.example.com"
MB = 1024 * 1024


def _file(name, content_type, data=b"\x89PNG", size=None):
    async def read():
        return data

    return IncomingFile(filename=name, content_type=content_type, read=read, size=size)


def _service(storage, cache=None, **overrides):
    cache = cache or BoundedCache()
    options = dict(
        max_file_size=10 * MB,
        allowed_types=["image/jpeg", "image/png", "image/gif", "image/webp"],
        max_concurrency=5,
        max_files=20,
    )
    options.update(overrides)
    return ImageUploadService(storage, ImageListService(storage, cache), **options)


@pytest.mark.asyncio
async def test_partial_failure_reports_each_file(storage):
    service = _service(storage)
    report = await service.upload(
        [
            _file("notes.txt", "text/plain"),
            _file("cat.jpg", "image/jpeg", b"jpeg"),
            _file("huge.png", "image/png", size=15 * MB),
            _file("icon.bmp", "image/bmp"),
        ],
        ORIGIN,
    )
    assert [f.original_name for f in report.files] == ["cat.jpg"]
    assert len(report.errors) == 3
    assert report.errors[0].startswith("notes.txt:")
    assert "size limit" in report.errors[1]
    assert report.errors[2].startswith("icon.bmp:")

    stored = report.files[0]
    assert stored.url == f"{ORIGIN}/{stored.generated_name}"
    assert stored.size_bytes == 4
    assert storage.files[stored.generated_name] == b"jpeg"


@pytest.mark.asyncio
async def test_actual_size_checked_when_declared_size_missing(storage):
    service = _service(storage, max_file_size=8)
    with pytest.raises(UploadFailedException) as exc_info:
        await service.upload([_file("a.png", "image/png", b"0123456789")], ORIGIN)
    assert "size limit" in exc_info.value.errors[0]
    assert storage.files == {}


@pytest.mark.asyncio
async def test_storage_failure_of_one_file_keeps_the_others(storage):
    storage.put_failures.add(b"bad")
    service = _service(storage)
    report = await service.upload(
        [_file("a.png", "image/png", b"good"), _file("b.png", "image/png", b"bad")],
        ORIGIN,
    )
    assert len(report.files) == 1
    assert report.errors == ["b.png: upload failed"]


@pytest.mark.asyncio
async def test_unexpected_read_error_does_not_abort_the_batch(storage):
    async def broken_read():
        raise OSError("spooled file vanished")

    storage.put_delay = 0.01
    service = _service(storage)
    report = await service.upload(
        [
            _file("a.png", "image/png", b"first"),
            IncomingFile(filename="b.png", content_type="image/png", read=broken_read),
            _file("c.png", "image/png", b"third"),
        ],
        ORIGIN,
    )
    assert [f.original_name for f in report.files] == ["a.png", "c.png"]
    assert report.errors == ["b.png: upload failed"]
    assert sorted(storage.files.values()) == [b"first", b"third"]
    assert storage.in_flight == 0


@pytest.mark.asyncio
async def test_all_invalid_is_a_validation_failure(storage):
    service = _service(storage)
    with pytest.raises(UploadFailedException) as exc_info:
        await service.upload([_file("a.txt", "text/plain"), _file("b.pdf", "application/pdf")], ORIGIN)
    exc = exc_info.value
    assert exc.code == BusinessCode.PARAM_ERROR
    assert exc.context == "upload"
    assert len(exc.errors) == 2


@pytest.mark.asyncio
async def test_all_storage_failures_is_an_upload_failure(storage):
    storage.put_failures.add(b"bad")
    service = _service(storage)
    with pytest.raises(UploadFailedException) as exc_info:
        await service.upload([_file("a.png", "image/png", b"bad")], ORIGIN)
    assert exc_info.value.code == BusinessCode.UPLOAD_FAILED
    assert exc_info.value.message == "a.png: upload failed"


@pytest.mark.asyncio
async def test_no_files(storage):
    with pytest.raises(NoFileProvidedException):
        await _service(storage).upload([], ORIGIN)


@pytest.mark.asyncio
async def test_too_many_files(storage):
    service = _service(storage, max_files=2)
    with pytest.raises(TooManyFilesException):
        await service.upload([_file(f"{i}.png", "image/png") for i in range(3)], ORIGIN)


@pytest.mark.asyncio
async def test_uploads_are_batched(storage):
    storage.put_delay = 0.01
    service = _service(storage, max_concurrency=3)
    files = [_file(f"{i}.png", "image/png", str(i).encode()) for i in range(7)]
    report = await service.upload(files, ORIGIN)
    assert len(report.files) == 7
    assert storage.max_in_flight == 3


@pytest.mark.asyncio
async def test_success_invalidates_cached_listings(storage):
    cache = BoundedCache()
    cache.set("image_list:root", object(), ttl_ms=60_000)
    cache.set("image_list:vacation", object(), ttl_ms=60_000)
    cache.set("rate_limit:1.2.3.4", object(), ttl_ms=60_000)
    await _service(storage, cache).upload([_file("a.png", "image/png")], ORIGIN)
    assert "image_list:root" not in cache
    assert "image_list:vacation" not in cache
    assert "rate_limit:1.2.3.4" in cache


@pytest.mark.asyncio
async def test_total_failure_keeps_cached_listings(storage):
    cache = BoundedCache()
    cache.set("image_list:root", object(), ttl_ms=60_000)
    with pytest.raises(UploadFailedException):
        await _service(storage, cache).upload([_file("a.txt", "text/plain")], ORIGIN)
    assert "image_list:root" in cache
