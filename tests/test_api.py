import re

from application.ports.storage import DirectoryEntry
from application.services.image_fetch_service import IMAGE_CACHE_CONTROL
from infrastructure.external.storage.exceptions import TransientError
from shared.codes import BusinessCode

MB = 1024 * 1024
ORIGIN = "http://testserver"


def _assert_error_body(body, context):
    assert body["success"] is False
    assert body["context"] == context
    assert isinstance(body["code"], int)
    assert body["message"]
    assert body["timestamp"].endswith("Z")


def test_upload_single_jpeg(client, storage):
    resp = client.post("/upload", files={"file": ("cat.jpg", b"\xff\xd8" + b"0" * (2 * MB), "image/jpeg")})
    assert resp.status_code == 200
    assert resp.headers["Cache-Control"] == "no-store"
    assert resp.headers["Access-Control-Allow-Origin"] == "*"

    body = resp.json()
    assert body["success"] is True
    assert "errors" not in body
    stored = body["files"][0]
    assert stored["originalName"] == "cat.jpg"
    assert stored["mimeType"] == "image/jpeg"
    assert stored["sizeBytes"] == 2 * MB + 2
    assert re.fullmatch(rf"{ORIGIN}/\d+\.jpg", stored["url"])
    assert stored["generatedName"] in storage.files


def test_upload_oversized_png_is_a_structured_error(client, storage):
    resp = client.post("/upload", files={"file": ("big.png", b"0" * (15 * MB), "image/png")})
    assert resp.status_code == 400
    assert resp.headers["Cache-Control"] == "no-store"
    body = resp.json()
    _assert_error_body(body, "upload")
    assert body["files"] == []
    assert len(body["errors"]) == 1
    assert "size limit" in body["errors"][0]
    assert storage.files == {}


def test_upload_partial_success(client):
    resp = client.post(
        "/upload",
        files=[
            ("file", ("a.png", b"png", "image/png")),
            ("file", ("notes.txt", b"text", "text/plain")),
            ("file", ("b.gif", b"gif", "image/gif")),
        ],
    )
    assert resp.status_code == 200
    body = resp.json()
    assert [f["originalName"] for f in body["files"]] == ["a.png", "b.gif"]
    assert len(body["errors"]) == 1
    assert body["errors"][0].startswith("notes.txt:")


def test_upload_backend_failure(client, storage):
    storage.put_failures.add(b"png")
    resp = client.post("/upload", files={"file": ("a.png", b"png", "image/png")})
    assert resp.status_code == 502
    body = resp.json()
    _assert_error_body(body, "upload")
    assert body["code"] == BusinessCode.UPLOAD_FAILED


def test_upload_without_files(client):
    resp = client.post("/upload", data={"note": "nothing here"})
    assert resp.status_code == 400
    body = resp.json()
    _assert_error_body(body, "upload")
    assert body["code"] == BusinessCode.FILE_MISSING


def test_list_images_in_subdirectory(client, storage):
    storage.listings["vacation"] = [
        DirectoryEntry(href="/dav/vacation/beach.jpg", name="beach.jpg", is_directory=False),
        DirectoryEntry(href="/dav/vacation/raw/", name="raw", is_directory=True),
        DirectoryEntry(href="/dav/vacation/sun%20set.png", name="sun set.png", is_directory=False),
    ]
    resp = client.get("/images/vacation")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert len(body["files"]) == 2
    assert all(f["url"].startswith(f"{ORIGIN}/vacation/") for f in body["files"])
    assert body["files"][1] == {"url": f"{ORIGIN}/vacation/sun%20set.png", "name": "sun set.png"}


def test_listing_is_cached_until_upload(client, storage):
    storage.listings[""] = [DirectoryEntry(href="/dav/a.png", name="a.png", is_directory=False)]
    client.get("/images")
    client.get("/images/")
    assert storage.list_calls == 1

    client.post("/upload", files={"file": ("b.png", b"png", "image/png")})
    client.get("/images")
    assert storage.list_calls == 2


def test_cached_listing_matches_uncached_body(client, storage):
    storage.listings["vacation"] = [
        DirectoryEntry(href="/dav/vacation/beach.png", name="beach.png", is_directory=False),
        DirectoryEntry(href="/dav/vacation/sunset.jpg", name="sunset.jpg", is_directory=False),
    ]
    first = client.get("/images/vacation")
    second = client.get("/images/vacation")

    assert storage.list_calls == 1
    assert first.status_code == second.status_code == 200
    assert first.content == second.content
    assert first.headers["Content-Type"] == second.headers["Content-Type"]


def test_list_images_backend_failure(client, storage):
    storage.list_error = TransientError("WebDAV list failed with status 503", 503)
    resp = client.get("/images")
    assert resp.status_code == 502
    assert resp.headers["Cache-Control"] == "no-store"
    _assert_error_body(resp.json(), "getImages")


def test_fetch_image_miss_then_hit(client, storage):
    storage.files["vacation/beach.png"] = b"\x89PNG-bytes"

    first = client.get("/vacation/beach.png")
    assert first.status_code == 200
    assert first.content == b"\x89PNG-bytes"
    assert first.headers["Content-Type"] == "image/png"
    assert first.headers["Cache-Control"] == IMAGE_CACHE_CONTROL
    assert first.headers["Vary"] == "Accept-Encoding"
    assert first.headers["X-Cache"] == "MISS"
    assert re.fullmatch(r'"[0-9a-f]{32}"', first.headers["ETag"])

    second = client.get("/vacation/beach.png")
    assert second.status_code == 200
    assert second.content == b"\x89PNG-bytes"
    assert second.headers["X-Cache"] == "HIT"
    assert second.headers["ETag"] == first.headers["ETag"]
    assert storage.get_calls == 1


def test_fetch_without_edge_cache(make_client, storage):
    client = make_client(edge_cache={"enabled": False})
    storage.files["a.gif"] = b"GIF89a"
    assert client.get("/a.gif").content == b"GIF89a"
    assert client.get("/a.gif").headers["X-Cache"] == "MISS"
    assert storage.get_calls == 2


def test_fetch_missing_image(client):
    resp = client.get("/nope.jpg")
    assert resp.status_code == 404
    assert resp.headers["Access-Control-Allow-Origin"] == "*"
    body = resp.json()
    _assert_error_body(body, "getImage")
    assert body["code"] == BusinessCode.IMAGE_NOT_FOUND


def test_fetch_backend_failure(client, storage):
    storage.get_error = TransientError("WebDAV get failed with status 502", 502)
    resp = client.get("/a.webp")
    assert resp.status_code == 502
    _assert_error_body(resp.json(), "getImage")


def test_unknown_route(client):
    resp = client.get("/does/not/exist")
    assert resp.status_code == 404
    assert resp.headers["Access-Control-Allow-Origin"] == "*"
    assert resp.headers["Cache-Control"] == "no-store"
    body = resp.json()
    _assert_error_body(body, "route")
    assert body["message"] == "Not Found"


def test_preflight(client):
    resp = client.options("/upload")
    assert resp.status_code == 204
    assert resp.content == b""
    assert resp.headers["Access-Control-Allow-Origin"] == "*"
    assert resp.headers["Access-Control-Allow-Methods"] == "GET, POST, OPTIONS"


def test_root_redirects(client):
    resp = client.get("/", follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers["Location"] == "https://www.bing.com"
    assert resp.headers["Access-Control-Allow-Origin"] == "*"


def test_root_serves_upload_page_when_configured(make_client):
    client = make_client(UPLOAD_PAGE_PATH="/")
    resp = client.get("/", follow_redirects=False)
    assert resp.status_code == 200
    assert resp.headers["Content-Type"].startswith("text/html")


def test_static_assets(client):
    for path, content_type in [
        ("/upload", "text/html"),
        ("/upload.html", "text/html"),
        ("/index.html", "text/html"),
        ("/app.js", "application/javascript"),
        ("/styles.css", "text/css"),
        ("/robots.txt", "text/plain"),
        ("/favicon.ico", "image/x-icon"),
    ]:
        resp = client.get(path)
        assert resp.status_code == 200, path
        assert resp.headers["Content-Type"].startswith(content_type), path
        assert resp.headers["Access-Control-Allow-Origin"] == "*"


def test_carousel_injects_subpath(client):
    resp = client.get("/carousel/trip")
    assert resp.status_code == 200
    assert resp.headers["Cache-Control"] == "no-store"
    assert 'var subpath = "trip";' in resp.text


def test_carousel_is_identical_and_uncached_across_requests(client):
    first = client.get("/carousel/vacation")
    second = client.get("/carousel/vacation")

    assert first.status_code == second.status_code == 200
    assert first.text == second.text
    assert first.headers["Cache-Control"] == second.headers["Cache-Control"] == "no-store"
    assert "X-Cache" not in second.headers


def test_carousel_escapes_subpath(client):
    resp = client.get("/carousel/%3C%2Fscript%3E%3Cscript%3Ealert(1)")
    assert resp.status_code == 200
    assert "</script><script>alert(1)" not in resp.text
    assert "\\u003c/script\\u003e" in resp.text


def test_rate_limit(make_client):
    client = make_client(rate_limit={"max_requests": 2})
    headers = {"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}
    first = client.get("/robots.txt", headers=headers)
    assert first.headers["X-RateLimit-Remaining"] == "1"
    client.get("/robots.txt", headers=headers)

    denied = client.get("/robots.txt", headers=headers)
    assert denied.status_code == 429
    assert denied.headers["Access-Control-Allow-Origin"] == "*"
    assert int(denied.headers["Retry-After"]) > 0
    body = denied.json()
    _assert_error_body(body, "main")
    assert body["code"] == BusinessCode.TOO_MANY_REQUESTS

    other = client.get("/robots.txt", headers={"X-Forwarded-For": "198.51.100.1"})
    assert other.status_code == 200


def test_health_is_not_rate_limited(make_client):
    client = make_client(rate_limit={"max_requests": 1})
    for _ in range(3):
        resp = client.get("/health")
        assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["edge_cache"]["enabled"] is True


def test_unexpected_fault_becomes_structured_error(client, storage):
    storage.list_error = RuntimeError("boom")
    resp = client.get("/images")
    assert resp.status_code == 500
    assert resp.headers["Access-Control-Allow-Origin"] == "*"
    body = resp.json()
    _assert_error_body(body, "main")
    assert body["code"] == BusinessCode.SYSTEM_ERROR
    assert "boom" not in body["message"]
    assert resp.headers["Cache-Control"] == "no-store"
    assert resp.headers["X-Request-ID"]


def test_request_id_is_echoed(client):
    resp = client.get("/robots.txt", headers={"X-Request-ID": "req-123"})
    assert resp.headers["X-Request-ID"] == "req-123"
