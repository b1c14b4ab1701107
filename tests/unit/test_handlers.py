"""
Unit tests for the simple built-in handlers and static file serving.
"""

import os

import pytest

from locserver.handlers import (
    EchoHandler,
    HealthRequestHandler,
    NotFoundHandler,
    SleepHandler,
    StaticHandler,
    strip_prefix,
)
from locserver.http.mime_types import get_mime_type


class TestStripPrefix:
    """Tests for strip_prefix()."""

    @pytest.mark.parametrize("path,prefix,expected", [
        ("/static/css/a.css", "/static", "/css/a.css"),
        ("/static", "/static", ""),
        ("/a.css", "/", "a.css"),
        ("/other", "/static", "/other"),
        ("/staticfoo", "/static", "foo"),
    ])
    def test_strip(self, path, prefix, expected):
        assert strip_prefix(path, prefix) == expected


class TestSimpleHandlers:
    """Tests for echo, health, sleep and not-found."""

    def test_echo_returns_raw_request(self, make_request):
        request = make_request("POST", "/echo?x=1", {"X-Test": "1"}, b"payload")
        response = EchoHandler().handle(request)

        assert response.status == 200
        assert response.get_header("Content-Type") == "text/plain"
        assert response.body == request.raw
        assert response.body.startswith(b"POST /echo?x=1 HTTP/1.1\r\nX-Test: 1\r\n")
        assert response.body.endswith(b"\r\n\r\npayload")

    def test_health(self, make_request):
        response = HealthRequestHandler().handle(make_request("GET", "/health"))

        assert response.status == 200
        assert response.body == b"OK"
        assert response.get_header("Cache-Control") == "no-store"

    def test_not_found(self, make_request):
        response = NotFoundHandler().handle(make_request("GET", "/anything"))

        assert response.status == 404
        assert response.body == b"404 Not Found"
        assert response.get_header("Content-Type") == "text/plain"

    def test_sleep(self, make_request):
        response = SleepHandler(delay_ms=0).handle(make_request("GET", "/sleep"))

        assert response.status == 200
        assert response.body == b"Slept"

    def test_sleep_parses_config_string(self):
        assert SleepHandler("250").delay_ms == 250

    @pytest.mark.parametrize("value", ["soon", "-1", None, "1.5"])
    def test_sleep_rejects_bad_delay(self, value):
        with pytest.raises(ValueError):
            SleepHandler(value)


@pytest.fixture
def site(tmp_path):
    """A small document root:

        site/index.html
        site/css/site.css
        site/blob.unknownext
        site/sub/ (empty directory)
        secret.txt (outside the root)
    """
    root = tmp_path / "site"
    (root / "css").mkdir(parents=True)
    (root / "sub").mkdir()
    (root / "index.html").write_text("<h1>home</h1>")
    (root / "css" / "site.css").write_text("body {}")
    (root / "blob.unknownext").write_bytes(b"\x00\x01")
    (tmp_path / "secret.txt").write_text("top secret")
    return root


class TestStaticHandler:
    """Tests for StaticHandler."""

    def test_serves_file_with_mime_type(self, site, make_request):
        handler = StaticHandler(str(site), prefix="/static")
        response = handler.handle(make_request("GET", "/static/css/site.css"))

        assert response.status == 200
        assert response.body == b"body {}"
        assert response.get_header("Content-Type") == "text/css"

    def test_root_prefix(self, site, make_request):
        response = StaticHandler(str(site), prefix="/").handle(make_request("GET", "/index.html"))

        assert response.status == 200
        assert response.get_header("Content-Type") == "text/html"

    def test_unknown_extension_is_octet_stream(self, site, make_request):
        response = StaticHandler(str(site), "/s").handle(make_request("GET", "/s/blob.unknownext"))
        assert response.get_header("Content-Type") == "application/octet-stream"

    def test_validators(self, site, make_request):
        response = StaticHandler(str(site), "/s").handle(make_request("GET", "/s/index.html"))
        stat = (site / "index.html").stat()

        assert response.get_header("ETag") == f'"{int(stat.st_mtime)}-{stat.st_size}"'
        assert response.get_header("Last-Modified").endswith("GMT")

    def test_if_none_match(self, site, make_request):
        handler = StaticHandler(str(site), "/s")
        etag = handler.handle(make_request("GET", "/s/index.html")).get_header("ETag")

        response = handler.handle(make_request("GET", "/s/index.html", {"If-None-Match": etag}))

        assert response.status == 304
        assert response.body == b""
        assert response.get_header("ETag") == etag

    def test_stale_etag_gets_full_response(self, site, make_request):
        handler = StaticHandler(str(site), "/s")
        response = handler.handle(make_request("GET", "/s/index.html", {"If-None-Match": '"0-0"'}))
        assert response.status == 200

    @pytest.mark.parametrize("target", [
        "/s/missing.html",
        "/s/sub",
        "/s/",
        "/s/../secret.txt",
        "/s/css/../../secret.txt",
        "/s/%2e%2e/secret.txt",
    ])
    def test_not_found(self, site, make_request, target):
        response = StaticHandler(str(site), "/s").handle(make_request("GET", target))

        assert response.status == 404
        assert response.body == b"404 Not Found"

    def test_symlink_out_of_root(self, site, tmp_path, make_request):
        link = site / "leak.txt"
        try:
            os.symlink(tmp_path / "secret.txt", link)
        except (OSError, NotImplementedError):
            pytest.skip("symlinks unavailable")

        response = StaticHandler(str(site), "/s").handle(make_request("GET", "/s/leak.txt"))
        assert response.status == 404

    def test_traversal_is_logged(self, site, make_request, caplog):
        StaticHandler(str(site), "/s").handle(make_request("GET", "/s/../secret.txt"))
        assert "Directory traversal attempt" in caplog.text


class TestMimeTypes:
    """Tests for get_mime_type()."""

    @pytest.mark.parametrize("path,expected", [
        ("a.html", "text/html"),
        ("A.HTML", "text/html"),
        ("dir/app.js", "application/javascript"),
        ("doc.md", "text/markdown"),
        ("logo.png", "image/png"),
        ("noext", "application/octet-stream"),
    ])
    def test_lookup(self, path, expected):
        assert get_mime_type(path) == expected

    def test_custom_default(self):
        assert get_mime_type("x.weird", default="text/plain") == "text/plain"
