"""
Unit tests for HTTP response building.
"""

import json
from datetime import datetime, timezone

import pytest

from locserver.http.response import (
    HTTPResponse,
    ResponseBuilder,
    bad_request,
    created,
    format_http_date,
    internal_error,
    json_error,
    no_content,
    not_modified,
    parse_http_date,
    redirect,
    text_response,
)
from locserver.http.status_codes import HTTPStatus, reason_phrase


def split_wire(data: bytes):
    head, _, body = data.partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(": ")
        headers[name] = value
    return lines[0], headers, body


class TestHTTPResponse:
    """Tests for HTTPResponse class."""

    def test_status_line(self):
        assert HTTPResponse(status=HTTPStatus.OK).status_line == "HTTP/1.1 200 OK"
        assert HTTPResponse(status=404).status_line == "HTTP/1.1 404 Not Found"

    def test_unknown_status_phrase(self):
        assert HTTPResponse(status=418).status_line == "HTTP/1.1 418 Unknown"

    def test_to_bytes_adds_standard_headers(self):
        response = HTTPResponse(status=200, headers={"Content-Type": "text/plain"}, body=b"hi")
        status_line, headers, body = split_wire(response.to_bytes())

        assert status_line == "HTTP/1.1 200 OK"
        assert headers["Content-Type"] == "text/plain"
        assert headers["Content-Length"] == "2"
        assert headers["Server"] == "locserver"
        assert headers["Date"].endswith("GMT")
        assert body == b"hi"

    def test_to_bytes_custom_server_name(self):
        _, headers, _ = split_wire(HTTPResponse().to_bytes(server_name="test/1"))
        assert headers["Server"] == "test/1"

    def test_handler_content_length_is_kept(self):
        response = HTTPResponse(headers={"content-length": "5"}, body=b"hello")
        _, headers, _ = split_wire(response.to_bytes())
        assert headers["content-length"] == "5"
        assert "Content-Length" not in headers

    @pytest.mark.parametrize("status", [204, 304])
    def test_bodyless_statuses(self, status):
        response = HTTPResponse(status=status, body=b"ignored")
        _, headers, body = split_wire(response.to_bytes())

        assert body == b""
        assert "Content-Length" not in headers

    def test_header_access_is_case_insensitive(self):
        response = HTTPResponse(headers={"Content-Type": "text/html"})

        assert response.get_header("content-type") == "text/html"
        assert response.has_header("CONTENT-TYPE")
        assert response.get_header("x-missing") is None

    def test_set_header_replaces_any_case(self):
        response = HTTPResponse(headers={"content-length": "1"})
        response.set_header("Content-Length", "2")

        assert response.headers == {"Content-Length": "2"}

    def test_remove_header(self):
        response = HTTPResponse(headers={"Vary": "Accept"})
        response.remove_header("vary")
        assert response.headers == {}

    @pytest.mark.parametrize("value", ["/x\r\nSet-Cookie: a=1", "/x\nY: 1", "/€"])
    def test_to_bytes_rejects_unsafe_header_values(self, value):
        with pytest.raises(ValueError):
            HTTPResponse(headers={"Location": value}).to_bytes()

    def test_set_body_encodes_str(self):
        assert HTTPResponse().set_body("héllo").body == "héllo".encode("utf-8")

    @pytest.mark.parametrize("value,expected", [
        (None, None),
        ("close", False),
        ("Close", False),
        ("keep-alive", True),
    ])
    def test_keep_alive(self, value, expected):
        headers = {"Connection": value} if value else {}
        assert HTTPResponse(headers=headers).keep_alive is expected


class TestResponseBuilder:
    """Tests for ResponseBuilder fluent API."""

    def test_defaults(self):
        response = ResponseBuilder().build()
        assert response.status == 200
        assert response.body == b""

    def test_json_is_compact(self):
        response = ResponseBuilder().json({"id": 1, "tags": ["a"]}).build()

        assert response.get_header("Content-Type") == "application/json"
        assert response.body == b'{"id":1,"tags":["a"]}'

    def test_html(self):
        response = ResponseBuilder().html("<h1>x</h1>").build()
        assert response.get_header("Content-Type") == "text/html"

    def test_text_default_content_type(self):
        response = ResponseBuilder().text("plain").build()
        assert response.get_header("Content-Type") == "text/plain"
        assert response.body == b"plain"

    def test_last_modified(self):
        response = ResponseBuilder().last_modified(0).build()
        assert response.get_header("Last-Modified") == "Thu, 01 Jan 1970 00:00:00 GMT"

    def test_close_connection(self):
        response = ResponseBuilder().close_connection().build()
        assert response.keep_alive is False

    def test_method_chaining(self):
        response = (ResponseBuilder()
                    .status(HTTPStatus.CREATED)
                    .header("Location", "/api/books/1")
                    .json({"id": 1})
                    .build())

        assert response.status == 201
        assert response.get_header("Location") == "/api/books/1"

    def test_build_copies_headers(self):
        builder = ResponseBuilder().header("X-A", "1")
        first = builder.build()
        builder.header("X-B", "2")
        assert "X-B" not in first.headers


class TestConvenienceFunctions:
    """Tests for response helper functions."""

    def test_text_response(self):
        response = text_response(HTTPStatus.NOT_FOUND, "404 Not Found")
        assert response.status == 404
        assert response.body == b"404 Not Found"

    def test_json_error_shape(self):
        response = json_error(HTTPStatus.UNSUPPORTED_MEDIA_TYPE, "Unsupported")
        assert response.status == 415
        assert json.loads(response.body) == {"error": "Unsupported"}

    def test_created(self):
        response = created({"id": 3}, location="/api/books/3")
        assert response.status == 201
        assert response.get_header("Location") == "/api/books/3"
        assert json.loads(response.body) == {"id": 3}

    def test_created_without_body(self):
        response = created(location="/api/books/3")
        assert response.body == b""

    def test_no_content(self):
        assert no_content().status == 204

    def test_not_modified_keeps_validators(self):
        response = not_modified({"ETag": '"1-2"'})
        assert response.status == 304
        assert response.get_header("ETag") == '"1-2"'

    def test_redirects(self):
        assert redirect("/docs/").status == 302
        permanent = redirect("/docs/", permanent=True)
        assert permanent.status == 301
        assert permanent.get_header("Location") == "/docs/"

    def test_error_helpers(self):
        assert bad_request().status == 400
        assert json.loads(bad_request().body) == {"error": "Bad Request"}
        assert internal_error().status == 500


class TestHTTPStatus:
    """Tests for HTTPStatus enum."""

    def test_phrases(self):
        assert HTTPStatus.OK.phrase == "OK"
        assert HTTPStatus.PAYLOAD_TOO_LARGE.phrase == "Payload Too Large"
        assert reason_phrase(405) == "Method Not Allowed"
        assert reason_phrase(599) == "Unknown"

    def test_categories(self):
        assert HTTPStatus.NO_CONTENT.is_success
        assert not HTTPStatus.NOT_MODIFIED.is_success
        assert HTTPStatus.BAD_REQUEST.is_error
        assert HTTPStatus.INTERNAL_SERVER_ERROR.is_error
        assert not HTTPStatus.MOVED_PERMANENTLY.is_error


class TestHTTPDates:
    """Tests for HTTP-date formatting and parsing."""

    def test_format(self):
        dt = datetime(2024, 1, 15, 12, 30, 45, tzinfo=timezone.utc)
        assert format_http_date(dt) == "Mon, 15 Jan 2024 12:30:45 GMT"

    def test_parse_round_trip(self):
        assert parse_http_date("Mon, 15 Jan 2024 12:30:45 GMT") == datetime(
            2024, 1, 15, 12, 30, 45, tzinfo=timezone.utc
        ).timestamp()

    @pytest.mark.parametrize("value", ["", "yesterday", "Mon, 99 Foo 2024"])
    def test_parse_invalid(self, value):
        assert parse_http_date(value) is None
