"""
Unit tests for CrudHandler, run against an in-memory filesystem.
"""

import json

import pytest

from locserver.handlers import CrudHandler


JSON = {"Content-Type": "application/json"}


@pytest.fixture
def crud(memory_fs):
    return CrudHandler("/data", prefix="/api", filesystem=memory_fs)


def post(crud, make_request, entity="books", body=b'{"title": "Dune"}', headers=JSON):
    return crud.handle(make_request("POST", f"/api/{entity}", headers, body))


class TestCreate:
    """POST /api/<entity>."""

    def test_first_id_is_one(self, crud, make_request, memory_fs):
        response = post(crud, make_request)

        assert response.status == 201
        assert json.loads(response.body) == {"id": 1}
        assert response.get_header("Location") == "/api/books/1"
        assert memory_fs.read("/data/books/1") == b'{"title": "Dune"}'

    def test_ids_increase(self, crud, make_request):
        ids = [json.loads(post(crud, make_request).body)["id"] for _ in range(3)]
        assert ids == [1, 2, 3]

    def test_next_id_skips_non_numeric_and_gaps(self, crud, make_request, memory_fs):
        memory_fs.write("/data/books/7", b"{}")
        memory_fs.write("/data/books/draft", b"{}")
        memory_fs.write("/data/books/-4", b"{}")

        assert json.loads(post(crud, make_request).body) == {"id": 8}

    def test_deleted_newest_id_is_reused(self, crud, make_request):
        post(crud, make_request)
        post(crud, make_request)
        crud.handle(make_request("DELETE", "/api/books/2"))

        assert json.loads(post(crud, make_request).body) == {"id": 2}

    def test_entities_are_independent(self, crud, make_request):
        post(crud, make_request, entity="books")
        assert json.loads(post(crud, make_request, entity="authors").body) == {"id": 1}

    def test_content_type_with_charset(self, crud, make_request):
        response = post(crud, make_request, headers={"Content-Type": "application/json; charset=utf-8"})
        assert response.status == 201

    def test_missing_content_type_accepted(self, crud, make_request):
        assert post(crud, make_request, headers={}).status == 201

    def test_location_is_percent_encoded(self, crud, make_request, memory_fs):
        response = post(crud, make_request, entity="%E2%82%AC")

        assert response.status == 201
        assert response.get_header("Location") == "/api/%E2%82%AC/1"
        assert memory_fs.exists("/data/€/1")
        assert b"Location: /api/%E2%82%AC/1\r\n" in response.to_bytes()

    @pytest.mark.parametrize("body,headers,status,message", [
        (b"", JSON, 400, "Request body cannot be empty"),
        (b"{}", {"Content-Type": "text/plain"}, 415, "Content-Type must be application/json"),
        (b"{not json", JSON, 400, "Invalid JSON"),
        (b"\xff\xfe", JSON, 400, "Invalid JSON"),
    ])
    def test_invalid_bodies(self, crud, make_request, memory_fs, body, headers, status, message):
        response = post(crud, make_request, body=body, headers=headers)

        assert response.status == status
        assert response.get_header("Content-Type") == "application/json"
        assert json.loads(response.body) == {"error": message}
        assert memory_fs.list("/data/books") == []


class TestRead:
    """GET /api/<entity>[/<id>]."""

    def test_read_stored_bytes(self, crud, make_request):
        post(crud, make_request, body=b'{"title":  "Dune"}')
        response = crud.handle(make_request("GET", "/api/books/1"))

        assert response.status == 200
        assert response.get_header("Content-Type") == "application/json"
        assert response.body == b'{"title":  "Dune"}'

    def test_read_missing(self, crud, make_request):
        response = crud.handle(make_request("GET", "/api/books/9"))

        assert response.status == 404
        assert json.loads(response.body) == {"error": "Entity not found"}

    def test_list_sorted(self, crud, make_request, memory_fs):
        for name in ("2", "10", "1"):
            memory_fs.write(f"/data/books/{name}", b"{}")

        response = crud.handle(make_request("GET", "/api/books"))

        assert response.status == 200
        assert json.loads(response.body) == ["1", "10", "2"]

    def test_list_unknown_entity_is_empty(self, crud, make_request):
        response = crud.handle(make_request("GET", "/api/nothing/"))

        assert response.status == 200
        assert json.loads(response.body) == []


class TestReplace:
    """PUT /api/<entity>/<id>."""

    def test_put_existing(self, crud, make_request, memory_fs):
        post(crud, make_request)
        response = crud.handle(make_request("PUT", "/api/books/1", JSON, b'{"title": "Emma"}'))

        assert response.status == 204
        assert response.body == b""
        assert memory_fs.read("/data/books/1") == b'{"title": "Emma"}'

    def test_put_creates(self, crud, make_request, memory_fs):
        response = crud.handle(make_request("PUT", "/api/books/classic", JSON, b"{}"))

        assert response.status == 201
        assert response.get_header("Location") == "/api/books/classic"
        assert memory_fs.exists("/data/books/classic")

    def test_put_location_cannot_split_headers(self, crud, make_request):
        target = "/api/books/x%0D%0ASet-Cookie:%20evil=1"
        response = crud.handle(make_request("PUT", target, JSON, b"{}"))

        assert response.status == 201
        assert response.get_header("Location") == "/api/books/x%0D%0ASet-Cookie%3A%20evil%3D1"
        assert b"\r\nSet-Cookie" not in response.to_bytes()

    def test_put_requires_id(self, crud, make_request):
        response = crud.handle(make_request("PUT", "/api/books", JSON, b"{}"))

        assert response.status == 400
        assert json.loads(response.body) == {"error": "PUT requests require an ID"}

    def test_put_validates_body(self, crud, make_request):
        response = crud.handle(make_request("PUT", "/api/books/1", JSON, b"nope"))
        assert response.status == 400


class TestDelete:
    """DELETE /api/<entity>/<id>."""

    def test_delete(self, crud, make_request, memory_fs):
        post(crud, make_request)
        response = crud.handle(make_request("DELETE", "/api/books/1"))

        assert response.status == 204
        assert not memory_fs.exists("/data/books/1")
        assert crud.handle(make_request("GET", "/api/books/1")).status == 404

    def test_delete_missing(self, crud, make_request):
        assert crud.handle(make_request("DELETE", "/api/books/1")).status == 404

    def test_delete_requires_id(self, crud, make_request):
        response = crud.handle(make_request("DELETE", "/api/books"))

        assert response.status == 400
        assert json.loads(response.body) == {"error": "DELETE requests require an ID"}


class TestPaths:
    """Path validation and method dispatch."""

    @pytest.mark.parametrize("path,expected", [
        ("/books", ("books", None)),
        ("/books/", ("books", None)),
        ("/books/3", ("books", "3")),
        ("books/3", ("books", "3")),
        ("/books/3/x", None),
        ("/", None),
        ("", None),
        ("/../3", None),
        ("/books/..", None),
        ("/books/.", None),
    ])
    def test_parse_path(self, path, expected):
        assert CrudHandler.parse_path(path) == expected

    @pytest.mark.parametrize("target", ["/api", "/api/", "/api/books/1/extra"])
    def test_invalid_path(self, crud, make_request, target):
        response = crud.handle(make_request("GET", target))

        assert response.status == 400
        assert json.loads(response.body) == {"error": "Invalid request path"}

    @pytest.mark.parametrize("method", ["PATCH", "HEAD", "OPTIONS"])
    def test_method_not_allowed(self, crud, make_request, method):
        response = crud.handle(make_request(method, "/api/books/1"))

        assert response.status == 405
        assert json.loads(response.body) == {"error": "Method not allowed"}

    def test_root_prefix_location(self, memory_fs, make_request):
        handler = CrudHandler("/data", prefix="/", filesystem=memory_fs)
        response = handler.handle(make_request("POST", "/books", JSON, b"{}"))

        assert response.get_header("Location") == "/books/1"

    def test_constructor_creates_data_path(self, memory_fs):
        CrudHandler("/srv/store/", filesystem=memory_fs)
        assert memory_fs.is_dir("/srv/store")
        assert memory_fs.is_dir("/srv")

    def test_real_filesystem(self, tmp_path, make_request):
        handler = CrudHandler(str(tmp_path / "data"))
        response = handler.handle(make_request("POST", "/api/books", JSON, b'{"a": 1}'))

        assert response.status == 201
        assert (tmp_path / "data" / "books" / "1").read_bytes() == b'{"a": 1}'
