"""
Unit tests for the handler factory table and routing table.
"""

import pytest

from locserver.conf import parse_string
from locserver.handlers import (
    CrudHandler,
    EchoHandler,
    NotFoundHandler,
    SleepHandler,
    StaticHandler,
)
from locserver.handlers.base import RequestHandler
from locserver.http import text_response
from locserver.routing import (
    FALLBACK_ENTRY,
    HandlerFactoryTable,
    RegistryError,
    build_routing_table,
    default_factory_table,
    read_directives,
)
from locserver.routing.registry import RoutingTable, RouteEntry, unquote


def build(text: str, filesystem=None) -> RoutingTable:
    return build_routing_table(parse_string(text), default_factory_table(), filesystem)


class TestHandlerFactoryTable:
    """Tests for HandlerFactoryTable."""

    def test_builtins_registered(self):
        table = default_factory_table()
        assert table.names() == [
            "CrudHandler",
            "EchoHandler",
            "HealthRequestHandler",
            "MarkdownHandler",
            "NotFoundHandler",
            "SleepHandler",
            "StaticHandler",
        ]
        assert table.lookup("EchoHandler") is EchoHandler
        assert "StaticHandler" in table
        assert len(table) == 7

    def test_lookup_unknown(self):
        assert default_factory_table().lookup("NopeHandler") is None

    def test_register_keeps_first(self):
        table = HandlerFactoryTable()
        assert table.register("Echo", EchoHandler) is True
        assert table.register("Echo", NotFoundHandler) is False
        assert table.lookup("Echo") is EchoHandler

    def test_custom_handler_type(self):
        class TeapotHandler(RequestHandler):
            def handle(self, request):
                return text_response(418, "short and stout")

        table = default_factory_table()
        table.register("TeapotHandler", TeapotHandler)
        routes = build_routing_table(parse_string("location /tea TeapotHandler {}"), table)

        assert isinstance(routes.match("/tea").factory(), TeapotHandler)


class TestRoutingTableMatch:
    """Tests for longest-prefix matching."""

    CONFIG = """
        location / EchoHandler {}
        location /api EchoHandler {}
        location /api/v1 EchoHandler {}
    """

    @pytest.mark.parametrize("path,prefix", [
        ("/api/v1/books", "/api/v1"),
        ("/api/v1", "/api/v1"),
        ("/api/v2", "/api"),
        ("/apiary", "/api"),
        ("/index.html", "/"),
        ("/", "/"),
    ])
    def test_longest_prefix(self, path, prefix):
        assert build(self.CONFIG).match(path).prefix == prefix

    def test_sorted_longest_first(self):
        assert build(self.CONFIG).prefixes() == ["/api/v1", "/api", "/"]

    def test_order_independent(self):
        reordered = """
            location /api/v1 EchoHandler {}
            location / EchoHandler {}
            location /api EchoHandler {}
        """
        assert build(reordered).prefixes() == build(self.CONFIG).prefixes()

    def test_fallback_when_nothing_matches(self):
        table = build("location /api EchoHandler {}")
        entry = table.match("/other")

        assert entry is FALLBACK_ENTRY
        assert entry is table.fallback
        assert isinstance(entry.factory(), NotFoundHandler)

    def test_empty_config_has_only_fallback(self):
        table = build("port 8080;")
        assert len(table) == 0
        assert table.match("/") is FALLBACK_ENTRY

    def test_factory_returns_fresh_instances(self):
        entry = build("location /echo EchoHandler {}").match("/echo")
        first, second = entry.factory(), entry.factory()

        assert isinstance(first, EchoHandler)
        assert first is not second
        assert first.prefix == "/echo"

    def test_handler_type_tag(self):
        assert build("location /echo EchoHandler {}").match("/echo/x").handler_type == "EchoHandler"

    def test_builds_are_idempotent(self):
        first, second = build(self.CONFIG), build(self.CONFIG)
        assert [(e.prefix, e.handler_type) for e in first] == [
            (e.prefix, e.handler_type) for e in second
        ]

    def test_entries_are_immutable(self):
        table = build(self.CONFIG)
        assert isinstance(table.entries, tuple)
        with pytest.raises(AttributeError):
            table.entries[0].prefix = "/x"

    def test_repr(self):
        assert "/api → EchoHandler" in repr(build("location /api EchoHandler {}"))


class TestBuildValidation:
    """Tests for startup validation."""

    @pytest.mark.parametrize("text,message", [
        ("location /api EchoHandler;", "Missing block {} for handler definition at location /api"),
        ("location api EchoHandler {}", "Path must start with '/': api"),
        ("location /api/ EchoHandler {}", "Path must not end with '/': /api/"),
        ("location /a EchoHandler {}\nlocation /a EchoHandler {}", "Duplicate location: /a"),
        ("location /a NopeHandler {}", "Unknown handler type 'NopeHandler' at location /a"),
        ("location /s StaticHandler {}", "StaticHandler at /s missing/invalid root directive"),
        ("location /z SleepHandler { delay_ms soon; }", "SleepHandler at /z rejected its configuration"),
    ])
    def test_invalid_locations(self, text, message, caplog):
        with pytest.raises(RegistryError) as exc_info:
            build(text)

        assert exc_info.value.message.startswith(message)
        assert message in caplog.text

    def test_error_carries_prefix(self):
        with pytest.raises(RegistryError) as exc_info:
            build("location /a EchoHandler {}\nlocation /a EchoHandler {}")
        assert exc_info.value.prefix == "/a"

    def test_root_location_allowed(self):
        assert build("location / EchoHandler {}").prefixes() == ["/"]

    def test_non_location_statements_ignored(self):
        table = build("""
            port 8080;
            location /x;
            server { location /nested EchoHandler {} }
            location /echo EchoHandler {}
        """)
        assert table.prefixes() == ["/echo"]


class TestDirectives:
    """Tests for directive binding."""

    def test_required_directive_passed(self, tmp_path):
        table = build(f"location /static StaticHandler {{ root {tmp_path}; }}")
        handler = table.match("/static/a.css").factory()

        assert isinstance(handler, StaticHandler)
        assert handler.root == str(tmp_path)
        assert handler.prefix == "/static"

    def test_quoted_directive_value_unquoted(self):
        handler = build('location /s StaticHandler { root "/var/www/html"; }').match("/s").factory()
        assert handler.root == "/var/www/html"

    def test_optional_directive(self):
        handler = build("location /z SleepHandler { delay_ms 5; }").match("/z").factory()
        assert isinstance(handler, SleepHandler)
        assert handler.delay_ms == 5

    def test_optional_directive_default(self):
        handler = build("location /z SleepHandler {}").match("/z").factory()
        assert handler.delay_ms == 3000

    def test_filesystem_injected_and_data_path_created(self, memory_fs):
        table = build("location /api CrudHandler { data_path /data; }", memory_fs)
        handler = table.match("/api/books").factory()

        assert isinstance(handler, CrudHandler)
        assert handler.fs is memory_fs
        assert memory_fs.is_dir("/data")

    def test_read_directives_first_wins(self):
        block = parse_string("root /a; root /b; other x; three word value;")
        assert read_directives(block, ("root", "three")) == {"root": "/a"}

    @pytest.mark.parametrize("value,expected", [
        ('"a b"', "a b"),
        ("'a'", "a"),
        ("plain", "plain"),
        ('"mismatched\'', '"mismatched\''),
        ('"', '"'),
    ])
    def test_unquote(self, value, expected):
        assert unquote(value) == expected


class TestRouteEntry:
    """Tests for RouteEntry."""

    def test_frozen(self):
        entry = RouteEntry(prefix="/", factory=EchoHandler, handler_type="EchoHandler")
        with pytest.raises(AttributeError):
            entry.prefix = "/x"
