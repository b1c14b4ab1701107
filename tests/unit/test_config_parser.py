"""
Unit tests for the config parser, serializer and port lookup.
"""

import pytest

from locserver.conf import (
    ConfigBlock,
    ConfigParseError,
    Statement,
    get_port,
    parse_file,
    parse_string,
)
from locserver.conf.lexer import TokenType


SAMPLE = """
# Sample site
port 8080;

location /echo EchoHandler {}

location /static StaticHandler {
  root "/var/www/html";   # quoted
}

location /api CrudHandler {
  data_path ./data;
}
"""


class TestConfigParser:
    """Tests for parse_string() tree building."""

    def test_statements_and_blocks(self):
        config = parse_string(SAMPLE)

        assert [s.tokens for s in config.statements] == [
            ["port", "8080"],
            ["location", "/echo", "EchoHandler"],
            ["location", "/static", "StaticHandler"],
            ["location", "/api", "CrudHandler"],
        ]
        assert config.statements[0].child_block is None
        assert config.statements[1].child_block == ConfigBlock()
        assert config.statements[2].child_block.statements == [
            Statement(tokens=["root", '"/var/www/html"'])
        ]

    def test_quoting_preserved(self):
        config = parse_string('root "/var/www/html";')
        assert config.statements[0].tokens == ["root", '"/var/www/html"']

    def test_embedded_semicolon_not_split(self):
        config = parse_string('msg "a;b";')
        assert len(config.statements) == 1
        assert config.statements[0].tokens == ["msg", '"a;b"']

    def test_nested_blocks(self):
        config = parse_string("a { b { c; } d; }")
        a = config.statements[0]
        assert a.child_block.statements[0].tokens == ["b"]
        assert a.child_block.statements[0].child_block.statements[0].tokens == ["c"]
        assert a.child_block.statements[1].tokens == ["d"]

    def test_consecutive_quoted_tokens_stay_in_one_statement(self):
        config = parse_string("a 'b' \"c\";")
        assert config.statements[0].tokens == ["a", "'b'", '"c"']

    @pytest.mark.parametrize("text", ["", "   \n\t", "# only a comment", "# one\n# two\n"])
    def test_empty_configs(self, text):
        assert parse_string(text).statements == []

    def test_comment_at_end_of_file(self):
        config = parse_string("port 80; # done")
        assert config.statements[0].tokens == ["port", "80"]

    @pytest.mark.parametrize("text", [
        "port 80",            # missing terminator
        "port 80; }",         # unbalanced close
        "a { b;",             # unclosed block
        "a { b; }}",          # extra close
        ";",                  # empty statement
        "{ }",                # block without words
        "a { b }",            # statement inside block without ;
        "a;;",                # double terminator
        'root "/var/www;',    # unterminated quote
        '"abc"def;',          # junk after closing quote
    ])
    def test_malformed(self, text):
        with pytest.raises(ConfigParseError):
            parse_string(text)

    def test_error_carries_tokens(self):
        with pytest.raises(ConfigParseError) as exc_info:
            parse_string("a;;")

        error = exc_info.value
        assert error.last_token is TokenType.STATEMENT_END
        assert error.token.type is TokenType.STATEMENT_END
        assert error.message == (
            "Config parse error: bad transition from STATEMENT_END to STATEMENT_END"
        )

    def test_parse_errors_are_logged(self, caplog):
        with pytest.raises(ConfigParseError):
            parse_string("a { b;")
        assert "bad transition" in caplog.text


class TestSerialization:
    """Tests for ConfigBlock.to_string()."""

    def test_format(self):
        config = parse_string("a b; c { d; e {} }")
        assert config.to_string() == "a b;\nc {\n  d;\n  e {\n  }\n}\n"

    def test_round_trip(self):
        config = parse_string(SAMPLE)
        assert parse_string(config.to_string()) == config

    def test_round_trip_is_stable(self):
        text = parse_string(SAMPLE).to_string()
        assert parse_string(text).to_string() == text

    def test_str(self):
        assert str(parse_string("port 80;")) == "port 80;\n"


class TestFind:
    """Tests for ConfigBlock.find()."""

    def test_find_by_leading_words(self):
        config = parse_string(SAMPLE)
        assert len(config.find("location")) == 3
        assert config.find("location", "/api")[0].tokens[2] == "CrudHandler"
        assert config.find("missing") == []


class TestParseFile:
    """Tests for parse_file()."""

    def test_reads_file(self, tmp_path):
        path = tmp_path / "site.conf"
        path.write_text(SAMPLE)
        assert get_port(parse_file(path)) == 8080

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigParseError) as exc_info:
            parse_file(tmp_path / "nope.conf")
        assert exc_info.value.message.startswith("Failed to open config file")


class TestGetPort:
    """Tests for get_port()."""

    def test_port(self):
        assert get_port(parse_string("port 9000;")) == 9000

    def test_first_port_wins(self):
        assert get_port(parse_string("port 1; port 2;")) == 1

    def test_absent(self):
        assert get_port(parse_string("location / EchoHandler {}")) == 0

    def test_nested_port_ignored(self):
        assert get_port(parse_string("server { port 80; }")) == 0

    def test_three_word_port_ignored(self):
        assert get_port(parse_string("port 80 tcp; port 81;")) == 81

    def test_non_integer(self):
        with pytest.raises(ValueError):
            get_port(parse_string("port http;"))

    def test_out_of_range_returned_as_is(self):
        assert get_port(parse_string("port 70000;")) == 70000
