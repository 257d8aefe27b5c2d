import json

import pytest

from launcher_search.backend.codec import DelimitedTextCodec, JsonLineCodec, get_codec
from launcher_search.backend.errors import ProtocolError, UnsupportedRequestError
from launcher_search.backend.messages import (
    AckResponse,
    ActivateRequest,
    ExitRequest,
    Frame,
    SearchRequest,
    UpdateResponse,
)


def frame(*lines: str) -> Frame:
    return Frame(tuple(lines))


class TestJsonLineCodec:
    codec = JsonLineCodec()

    def test_encode_search(self):
        assert self.codec.encode(SearchRequest("foo")) == b'{"Search":"foo"}\n'

    def test_encode_activate(self):
        assert self.codec.encode(ActivateRequest(3)) == b'{"Activate":3}\n'

    def test_exit_is_a_bare_string(self):
        assert self.codec.encode(ExitRequest()) == b'"Exit"\n'
        assert self.codec.exit_marker == b'"Exit"\n'

    def test_encode_search_keeps_unicode_and_escapes_newlines(self):
        encoded = self.codec.encode(SearchRequest("café\nbar"))
        assert encoded.endswith(b"\n")
        assert encoded.count(b"\n") == 1
        assert json.loads(encoded) == {"Search": "café\nbar"}

    def test_decode_update_preserves_order_and_length(self):
        items = [
            {"id": 7, "name": "b", "description": "/b", "icon": {"Mime": "image/png"}},
            {"id": 2, "name": "a", "description": "/a", "icon": {"Name": "folder"}},
            {"id": 5, "name": "c", "description": "/c"},
        ]
        response = self.codec.decode(frame(json.dumps({"Update": items})))
        assert isinstance(response, UpdateResponse)
        assert [e.id for e in response.entries] == [7, 2, 5]
        assert [e.name for e in response.entries] == ["b", "a", "c"]
        assert response.entries[0].mime == "image/png"
        assert response.entries[1].mime is None
        assert response.entries[2].icon is None

    def test_decode_empty_update(self):
        response = self.codec.decode(frame('{"Update":[]}'))
        assert response == UpdateResponse(entries=[])

    def test_decode_skips_malformed_items(self):
        line = json.dumps({"Update": [{"name": "no id"}, "junk", {"id": 1, "name": "ok"}]})
        response = self.codec.decode(frame(line))
        assert [e.id for e in response.entries] == [1]
        assert response.entries[0].description == ""

    def test_close_is_an_ack(self):
        assert self.codec.decode(frame('"Close"')) == AckResponse()

    @pytest.mark.parametrize("line", ["not json", '{"Fill":"x"}', '"Clear"', "[1,2]", '{"Update":3}'])
    def test_other_lines_are_non_fatal_protocol_errors(self, line):
        with pytest.raises(ProtocolError) as excinfo:
            self.codec.decode(frame(line))
        assert not excinfo.value.fatal


class TestDelimitedTextCodec:
    codec = DelimitedTextCodec()

    def test_encode_search(self):
        assert self.codec.encode(SearchRequest("foo")) == b"q:foo\n"

    def test_encode_search_flattens_newlines(self):
        assert self.codec.encode(SearchRequest("a\nb")) == b"q:a b\n"

    def test_exit_has_no_newline(self):
        assert self.codec.encode(ExitRequest()) == b"c:Exit"

    def test_activate_is_unsupported(self):
        assert not self.codec.supports_activate
        with pytest.raises(UnsupportedRequestError) as excinfo:
            self.codec.encode(ActivateRequest(0))
        assert excinfo.value.fatal

    def test_decode_assigns_positional_ids(self):
        response = self.codec.decode(frame("2", "/a/b.txt", "/c/d.png"))
        assert [(e.id, e.name, e.description) for e in response.entries] == [
            (0, "b.txt", "/a/b.txt"),
            (1, "d.png", "/c/d.png"),
        ]

    def test_declared_count_is_not_enforced(self):
        response = self.codec.decode(frame("5", "/a/b.txt", "/c/d.png"))
        assert [e.id for e in response.entries] == [0, 1]

    def test_blank_lines_are_dropped(self):
        response = self.codec.decode(frame("", "1", "  ", "/a/b.txt"))
        assert [e.description for e in response.entries] == ["/a/b.txt"]

    @pytest.mark.parametrize("lines", [(), ("0",), ("3",)])
    def test_no_paths_is_an_empty_update(self, lines):
        assert self.codec.decode(frame(*lines)) == UpdateResponse(entries=[])

    def test_directory_path_keeps_full_name(self):
        response = self.codec.decode(frame("1", "/"))
        assert response.entries[0].name == "/"


def test_get_codec():
    assert isinstance(get_codec("json"), JsonLineCodec)
    assert isinstance(get_codec("text"), DelimitedTextCodec)
    with pytest.raises(ValueError, match="Unsupported protocol"):
        get_codec("xml")
