import pytest

from launcher_search.backend.framer import BatchFramer, LineFramer, parse_count


class TestLineFramer:
    def test_emits_complete_lines(self):
        framer = LineFramer()
        frames = framer.feed(b'{"a":1}\n{"b":2}\n')
        assert [f.lines for f in frames] == [('{"a":1}',), ('{"b":2}',)]
        assert framer.pending == 0

    def test_buffers_partial_line_until_terminated(self):
        framer = LineFramer()
        assert framer.feed(b'{"Upd') == []
        assert framer.pending == 5
        frames = framer.feed(b'ate":[]}\n')
        assert [f.lines for f in frames] == [('{"Update":[]}',)]

    def test_reassembles_path_split_across_reads(self):
        framer = LineFramer()
        assert framer.feed(b"/home/a") == []
        frames = framer.feed(b"lice/file.txt\n")
        assert len(frames) == 1
        assert frames[0].lines == ("/home/alice/file.txt",)

    def test_multibyte_character_split_across_reads(self):
        data = "/home/alice/café.txt\n".encode("utf-8")
        cut = data.index(b"\xc3") + 1
        framer = LineFramer()
        assert framer.feed(data[:cut]) == []
        frames = framer.feed(data[cut:])
        assert frames[0].lines == ("/home/alice/café.txt",)

    def test_blank_lines_are_not_records(self):
        framer = LineFramer()
        frames = framer.feed(b"\n\n  \none\n")
        assert [f.lines for f in frames] == [("one",)]

    def test_empty_read_is_end_of_stream(self):
        framer = LineFramer()
        framer.feed(b"unterminated")
        assert framer.feed(b"") == []
        assert framer.at_eof
        assert framer.pending == 0

    def test_partial_buffer_is_discarded_at_eof(self):
        framer = LineFramer()
        framer.feed(b'{"Update":[]}')
        framer.feed_eof()
        assert framer.pending == 0
        with pytest.raises(ValueError):
            framer.feed(b"\n")

    def test_reset_after_eof(self):
        framer = LineFramer()
        framer.feed_eof()
        framer.reset()
        assert [f.lines for f in framer.feed(b"x\n")] == [("x",)]


class TestBatchFramer:
    def test_batch_with_count_and_paths(self):
        framer = BatchFramer()
        frames = framer.feed(b"2\n/a/b.txt\n/c/d.png\n")
        assert [f.lines for f in frames] == [("2", "/a/b.txt", "/c/d.png")]
        assert not framer.has_open_batch

    def test_batch_stays_open_until_count_is_met(self):
        framer = BatchFramer()
        assert framer.feed(b"3\n") == []
        assert framer.has_open_batch
        assert framer.feed(b"/a\n") == []
        assert framer.feed(b"/b\n") == []
        frames = framer.feed(b"/c\n")
        assert [f.lines for f in frames] == [("3", "/a", "/b", "/c")]
        assert not framer.has_open_batch

    def test_wrong_count_ends_on_flush(self):
        framer = BatchFramer()
        assert framer.feed(b"5\n/a/b.txt\n/c/d.png\n") == []
        assert [f.lines for f in framer.flush()] == [("5", "/a/b.txt", "/c/d.png")]
        assert framer.flush() == []

    def test_next_count_line_closes_short_batch(self):
        framer = BatchFramer()
        frames = framer.feed(b"5\n/old/a\n1\n/new/b\n")
        assert [f.lines for f in frames] == [("5", "/old/a"), ("1", "/new/b")]

    def test_waits_while_a_line_is_incomplete(self):
        framer = BatchFramer()
        assert framer.feed(b"1\n/home/a") == []
        frames = framer.feed(b"lice/file.txt\n")
        assert [f.lines for f in frames] == [("1", "/home/alice/file.txt")]

    def test_satisfied_count_splits_coalesced_batches(self):
        framer = BatchFramer()
        frames = framer.feed(b"1\n/old/result\n2\n/new/a\n/new/b\n")
        assert [f.lines for f in frames] == [
            ("1", "/old/result"),
            ("2", "/new/a", "/new/b"),
        ]

    def test_zero_count_batch(self):
        framer = BatchFramer()
        frames = framer.feed(b"0\n")
        assert [f.lines for f in frames] == [("0",)]

    def test_paths_without_count_are_dropped(self):
        framer = BatchFramer()
        assert framer.feed(b"/stray/a\n/stray/b\n") == []
        assert not framer.has_open_batch
        assert [f.lines for f in framer.feed(b"1\n/c\n")] == [("1", "/c")]

    def test_open_batch_emitted_at_eof_without_partial_line(self):
        framer = BatchFramer()
        framer.feed(b"3\n/a\n/b")
        frames = framer.feed(b"")
        assert [f.lines for f in frames] == [("3", "/a")]
        assert framer.pending == 0
        framer.reset()
        assert [f.lines for f in framer.feed(b"1\n/c\n")] == [("1", "/c")]


@pytest.mark.parametrize(
    "line, expected",
    [("2", 2), (" 10 ", 10), ("0", 0), ("-1", None), ("/a/b", None), ("", None)],
)
def test_parse_count(line, expected):
    assert parse_count(line) == expected
