"""Tests for the incremental server-sent-events decoder."""

import json

import pytest

from backend.chat.sse import (
    StreamDecodeError,
    StreamState,
    feed_chunk,
    finish,
    iter_snapshots,
)


def _data(content: str) -> str:
    return "data: " + json.dumps({"choices": [{"delta": {"content": content}}]}, ensure_ascii=False) + "\n"


async def _aiter(chunks: list[bytes]):
    for chunk in chunks:
        yield chunk


class TestFeedChunk:
    def test_payload_split_across_chunks(self) -> None:
        state = StreamState()
        first = b'data: {"choices":[{"delta":{"content":"Hel'
        second = b'lo"}}]}\n\ndata: [DONE]\n'

        assert feed_chunk(state, first) == []
        assert feed_chunk(state, second) == ["Hello"]
        assert state.done
        assert state.assistant_so_far == "Hello"

    def test_snapshots_are_cumulative(self) -> None:
        state = StreamState()
        chunk = (_data("Hi") + _data(" there")).encode()
        assert feed_chunk(state, chunk) == ["Hi", "Hi there"]

    def test_comment_and_blank_lines_ignored(self) -> None:
        state = StreamState()
        assert feed_chunk(state, b":keep-alive\n\n") == []
        assert state.assistant_so_far == ""
        assert state.text_buffer == ""

    def test_crlf_lines(self) -> None:
        state = StreamState()
        chunk = _data("a").replace("\n", "\r\n").encode() + b"data: [DONE]\r\n"
        assert feed_chunk(state, chunk) == ["a"]
        assert state.done

    def test_non_data_lines_skipped(self) -> None:
        state = StreamState()
        chunk = ("event: message\nid: 4\nretry: 100\n" + _data("x")).encode()
        assert feed_chunk(state, chunk) == ["x"]

    def test_deltas_without_content_emit_nothing(self) -> None:
        state = StreamState()
        chunk = (
            'data: {"choices":[{"delta":{"role":"assistant"}}]}\n'
            'data: {"choices":[]}\n'
            "data: 42\n"
            + _data("")
        ).encode()
        assert feed_chunk(state, chunk) == []
        assert state.assistant_so_far == ""

    def test_multibyte_split_across_chunks(self) -> None:
        state = StreamState()
        raw = _data("café ✓").encode()
        cut = raw.index("✓".encode()) + 1  # inside the 3-byte sequence
        assert feed_chunk(state, raw[:cut]) == []
        assert feed_chunk(state, raw[cut:]) == ["café ✓"]

    def test_done_stops_processing_rest_of_chunk(self) -> None:
        state = StreamState()
        chunk = (_data("a") + "data: [DONE]\n" + _data("b")).encode()
        assert feed_chunk(state, chunk) == ["a"]
        assert state.done
        assert feed_chunk(state, _data("c").encode()) == []
        assert state.assistant_so_far == "a"

    def test_malformed_line_is_rebuffered(self) -> None:
        state = StreamState()
        chunk = ("data: {broken\n" + _data("later")).encode()
        assert feed_chunk(state, chunk) == []
        assert state.text_buffer.startswith("data: {broken\n")
        assert state.text_buffer.endswith(_data("later"))

    def test_rebuffer_cap_is_fatal(self) -> None:
        state = StreamState(max_rebuffer_attempts=2)
        feed_chunk(state, b"data: {broken\n")
        feed_chunk(state, b":ping\n")
        feed_chunk(state, b":ping\n")
        with pytest.raises(StreamDecodeError):
            feed_chunk(state, b":ping\n")

    def test_trailing_bytes_after_done_do_not_count_toward_cap(self) -> None:
        state = StreamState(max_buffer_chars=32)
        chunk = (_data("ok") + "data: [DONE]\n").encode() + b"x" * 64
        assert feed_chunk(state, chunk) == ["ok"]
        assert state.done
        assert state.text_buffer == ""

    def test_buffer_size_cap_is_fatal(self) -> None:
        state = StreamState(max_buffer_chars=16)
        with pytest.raises(StreamDecodeError):
            feed_chunk(state, b"data: " + b"x" * 32)


class TestFinish:
    def test_flushes_trailing_line_without_newline(self) -> None:
        state = StreamState()
        assert feed_chunk(state, _data("one").encode() + _data("two").rstrip("\n").encode()) == ["one"]
        assert finish(state) == ["onetwo"]
        assert state.text_buffer == ""

    def test_drops_malformed_lines_and_keeps_good_ones(self) -> None:
        state = StreamState()
        feed_chunk(state, ("data: {broken\n" + _data("ok")).encode())
        assert finish(state) == ["ok"]
        assert state.assistant_so_far == "ok"

    def test_nothing_left(self) -> None:
        state = StreamState()
        feed_chunk(state, _data("done").encode())
        assert finish(state) == []


class TestIterSnapshots:
    @pytest.mark.asyncio
    async def test_final_snapshot_is_concatenation_of_deltas(self) -> None:
        deltas = ["The ", "mito", "chondria ", "is the ", "powerhouse."]
        body = "".join(_data(d) for d in deltas).encode() + b"data: [DONE]\n"
        chunks = [body[i : i + 7] for i in range(0, len(body), 7)]

        snapshots = [s async for s in iter_snapshots(_aiter(chunks))]
        assert snapshots[-1] == "".join(deltas)
        assert len(snapshots) == len(deltas)
        assert all(len(a) < len(b) for a, b in zip(snapshots, snapshots[1:]))

    @pytest.mark.asyncio
    async def test_stops_at_done(self) -> None:
        chunks = [_data("a").encode(), b"data: [DONE]\n", _data("b").encode()]
        assert [s async for s in iter_snapshots(_aiter(chunks))] == ["a"]

    @pytest.mark.asyncio
    async def test_stream_closed_without_done(self) -> None:
        chunks = [_data("a").encode(), _data("b").rstrip("\n").encode()]
        assert [s async for s in iter_snapshots(_aiter(chunks))] == ["a", "ab"]
