"""Incremental decoder for server-sent-events chat completion streams.

The chat proxy replies with ``data: {...}`` lines in the OpenAI delta format,
terminated by ``data: [DONE]``. Chunks arrive in arbitrary byte boundaries,
so decoding keeps its progress in an explicit ``StreamState`` owned by the
caller (one per in-flight request).
"""

import codecs
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass, field

from backend.config import settings

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class StreamDecodeError(ValueError):
    """Raised when a stream can no longer be decoded (malformed line stuck in the buffer)."""


def _utf8_decoder() -> codecs.IncrementalDecoder:
    return codecs.getincrementaldecoder("utf-8")(errors="replace")


@dataclass
class StreamState:
    """Decode progress for a single streamed response."""

    text_buffer: str = ""
    assistant_so_far: str = ""
    done: bool = False
    max_rebuffer_attempts: int = settings.sse_max_rebuffer_attempts
    max_buffer_chars: int = settings.sse_max_buffer_chars
    _decoder: codecs.IncrementalDecoder = field(default_factory=_utf8_decoder, repr=False)
    _stuck_line: str | None = field(default=None, repr=False)
    _stuck_attempts: int = field(default=0, repr=False)


class _Incomplete(Exception):
    pass


def _extract_content(payload: str) -> str | None:
    """Return ``choices[0].delta.content`` from a JSON payload.

    Raises _Incomplete if the payload isn't valid JSON.
    """
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise _Incomplete from exc

    if not isinstance(parsed, dict):
        return None
    choices = parsed.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    return content if isinstance(content, str) else None


def _payload(line: str) -> str | None:
    """Return the data payload of a line, or None if the line carries none."""
    if line.endswith("\r"):
        line = line[:-1]
    if line.startswith(":") or line.strip() == "":
        return None
    if not line.startswith(DATA_PREFIX):
        return None
    return line[len(DATA_PREFIX) :].strip()


def _append(state: StreamState, content: str | None, snapshots: list[str]) -> None:
    if content:
        state.assistant_so_far += content
        snapshots.append(state.assistant_so_far)


def _note_stuck(state: StreamState, line: str) -> None:
    if line == state._stuck_line:
        state._stuck_attempts += 1
    else:
        state._stuck_line = line
        state._stuck_attempts = 0
    if state._stuck_attempts > state.max_rebuffer_attempts:
        raise StreamDecodeError(
            f"Line could not be parsed after {state.max_rebuffer_attempts} more chunks"
        )


def feed_chunk(state: StreamState, chunk: bytes) -> list[str]:
    """Consume one raw chunk and return the message snapshots it produced.

    Each snapshot is the whole assistant message so far, not a delta.
    Feeding a state that has already seen ``[DONE]`` is a no-op.

    Raises:
        StreamDecodeError: if a line keeps failing to parse or the buffer
            outgrows ``max_buffer_chars``.
    """
    snapshots: list[str] = []
    if state.done:
        return snapshots

    state.text_buffer += state._decoder.decode(chunk)

    while (newline_index := state.text_buffer.find("\n")) != -1:
        line = state.text_buffer[:newline_index]
        state.text_buffer = state.text_buffer[newline_index + 1 :]

        payload = _payload(line)
        if payload is None:
            continue
        if payload == DONE_SENTINEL:
            # Anything after the terminator is ignored
            state.done = True
            state.text_buffer = ""
            break

        try:
            content = _extract_content(payload)
        except _Incomplete:
            # Wait for more bytes before retrying this line
            state.text_buffer = line + "\n" + state.text_buffer
            _note_stuck(state, line)
            break

        state._stuck_line = None
        state._stuck_attempts = 0
        _append(state, content, snapshots)

    if not state.done and len(state.text_buffer) > state.max_buffer_chars:
        raise StreamDecodeError(
            f"Stream buffer exceeded {state.max_buffer_chars} characters without a complete line"
        )
    return snapshots


def finish(state: StreamState) -> list[str]:
    """Flush whatever is left once the upstream stream has closed.

    Lines that still fail to parse are dropped, since no more input is coming.
    """
    snapshots: list[str] = []
    state.text_buffer += state._decoder.decode(b"", final=True)
    if state.done or not state.text_buffer.strip():
        state.text_buffer = ""
        return snapshots

    remaining, state.text_buffer = state.text_buffer, ""
    for raw in remaining.split("\n"):
        payload = _payload(raw)
        if payload is None:
            continue
        if payload == DONE_SENTINEL:
            state.done = True
            break
        try:
            content = _extract_content(payload)
        except _Incomplete:
            logger.debug("Dropping unparseable trailing line: %.80s", raw)
            continue
        _append(state, content, snapshots)
    return snapshots


async def iter_snapshots(
    chunks: AsyncIterable[bytes],
    state: StreamState | None = None,
) -> AsyncIterator[str]:
    """Decode an async byte stream, yielding each message snapshot in order."""
    if state is None:
        state = StreamState()
    async for chunk in chunks:
        for snapshot in feed_chunk(state, chunk):
            yield snapshot
        if state.done:
            return
    for snapshot in finish(state):
        yield snapshot
