"""API route relaying the study assistant's streamed reply."""

import json
import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, Header
from fastapi.responses import StreamingResponse

from backend.api.schemas import ChatRequest
from backend.chat.client import ChatClient, ChatError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])


def get_chat_client(authorization: str | None = Header(default=None)) -> ChatClient:
    """Build a chat client that authenticates as the caller.

    Without a bearer token the client has no credential, so the relay answers
    with the log-in error instead of using the server-side token.
    """
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[len("bearer ") :].strip()
    return ChatClient(access_token=token or "")


def _event(data: str, event: str | None = None) -> str:
    prefix = f"event: {event}\n" if event else ""
    return f"{prefix}data: {data}\n\n"


async def _relay(client: ChatClient, request: ChatRequest) -> AsyncIterator[str]:
    messages = [m.model_dump() for m in request.messages]
    try:
        async for snapshot in client.stream_reply(messages, mode=request.mode):
            yield _event(json.dumps({"content": snapshot}))
    except ChatError as exc:
        logger.warning("Chat relay failed: %s", exc)
        yield _event(json.dumps({"error": str(exc)}), event="error")
        return
    yield _event("[DONE]")


@router.post("")
async def chat(
    request: ChatRequest,
    client: ChatClient = Depends(get_chat_client),
) -> StreamingResponse:
    """Stream assistant message snapshots as server-sent events.

    Each ``data:`` event carries the whole message so far. The stream ends
    with ``data: [DONE]``, or a single ``error`` event on failure.
    """
    return StreamingResponse(_relay(client, request), media_type="text/event-stream")
