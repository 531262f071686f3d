"""Streaming client for the hosted study-assistant chat proxy."""

import logging
from collections.abc import AsyncIterator, Sequence
from enum import Enum

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from backend.chat.sse import StreamDecodeError, StreamState, iter_snapshots
from backend.config import settings

logger = logging.getLogger(__name__)


class ChatMode(str, Enum):
    ANSWER = "answer"
    SUMMARIZE = "summarize"
    PRACTICE = "practice"


class ChatError(Exception):
    """Base class for chat assistant failures."""


class ChatAuthError(ChatError):
    """No access token is available for the chat proxy."""


class ChatRateLimitError(ChatError):
    """The proxy answered 429."""


class ChatCreditsError(ChatError):
    """The proxy answered 402 (AI credits exhausted)."""


class ChatRequestError(ChatError):
    """The proxy rejected the request with another non-2xx status."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class ChatStreamError(ChatError):
    """The response stream broke off or could not be decoded."""


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return "Failed to get response"
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return "Failed to get response"


def _raise_for_status(response: httpx.Response) -> None:
    if response.status_code == 429:
        raise ChatRateLimitError("Rate limit exceeded. Please wait a moment.")
    if response.status_code == 402:
        raise ChatCreditsError("AI credits exhausted. Please add credits.")
    if response.is_error:
        raise ChatRequestError(_error_message(response), response.status_code)


class ChatClient:
    """Sends a conversation to the chat proxy and streams the reply back."""

    # Backoff between connection attempts
    retry_wait = wait_exponential(multiplier=1, min=2, max=30)

    def __init__(
        self,
        url: str | None = None,
        access_token: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url or settings.chat_url
        self.access_token = settings.chat_access_token if access_token is None else access_token
        self.timeout = settings.chat_timeout_seconds if timeout is None else timeout
        self.max_retries = settings.chat_max_retries if max_retries is None else max_retries
        self._transport = transport

    async def _open(self, client: httpx.AsyncClient, request: httpx.Request) -> httpx.Response:
        """Send the request, retrying only while the connection can't be established."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, self.max_retries)),
            wait=self.retry_wait,
            retry=retry_if_exception_type((httpx.ConnectError, httpx.ConnectTimeout)),
            before_sleep=before_sleep_log(logger, logging.INFO),
            reraise=True,
        )
        return await retrying(client.send, request, stream=True)

    async def stream_reply(
        self,
        messages: Sequence[dict[str, str]],
        mode: ChatMode | str = ChatMode.ANSWER,
    ) -> AsyncIterator[str]:
        """Stream the assistant's reply as growing message snapshots.

        Args:
            messages: Conversation so far as ``{"role", "content"}`` dicts.
            mode: Assistant mode forwarded to the proxy.

        Yields:
            The full assistant message decoded so far, once per content delta.

        Raises:
            ChatAuthError: no access token configured.
            ChatRateLimitError, ChatCreditsError, ChatRequestError: the proxy
                rejected the request.
            ChatStreamError: the connection or the stream failed.
        """
        if not self.access_token:
            raise ChatAuthError("Please log in to use the AI assistant")
        mode = ChatMode(mode)

        state = StreamState()
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            request = client.build_request(
                "POST",
                self.url,
                json={"messages": list(messages), "mode": mode.value},
                headers={"Authorization": f"Bearer {self.access_token}"},
            )
            try:
                response = await self._open(client, request)
            except httpx.TransportError as exc:
                raise ChatStreamError(f"Failed to connect to AI assistant: {exc}") from exc

            try:
                if response.is_error:
                    await response.aread()
                    _raise_for_status(response)

                async for snapshot in iter_snapshots(response.aiter_bytes(), state):
                    yield snapshot
            except (httpx.TransportError, StreamDecodeError) as exc:
                logger.warning("Chat stream failed: %s", exc)
                raise ChatStreamError(f"Chat stream failed: {exc}") from exc
            finally:
                await response.aclose()

        logger.debug("Chat reply complete: %d chars", len(state.assistant_so_far))
