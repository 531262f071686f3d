"""Chat history for the study assistant."""

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field

from backend.chat.client import ChatClient, ChatMode

logger = logging.getLogger(__name__)


@dataclass
class Message:
    role: str  # user, assistant
    content: str

    def as_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class Conversation:
    """A running conversation with the study assistant."""

    client: ChatClient
    mode: ChatMode = ChatMode.ANSWER
    messages: list[Message] = field(default_factory=list)

    async def send(self, text: str) -> AsyncIterator[str]:
        """Send a user message and stream the assistant reply.

        The first snapshot adds an assistant message; later snapshots replace
        its content. If the request fails, the user message is kept and the
        error propagates.
        """
        text = text.strip()
        if not text:
            raise ValueError("Message must not be empty")

        self.messages.append(Message(role="user", content=text))
        history = [m.as_dict() for m in self.messages]
        reply: Message | None = None

        async for snapshot in self.client.stream_reply(history, mode=self.mode):
            if reply is None:
                reply = Message(role="assistant", content=snapshot)
                self.messages.append(reply)
            else:
                reply.content = snapshot
            yield snapshot

        if reply is None:
            logger.info("Assistant returned an empty reply")

    def clear(self) -> None:
        self.messages.clear()
