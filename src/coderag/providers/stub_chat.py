"""Chat provider that returns a canned reply without any network access."""
from __future__ import annotations

from .base import ChatProvider

DEFAULT_STUB_RESPONSE = "The chat model is not configured. Set CHAT_PROVIDER=openai to enable answers."


class StubChatProvider(ChatProvider):
    """Return a predictable completion; used when no chat backend is configured."""

    model_name = "stub"

    def __init__(self, message: str = DEFAULT_STUB_RESPONSE) -> None:
        self._message = message

    async def complete(self, system_prompt: str, user_message: str) -> str:
        return self._message
