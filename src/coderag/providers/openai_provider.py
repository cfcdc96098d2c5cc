"""OpenAI-backed embedding and chat completion providers."""
from __future__ import annotations

import logging
from typing import List, Optional

from openai import AsyncOpenAI

from coderag.errors import ChatCompletionFailure

from .base import ChatProvider, EmbeddingProvider

LOGGER = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "text-embedding-ada-002"
DEFAULT_CHAT_MODEL = "gpt-3.5-turbo"


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """Embed text with the OpenAI embeddings endpoint."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        model: str = DEFAULT_EMBEDDING_MODEL,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self.model_name = model
        self._client = client or AsyncOpenAI(api_key=api_key)

    async def embed(self, text: str) -> List[float]:
        response = await self._client.embeddings.create(
            model=self.model_name,
            input=text,
            encoding_format="float",
        )
        return list(response.data[0].embedding)

    async def close(self) -> None:
        await self._client.close()


class OpenAIChatProvider(ChatProvider):
    """Send a system instruction plus one user turn to the chat completions API."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        model: str = DEFAULT_CHAT_MODEL,
        max_tokens: int = 1500,
        temperature: float = 0.7,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self.model_name = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client = client or AsyncOpenAI(api_key=api_key)

    async def complete(self, system_prompt: str, user_message: str) -> str:
        response = await self._client.chat.completions.create(
            model=self.model_name,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        choices = response.choices or []
        content = choices[0].message.content if choices and choices[0].message else None
        if not content or not content.strip():
            raise ChatCompletionFailure("Chat completion returned no content")
        return content.strip()

    async def close(self) -> None:
        await self._client.close()
