from __future__ import annotations

import logging
from typing import Optional, Sequence

import httpx
from openai import AsyncOpenAI

from .config import ChatConfig
from .conversation import Message
from .credentials import CredentialStore
from .errors import CompletionError, MissingCredentialError

logger = logging.getLogger(__name__)


class OpenAIClientProvider:
    """
    Hands out an AsyncOpenAI client for the currently stored API key.

    The key can be edited at any time, so the client is rebuilt whenever the
    stored value changes. Retries are disabled: a failed request is reported
    to the user, who decides whether to send again.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        base_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._credentials = credentials
        self._base_url = base_url
        self._http_client = http_client
        self._client: Optional[AsyncOpenAI] = None
        self._client_key = ""

    async def get(self) -> AsyncOpenAI:
        api_key = self._credentials.api_key
        if not api_key:
            raise MissingCredentialError("no API key stored")

        if self._client is None or api_key != self._client_key:
            await self.aclose()
            self._client = AsyncOpenAI(
                api_key=api_key,
                base_url=self._base_url,
                max_retries=0,
                http_client=self._http_client,
            )
            self._client_key = api_key
        return self._client

    async def aclose(self) -> None:
        # A shared http_client belongs to whoever passed it in.
        if self._client is not None and self._http_client is None:
            await self._client.close()
        self._client = None
        self._client_key = ""


class ChatCompletionClient:
    """
    Sends the whole conversation to the chat completions endpoint and returns
    the first choice's message content.
    """

    def __init__(self, provider: OpenAIClientProvider, config: ChatConfig) -> None:
        self._provider = provider
        self._config = config

    @property
    def model(self) -> str:
        return self._config.model

    async def complete(self, messages: Sequence[Message]) -> str:
        client = await self._provider.get()
        logger.debug("Requesting completion: model=%s, messages=%d", self.model, len(messages))

        response = await client.chat.completions.create(
            model=self._config.model,
            messages=[m.as_dict() for m in messages],
        )

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise CompletionError("completion response has no choices") from e
        if not isinstance(content, str):
            raise CompletionError("completion response has no message content")
        return content.strip()
