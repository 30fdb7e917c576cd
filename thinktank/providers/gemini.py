"""Gemini provider using google-genai SDK streaming."""

import logging
import os
from collections.abc import AsyncIterator

from google import genai
from google.genai import types as genai_types

from config.config_loader import ModelConfig
from thinktank.models import PromptMessages
from thinktank.providers.base import AIProvider, ProviderError, split_system

logger = logging.getLogger(__name__)

_ROLE_MAP = {"user": "user", "assistant": "model"}


def _to_contents(chat: PromptMessages) -> list[genai_types.Content]:
    return [
        genai_types.Content(
            role=_ROLE_MAP.get(m["role"], "user"),
            parts=[genai_types.Part(text=m["content"])],
        )
        for m in chat
    ]


class GeminiProvider(AIProvider):
    """Google Gemini provider via google-genai SDK."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = genai.Client(
            api_key=api_key,
            http_options=genai_types.HttpOptions(timeout=config.timeout_sec * 1000),
        )

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def stream_completion(
        self,
        messages: PromptMessages,
        max_tokens: int,
        temperature: float,
    ) -> AsyncIterator[str]:
        system, chat = split_system(messages)
        config = genai_types.GenerateContentConfig(
            system_instruction=system or None,
            max_output_tokens=max_tokens,
            temperature=temperature,
        )
        try:
            stream = await self._client.aio.models.generate_content_stream(
                model=self._config.model,
                contents=_to_contents(chat),
                config=config,
            )
            async for chunk in stream:
                if chunk.text:
                    yield chunk.text
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc
