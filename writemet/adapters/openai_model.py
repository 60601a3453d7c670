"""OpenAI-compatible chat model adapter."""

import os
from typing import Optional

import openai
from openai import AsyncOpenAI

from ..errors import ModelCallError

DEFAULT_MODEL = "gpt-4o-mini"


class OpenAIChatModel:
    """LanguageModel backed by the chat completions API.

    Works with any OpenAI-compatible endpoint (for example OpenRouter) via ``base_url``.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model or os.getenv("WRITEMET_MODEL", DEFAULT_MODEL)
        if client is None:
            client = AsyncOpenAI(
                api_key=api_key or os.getenv("OPENAI_API_KEY", ""),
                base_url=base_url or os.getenv("WRITEMET_BASE_URL") or None,
            )
        self.client = client

    async def complete(self, prompt: str, max_tokens: int) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except openai.APIStatusError as exc:
            raise ModelCallError(exc.status_code, exc.message) from exc
        except openai.APIError as exc:
            raise ModelCallError(None, str(exc)) from exc

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""
