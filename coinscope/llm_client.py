"""OpenRouter generation client over the OpenAI-compatible SDK."""
from __future__ import annotations

import time
from typing import Any

from coinscope.config import settings
from coinscope.services.logger import log_llm_call


class OpenRouterGeneration:
    """Single-turn chat completion: one system instruction, one user message, text out."""

    def __init__(
        self,
        *,
        model: str,
        caller: str,
        temperature: float = 0.3,
        max_tokens: int | None = None,
        openai_client: Any | None = None,
    ):
        self.model = model
        self.caller = caller
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = openai_client or get_openai_client()

    async def generate(self, system_instruction: str, user_message: str) -> str:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_instruction},
                {"role": "user", "content": user_message},
            ],
            "temperature": self._temperature_for_model(self.model),
        }
        if self.max_tokens:
            kwargs["max_tokens"] = self.max_tokens

        started = time.monotonic()
        try:
            response = await self._client.chat.completions.create(**kwargs)
        except Exception as exc:
            log_llm_call(
                model=self.model,
                caller=self.caller,
                duration_ms=int((time.monotonic() - started) * 1000),
                status="error",
                error=str(exc),
            )
            raise

        usage = getattr(response, "usage", None)
        log_llm_call(
            model=self.model,
            caller=self.caller,
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        choices = getattr(response, "choices", None) or []
        if not choices:
            return ""
        return getattr(choices[0].message, "content", None) or ""

    def _temperature_for_model(self, model: str) -> float:
        # Some GPT-5-compatible gateways only accept the default temperature.
        if "gpt-5" in (model or "").lower():
            return 1
        return self.temperature


def get_openai_client() -> Any:
    """AsyncOpenAI pointed at OpenRouter."""
    from openai import AsyncOpenAI

    base_url = settings.openrouter_base_url.strip() or "https://openrouter.ai/api/v1"
    return AsyncOpenAI(api_key=settings.openrouter_api_key, base_url=base_url)


def expansion_generation(openai_client: Any | None = None) -> OpenRouterGeneration:
    return OpenRouterGeneration(
        model=settings.expansion_model,
        caller="query_expander",
        temperature=settings.expansion_temperature,
        max_tokens=400,
        openai_client=openai_client,
    )


def synthesis_generation(
    openai_client: Any | None = None,
    *,
    model: str | None = None,
) -> OpenRouterGeneration:
    return OpenRouterGeneration(
        model=model or settings.synthesis_model,
        caller="synthesis",
        temperature=settings.synthesis_temperature,
        max_tokens=settings.synthesis_max_tokens,
        openai_client=openai_client,
    )
