"""OpenAI chat completions adapter for the script capability.

Works against any OpenAI-compatible endpoint; ``base_url`` comes from the
binding's ``api_url`` so self-hosted gateways can be bound the same way.
"""

from typing import Any

import httpx

from movie_engine.adapters.base import check_response
from movie_engine.adapters.llm.base import LLMMessage, LLMProvider, LLMResponse
from movie_engine.errors import ProviderError
from movie_engine.logging import get_logger

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o"


class OpenAIProvider(LLMProvider):
    """Chat completions over httpx."""

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float = 120.0,
    ) -> None:
        self.api_key = api_key
        self.model = model or DEFAULT_MODEL
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout

    @property
    def name(self) -> str:
        return f"openai:{self.model}"

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def build_payload(
        self,
        messages: list[LLMMessage],
        temperature: float,
        max_tokens: int,
        json_mode: bool,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        return payload

    async def complete(
        self,
        messages: list[LLMMessage],
        temperature: float = 0.7,
        max_tokens: int = 4096,
        json_mode: bool = False,
    ) -> LLMResponse:
        payload = self.build_payload(messages, temperature, max_tokens, json_mode)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.base_url}/chat/completions", headers=self._headers(), json=payload
            )
        check_response(response, "openai")
        data = response.json()

        choices = data.get("choices") or []
        if not choices:
            raise ProviderError("openai returned no choices", provider="openai")
        choice = choices[0]
        usage = data.get("usage") or {}

        logger.info(
            "openai_completion",
            model=data.get("model", self.model),
            total_tokens=usage.get("total_tokens", 0),
            finish_reason=choice.get("finish_reason"),
        )

        return LLMResponse(
            content=choice["message"].get("content") or "",
            model=data.get("model", self.model),
            usage={k: int(v) for k, v in usage.items() if isinstance(v, int)},
            finish_reason=choice.get("finish_reason"),
            raw_response=data,
        )

    async def health_check(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.get(f"{self.base_url}/models", headers=self._headers())
        except httpx.HTTPError as e:
            logger.warning("openai_health_check_failed", error=str(e))
            return False
        return response.is_success
