"""
OpenAI-compatible provider implementation for teleprompter.

Every supported provider exposes an OpenAI-compatible endpoint, so a single
implementation covers them all; providers only differ by base URL, extra
headers and which of their models count as chat models.
"""
import json
import logging
from typing import AsyncGenerator, Optional

import httpx

from ..constants import REQUEST_TIMEOUT_SECONDS, STREAM_TIMEOUT_SECONDS
from ..exceptions import ProviderError
from .base import LLMProvider, ModelInfo, StreamChunk


logger = logging.getLogger(__name__)

EXCLUDED_MODEL_PATTERNS = (
    "embedding", "whisper", "tts", "dall-e", "moderation",
    "davinci", "babbage", "ada", "curie",
    "instruct",
)


def is_text_generation_model(model_id: str, provider: str) -> bool:
    """
    Decide whether a model ID is a chat/text generation model.

    Args:
        model_id: Model ID as reported by the provider
        provider: Provider name

    Returns:
        True if the model should be offered for prompt runs
    """
    model_id = model_id.lower()

    if any(pattern in model_id for pattern in EXCLUDED_MODEL_PATTERNS):
        return False

    if provider == "openai":
        return "gpt" in model_id or model_id.startswith("o1") or model_id.startswith("o3")
    if provider == "anthropic":
        return "claude" in model_id
    if provider == "google":
        return "gemini" in model_id
    return True


class OpenAICompatibleProvider(LLMProvider):
    """Provider speaking the OpenAI chat completions API."""

    def __init__(
        self,
        name: str,
        api_key: str,
        base_url: str,
        headers: Optional[dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> None:
        """
        Initialize the provider.

        Args:
            name: Provider name
            api_key: API key
            base_url: Base URL of the OpenAI-compatible API
            headers: Extra headers sent with every request
            transport: Optional httpx transport (used by tests)
        """
        super().__init__(name, api_key)
        self._base_url = base_url.rstrip("/")
        self._extra_headers = dict(headers or {})
        self._transport = transport

    @property
    def base_url(self) -> str:
        """Base URL of the API."""
        return self._base_url

    def _build_headers(self) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        headers.update(self._extra_headers)
        return headers

    async def stream(self, prompt: str, model: str) -> AsyncGenerator[StreamChunk, None]:
        """Stream a chat completion for a single user message."""
        payload = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "stream": True,
        }

        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=STREAM_TIMEOUT_SECONDS
        ) as client:
            async with client.stream(
                "POST",
                f"{self._base_url}/chat/completions",
                headers=self._build_headers(),
                json=payload
            ) as response:
                if response.is_error:
                    await response.aread()
                    raise ProviderError(
                        f"{self.name} API error: {response.status_code} "
                        f"{response.text[:200]}"
                    )

                async for line in response.aiter_lines():
                    if not line or not line.startswith("data: "):
                        continue

                    data_str = line[6:]
                    if data_str == "[DONE]":
                        break

                    try:
                        data = json.loads(data_str)
                    except json.JSONDecodeError:
                        logger.debug(f"Skipping undecodable stream line from {self.name}")
                        continue
                    if not isinstance(data, dict):
                        continue

                    choices = data.get("choices")
                    if not isinstance(choices, list) or not choices:
                        continue

                    choice = choices[0]
                    delta = choice.get("delta") if isinstance(choice, dict) else None
                    if not isinstance(delta, dict):
                        logger.debug(f"Skipping malformed stream chunk from {self.name}")
                        continue

                    content = delta.get("content")
                    if isinstance(content, str) and content:
                        yield StreamChunk(
                            content=content,
                            finish_reason=choice.get("finish_reason"),
                            model=data.get("model", model)
                        )

    async def list_models(self) -> list[ModelInfo]:
        """List chat models from the provider's ``/models`` endpoint."""
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=REQUEST_TIMEOUT_SECONDS
            ) as client:
                response = await client.get(
                    f"{self._base_url}/models",
                    headers=self._build_headers()
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Failed to fetch models from {self.name}: {e}")
            return []

        models = []
        for item in data.get("data", []) if isinstance(data, dict) else []:
            if not isinstance(item, dict):
                continue
            model_id = str(item.get("id", "")).replace("models/", "", 1)
            if model_id and is_text_generation_model(model_id, self.name):
                models.append(ModelInfo(id=model_id, provider=self.name))

        return sorted(models, key=lambda m: m.id)
