"""
Provider registry for teleprompter.
Builds providers from configured API keys and discovers their models.
"""
import asyncio
import logging
from typing import Optional

import httpx

from ..config import ConfigManager
from ..constants import PROVIDERS
from ..exceptions import ProviderError
from .base import LLMProvider, ModelInfo
from .openai_compat import OpenAICompatibleProvider


logger = logging.getLogger(__name__)


class ProviderRegistry:
    """
    Registry for LLM providers.

    Providers are created on first use from the API keys in the given
    configuration and cached afterwards.
    """

    def __init__(
        self,
        config: ConfigManager,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> None:
        """
        Initialize the registry.

        Args:
            config: Configuration holding provider API keys
            transport: Optional httpx transport passed to every provider
        """
        self._config = config
        self._transport = transport
        self._instances: dict[str, LLMProvider] = {}

    def configured_providers(self) -> list[str]:
        """Names of providers that have an API key."""
        return self._config.configured_providers()

    def register(self, name: str, provider: LLMProvider) -> None:
        """
        Register a provider instance under a name.

        Args:
            name: Provider name
            provider: Provider instance
        """
        self._instances[name.lower()] = provider

    def get(self, name: str) -> LLMProvider:
        """
        Get a provider instance.

        Args:
            name: Provider name

        Returns:
            Provider instance

        Raises:
            ProviderError: If the provider is unknown or has no API key
        """
        name = name.lower()
        if name in self._instances:
            return self._instances[name]

        info = PROVIDERS.get(name)
        if info is None:
            raise ProviderError(f"Unknown provider: {name}")

        api_key = self._config.get_provider_api_key(name)
        if not api_key:
            raise ProviderError(f"No API key configured for {name}")

        headers = dict(info.get("headers", {}))
        if info.get("api_key_header"):
            headers[info["api_key_header"]] = api_key

        provider = OpenAICompatibleProvider(
            name=name,
            api_key=api_key,
            base_url=info["base_url"],
            headers=headers,
            transport=self._transport
        )
        self._instances[name] = provider
        return provider

    async def fetch_models(self, name: str) -> list[ModelInfo]:
        """List models of one provider; empty if it is not usable."""
        try:
            provider = self.get(name)
        except ProviderError as e:
            logger.debug(f"Skipping model discovery for {name}: {e}")
            return []
        return await provider.list_models()

    async def fetch_all_models(self) -> list[ModelInfo]:
        """List models of every configured provider, concurrently."""
        names = list(dict.fromkeys([*self.configured_providers(), *self._instances]))
        results = await asyncio.gather(*(self.fetch_models(name) for name in names))
        return [model for models in results for model in models]

    def resolve_model(self, qualified_name: str) -> ModelInfo:
        """
        Parse a ``provider/model`` name.

        The model part may itself contain slashes.

        Args:
            qualified_name: Name such as ``openai/gpt-4o``

        Returns:
            The parsed ModelInfo

        Raises:
            ProviderError: If the name has no provider prefix or the provider is unknown
        """
        provider, sep, model_id = qualified_name.partition("/")
        provider = provider.lower()
        if not sep or not model_id:
            raise ProviderError(
                f"Invalid model '{qualified_name}', expected provider/model"
            )
        if provider not in PROVIDERS and provider not in self._instances:
            raise ProviderError(f"Unknown provider: {provider}")
        return ModelInfo(id=model_id, provider=provider)
