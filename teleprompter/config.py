"""
Configuration management for teleprompter.
Handles loading, saving, and accessing configuration from a JSON file and environment variables.
"""
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .constants import CONFIG_FILE, PROVIDERS, URL_ENV_VAR
from .exceptions import ConfigError
from .utils import write_private_file


logger = logging.getLogger(__name__)


@dataclass
class ProviderSettings:
    """Stored settings for one LLM provider."""
    api_key: Optional[str] = None


@dataclass
class AppConfig:
    """Main application configuration."""
    url: Optional[str] = None
    providers: dict[str, ProviderSettings] = field(default_factory=dict)
    default_model: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to the stored JSON layout."""
        data: dict = {
            "providers": {
                name: {"apiKey": settings.api_key}
                for name, settings in self.providers.items()
                if settings.api_key
            }
        }
        if self.url:
            data["url"] = self.url
        if self.default_model:
            data["defaultModel"] = self.default_model
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'AppConfig':
        """Create an AppConfig from its stored JSON layout."""
        providers = {}
        for name, settings in (data.get("providers") or {}).items():
            if isinstance(settings, dict):
                providers[name] = ProviderSettings(api_key=settings.get("apiKey"))
        return cls(
            url=data.get("url"),
            providers=providers,
            default_model=data.get("defaultModel"),
        )


class ConfigManager:
    """
    Manages application configuration stored in a JSON file.

    Environment variables take precedence over config file values for API keys
    and the service URL.
    """

    def __init__(self, config_file: Optional[Path] = None) -> None:
        """
        Initialize the config manager and load the config file.

        Args:
            config_file: Config file location
        """
        self._config_file = Path(config_file) if config_file else CONFIG_FILE
        self._config: AppConfig = AppConfig()
        self.load()

    @property
    def config_file(self) -> Path:
        """Config file location."""
        return self._config_file

    @property
    def config(self) -> AppConfig:
        """Get the current configuration."""
        return self._config

    def load(self) -> None:
        """Load configuration from the JSON file; missing or invalid files give defaults."""
        if not self._config_file.exists():
            self._config = AppConfig()
            return

        try:
            with open(self._config_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise TypeError("config root must be an object")
            self._config = AppConfig.from_dict(data)
        except (OSError, json.JSONDecodeError, TypeError, AttributeError) as e:
            logger.warning(f"Failed to load config file {self._config_file}: {e}")
            self._config = AppConfig()

    def save(self) -> None:
        """Save current configuration with owner-only permissions."""
        write_private_file(
            self._config_file,
            json.dumps(self._config.to_dict(), indent=2)
        )

    def get_provider_api_key(self, provider: str) -> Optional[str]:
        """
        Get the API key for a provider.

        Args:
            provider: Provider name (e.g., 'openai')

        Returns:
            The key from the provider's environment variable, else from the
            config file, else None
        """
        info = PROVIDERS.get(provider)
        if info and info.get("env_key"):
            value = os.environ.get(info["env_key"])
            if value:
                return value

        settings = self._config.providers.get(provider)
        return settings.api_key if settings else None

    def set_provider_api_key(self, provider: str, api_key: str) -> None:
        """
        Store an API key for a provider in the config file.

        Args:
            provider: Provider name
            api_key: The API key value

        Raises:
            ConfigError: If the provider is unknown
        """
        if provider not in PROVIDERS:
            raise ConfigError(
                f"Unknown provider '{provider}'. "
                f"Choose one of: {', '.join(PROVIDERS)}"
            )
        self._config.providers[provider] = ProviderSettings(api_key=api_key)
        self.save()

    def configured_providers(self) -> list[str]:
        """Providers that have an API key, in table order."""
        return [name for name in PROVIDERS if self.get_provider_api_key(name)]

    def set_url(self, url: str) -> None:
        """Store the default prompt service URL."""
        self._config.url = url.rstrip("/")
        self.save()

    def set_default_model(self, model: Optional[str]) -> None:
        """Store the model used when none is given on the command line."""
        self._config.default_model = model
        self.save()

    def service_url(self, override: Optional[str] = None) -> str:
        """
        Resolve the prompt service URL.

        Args:
            override: URL given on the command line

        Returns:
            The command-line URL, else ``TP_URL``, else the stored URL

        Raises:
            ConfigError: If no URL is configured anywhere
        """
        url = override or os.environ.get(URL_ENV_VAR) or self._config.url
        if not url:
            raise ConfigError(
                f"--url option or {URL_ENV_VAR} environment variable must be set"
            )
        return url.rstrip("/")


_config_manager: Optional[ConfigManager] = None


def get_config() -> ConfigManager:
    """Get the global configuration manager instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager
