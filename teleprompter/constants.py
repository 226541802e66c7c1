"""
Constants and configuration defaults for teleprompter.
"""
from pathlib import Path
from typing import Final

APP_NAME: Final[str] = "tp"
APP_VERSION: Final[str] = "0.3.0"
APP_DESCRIPTION: Final[str] = (
    "Teleprompter: a tool for managing LLM prompts and updating them at runtime"
)

CONFIG_DIR: Final[Path] = Path.home() / ".teleprompter"
CONFIG_FILE: Final[Path] = CONFIG_DIR / "config.json"
HISTORY_FILE: Final[Path] = CONFIG_DIR / "history.json"
TOKEN_FILE: Final[Path] = CONFIG_DIR / "token"

PRIVATE_FILE_MODE: Final[int] = 0o600

URL_ENV_VAR: Final[str] = "TP_URL"
DEFAULT_LOCAL_TOKEN: Final[str] = "local-development-token"
LOCAL_HOSTNAMES: Final[tuple] = ("localhost", "127.0.0.1")

MAX_RUNS_PER_PROMPT: Final[int] = 100

ITEM_ALIAS: Final[str] = "this"
ELSE_KEYWORD: Final[str] = "else"

REQUEST_TIMEOUT_SECONDS: Final[float] = 30.0
STREAM_TIMEOUT_SECONDS: Final[float] = 120.0

PROVIDERS: Final[dict] = {
    "anthropic": {
        "name": "Anthropic",
        "base_url": "https://api.anthropic.com/v1",
        "env_key": "ANTHROPIC_API_KEY",
        "headers": {"anthropic-version": "2023-06-01"},
        "api_key_header": "x-api-key",
    },
    "openai": {
        "name": "OpenAI",
        "base_url": "https://api.openai.com/v1",
        "env_key": "OPENAI_API_KEY",
    },
    "google": {
        "name": "Google Gemini",
        "base_url": "https://generativelanguage.googleapis.com/v1beta/openai",
        "env_key": "GOOGLE_API_KEY",
    },
    "cerebras": {
        "name": "Cerebras",
        "base_url": "https://api.cerebras.ai/v1",
        "env_key": "CEREBRAS_API_KEY",
    },
    "grok": {
        "name": "xAI Grok",
        "base_url": "https://api.x.ai/v1",
        "env_key": "GROK_API_KEY",
    },
}
