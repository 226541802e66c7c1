"""
Exception hierarchy for teleprompter.

The template engine and the run history store never raise for malformed
templates, missing values or a damaged history file. These exceptions cover
the collaborators around them: configuration, access tokens, the prompt
service and the LLM providers.
"""
from typing import Any, Optional


class TeleprompterError(Exception):
    """Base class for all teleprompter errors."""


class ConfigError(TeleprompterError):
    """Raised when required configuration is missing or invalid."""


class AuthError(TeleprompterError):
    """Raised when no usable access token is available."""


class ServiceError(TeleprompterError):
    """Raised when the prompt service answers with a non-success status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Any = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ProviderError(TeleprompterError):
    """Raised when an LLM provider cannot be used."""
