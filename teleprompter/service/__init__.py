"""Prompt service access for teleprompter."""
from .auth import get_access_token, is_token_valid, load_token, store_token
from .client import PromptServiceClient
from .models import ImportReport, Prompt, PromptVersion

__all__ = [
    'get_access_token', 'is_token_valid', 'load_token', 'store_token',
    'PromptServiceClient',
    'ImportReport', 'Prompt', 'PromptVersion',
]
