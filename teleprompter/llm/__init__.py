"""LLM provider access for teleprompter."""
from .base import LLMProvider, ModelInfo, StreamChunk
from .openai_compat import OpenAICompatibleProvider, is_text_generation_model
from .provider_registry import ProviderRegistry

__all__ = [
    'LLMProvider', 'ModelInfo', 'StreamChunk',
    'OpenAICompatibleProvider', 'is_text_generation_model',
    'ProviderRegistry',
]
