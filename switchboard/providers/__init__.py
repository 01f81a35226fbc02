"""Provider transports, one per ProviderKind."""

from .base import BaseProvider, ProviderConfig, SendOptions, WireRequest, wire_tool_name
from .response import ProviderResponse
from .claude import ClaudeProvider
from .gemini import GeminiProvider
from .gptgod import GPTGodProvider
from .huggingface import HuggingFaceProvider
from .openai_provider import OpenAIProvider
from .openrouter import OpenRouterProvider

__all__ = [
    "BaseProvider",
    "ProviderConfig",
    "SendOptions",
    "WireRequest",
    "wire_tool_name",
    "ProviderResponse",
    "ClaudeProvider",
    "GeminiProvider",
    "GPTGodProvider",
    "HuggingFaceProvider",
    "OpenAIProvider",
    "OpenRouterProvider",
]
