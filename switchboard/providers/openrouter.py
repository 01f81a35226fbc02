"""OpenRouter provider for multi-model access (Qwen, Llama, DeepSeek, etc)."""

from ..models import ProviderKind
from ._openai_compat import OpenAICompatibleProvider
from .registry import register_provider


@register_provider(ProviderKind.OPENROUTER)
class OpenRouterProvider(OpenAICompatibleProvider):
    """Provider for OpenRouter API - OpenAI-compatible endpoint."""

    default_base_url = "https://openrouter.ai/api/v1"

    def _headers(self) -> dict:
        headers = super()._headers()
        headers["HTTP-Referer"] = "https://github.com/switchboard-gateway"
        headers["X-Title"] = "switchboard"
        return headers
