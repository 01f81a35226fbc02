"""OpenAI provider for GPT-4o, o-series, and compatible models."""

from ..models import ProviderKind
from ._openai_compat import OpenAICompatibleProvider
from .registry import register_provider


@register_provider(ProviderKind.OPENAI)
class OpenAIProvider(OpenAICompatibleProvider):
    """OpenAI API provider - supports custom base_url for Azure/proxies."""

    default_base_url = "https://api.openai.com/v1"
