"""GPTGOD provider: an OpenAI-compatible relay hosting GPT-4o and friends."""

from ..models import ProviderKind
from ._openai_compat import OpenAICompatibleProvider
from .registry import register_provider


@register_provider(ProviderKind.GPTGOD)
class GPTGodProvider(OpenAICompatibleProvider):
    default_base_url = "https://api.gptgod.online/v1"
