"""Model descriptors and the closed set of provider kinds."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional, Union


class ProviderKind(str, Enum):
    """Backends the gateway knows how to talk to."""

    OPENAI = "openai"
    OPENROUTER = "openrouter"
    GPTGOD = "gptgod"
    CLAUDE = "claude"
    GEMINI = "gemini"
    HUGGINGFACE = "huggingface"


# Display names used by model catalogs in the wild
_ALIASES = {
    "openrouter": ProviderKind.OPENROUTER,
    "gptgod0": ProviderKind.GPTGOD,
    "hugging face": ProviderKind.HUGGINGFACE,
    "hugging_face": ProviderKind.HUGGINGFACE,
    "hf": ProviderKind.HUGGINGFACE,
    "anthropic": ProviderKind.CLAUDE,
    "google": ProviderKind.GEMINI,
}

VISION_CAPABILITIES = frozenset({"image_analysis", "vision", "multimodal"})
TOOL_CAPABILITIES = frozenset({"function_calling", "tool_use", "tools"})


def resolve_provider(value: Union["ProviderKind", str, None]) -> Optional[ProviderKind]:
    """Map a provider name or alias to its kind. Returns None when unknown."""
    if value is None:
        return None
    if isinstance(value, ProviderKind):
        return value
    key = str(value).strip().lower()
    try:
        return ProviderKind(key)
    except ValueError:
        return _ALIASES.get(key)


@dataclass(frozen=True)
class ModelDescriptor:
    """Reference data for one model, supplied by the caller per request."""

    id: str
    provider: Union[ProviderKind, str]
    capabilities: frozenset = field(default_factory=frozenset)
    name: str = ""

    def __post_init__(self):
        if not isinstance(self.capabilities, frozenset):
            object.__setattr__(self, "capabilities", frozenset(self.capabilities))

    @property
    def kind(self) -> Optional[ProviderKind]:
        return resolve_provider(self.provider)

    def has_any(self, capabilities: Iterable[str]) -> bool:
        return not self.capabilities.isdisjoint(capabilities)

    @property
    def supports_vision(self) -> bool:
        return self.has_any(VISION_CAPABILITIES)

    @property
    def supports_tools(self) -> bool:
        return self.has_any(TOOL_CAPABILITIES)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ModelDescriptor":
        return cls(
            id=data.get("id", ""),
            provider=data.get("provider", ""),
            capabilities=frozenset(data.get("capabilities", ())),
            name=data.get("name", ""),
        )
