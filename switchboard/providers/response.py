"""Normalized provider replies."""

from dataclasses import dataclass
from typing import Any

from ..messages import ConversationMessage, Role


@dataclass(frozen=True)
class ProviderResponse:
    """Immutable provider-agnostic reply.

    ``content`` is the assistant text. ``raw`` is the untranslated provider
    payload, for callers that need provider-specific fields. ``tool_calls``
    holds the tool calls the assistant requested, normalized to
    ``{"id", "name", "arguments"}`` with catalog tool names.
    """

    content: str
    raw: Any = None
    tool_calls: tuple = ()
    finish_reason: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""
    provider: str = ""
    latency_ms: float = 0.0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)

    def format_tokens(self) -> str:
        """Human-readable token summary."""
        def _fmt(n: int) -> str:
            if n >= 1000:
                return f"~{n / 1000:.1f}k"
            return f"~{n}"
        return f"{_fmt(self.input_tokens)} in / {_fmt(self.output_tokens)} out"

    def to_message(self) -> ConversationMessage:
        """The reply as an assistant turn, for continuing the conversation."""
        return ConversationMessage(
            role=Role.ASSISTANT,
            content=self.content,
            tool_calls=self.tool_calls,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "tool_calls": [dict(tc) for tc in self.tool_calls],
            "finish_reason": self.finish_reason,
            "usage": {
                "input_tokens": self.input_tokens,
                "output_tokens": self.output_tokens,
            },
            "model": self.model,
            "provider": self.provider,
            "latency_ms": self.latency_ms,
            "raw": self.raw,
        }
