"""Hugging Face Inference API provider.

The text-generation endpoint takes a single prompt string, so the
conversation is flattened into role-prefixed lines ending with an open
``Assistant:`` turn. Continuation lines that look like a role prefix are
backslash-escaped. Images and tools cannot be expressed and are dropped.
"""

import logging
import re
from typing import TYPE_CHECKING, Any, Optional, Sequence

from ..messages import ConversationMessage, Role
from ..models import ModelDescriptor, ProviderKind
from .base import BaseProvider, SendOptions, WireRequest
from .registry import register_provider
from .response import ProviderResponse

if TYPE_CHECKING:
    from ..tools.schema import ToolDef

_log = logging.getLogger(__name__)

_PREFIXES = {
    Role.SYSTEM: "System",
    Role.USER: "User",
    Role.ASSISTANT: "Assistant",
    Role.TOOL: "Tool",
}
_ROLE_LINE = re.compile(r"^(System|User|Assistant|Tool): ?(.*)$")
_ROLES_BY_PREFIX = {v: k for k, v in _PREFIXES.items()}


def _escape(text: str) -> str:
    """Backslash continuation lines that would read as a role line or an escape."""
    first, *rest = text.split("\n")
    escaped = ["\\" + line if _ROLE_LINE.match(line) or line.startswith("\\") else line
               for line in rest]
    return "\n".join([first, *escaped])


@register_provider(ProviderKind.HUGGINGFACE)
class HuggingFaceProvider(BaseProvider):
    default_base_url = "https://api-inference.huggingface.co/models"
    supports_tools = False
    default_max_tokens = 1000

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

    def to_wire_messages(self, messages: Sequence[ConversationMessage]) -> dict[str, Any]:
        lines = []
        for message in messages:
            if message.has_image:
                _log.warning("Hugging Face text generation ignores image content")
            lines.append(f"{_PREFIXES[message.role]}: {_escape(message.text)}")
        lines.append("Assistant:")
        return {"inputs": "\n".join(lines)}

    def from_wire_messages(
        self,
        fragment: dict[str, Any],
        tool_names: Optional[dict] = None,
    ) -> list[ConversationMessage]:
        """Split a flattened prompt back into turns.

        Lines without a role prefix continue the previous turn, minus one
        leading backslash. The trailing empty ``Assistant:`` turn is the
        generation cue, not a message.
        """
        turns: list[list] = []
        for line in fragment.get("inputs", "").split("\n"):
            match = _ROLE_LINE.match(line)
            if match:
                turns.append([_ROLES_BY_PREFIX[match.group(1)], match.group(2)])
            elif turns:
                if line.startswith("\\"):
                    line = line[1:]
                turns[-1][1] += "\n" + line
        if turns and turns[-1][0] is Role.ASSISTANT and not turns[-1][1]:
            turns.pop()
        return [ConversationMessage(role=role, content=text) for role, text in turns]

    def to_wire_tools(self, tools: Sequence["ToolDef"]) -> dict[str, Any]:
        return {}

    def build_request(
        self,
        model: ModelDescriptor,
        messages: Sequence[ConversationMessage],
        tools: Sequence["ToolDef"],
        options: SendOptions,
    ) -> WireRequest:
        if tools:
            _log.info("Hugging Face has no tool calling; dropping %d tool(s)", len(tools))
        payload: dict[str, Any] = {
            **self.to_wire_messages(messages),
            "parameters": {
                "max_new_tokens": self._max_tokens(options) or self.default_max_tokens,
                "temperature": self._temperature(options),
                "top_p": 0.9,
                "do_sample": True,
                "return_full_text": False,
            },
        }
        payload.update(options.extra)
        return WireRequest(
            url=f"{self.base_url}/{model.id}",
            payload=payload,
            headers=self._headers(),
        )

    def parse_response(
        self,
        data: Any,
        model: ModelDescriptor,
        tool_names: Optional[dict] = None,
    ) -> ProviderResponse:
        if isinstance(data, list):
            first = data[0] if data else {}
        else:
            first = data or {}
        return ProviderResponse(
            content=(first.get("generated_text") or "").strip(),
            raw=data,
            model=model.id,
            provider=self.kind.value,
        )
