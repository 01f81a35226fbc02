"""Shared OpenAI chat-completions translation.

Used by OpenAIProvider, OpenRouterProvider and GPTGodProvider since they
share the same chat completions wire format, tool calling included.
"""

import json
from typing import TYPE_CHECKING, Any, Optional, Sequence

from ..messages import ContentPart, ConversationMessage, Role
from ..models import ModelDescriptor
from .base import BaseProvider, SendOptions, WireRequest, wire_tool_name
from .response import ProviderResponse

if TYPE_CHECKING:
    from ..tools.schema import ToolDef

_MESSAGE_KEYS = {"role", "content", "name", "tool_call_id", "tool_calls"}


def _encode_arguments(arguments: Any) -> str:
    if isinstance(arguments, str):
        return arguments
    return json.dumps(arguments or {})


def _decode_arguments(arguments: Any) -> Any:
    """Arguments arrive as a JSON string; keep the string if it is not JSON."""
    if not isinstance(arguments, str):
        return arguments or {}
    try:
        return json.loads(arguments) if arguments else {}
    except json.JSONDecodeError:
        return arguments


def normalize_tool_calls(wire_calls: Sequence[dict], tool_names: Optional[dict]) -> tuple:
    names = tool_names or {}
    calls = []
    for tc in wire_calls or ():
        fn = tc.get("function", {})
        wire_name = fn.get("name", "")
        calls.append({
            "id": tc.get("id", ""),
            "name": names.get(wire_name, wire_name),
            "arguments": _decode_arguments(fn.get("arguments")),
        })
    return tuple(calls)


class OpenAICompatibleProvider(BaseProvider):
    """Base for providers speaking the OpenAI chat completions format."""

    endpoint = "/chat/completions"

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

    def _message_to_wire(self, message: ConversationMessage) -> dict:
        if isinstance(message.content, str):
            content: Any = message.content
        else:
            content = []
            for part in message.content:
                if part.is_image:
                    content.append({"type": "image_url", "image_url": {"url": part.as_url()}})
                else:
                    content.append({"type": "text", "text": part.text})

        wire: dict[str, Any] = {"role": message.role.value, "content": content}
        if message.name and message.role is not Role.TOOL:
            wire["name"] = message.name
        if message.tool_call_id:
            wire["tool_call_id"] = message.tool_call_id
        if message.tool_calls:
            wire["tool_calls"] = [
                {
                    "id": tc.get("id", ""),
                    "type": "function",
                    "function": {
                        "name": wire_tool_name(tc.get("name", "")),
                        "arguments": _encode_arguments(tc.get("arguments")),
                    },
                }
                for tc in message.tool_calls
            ]
        # Provider-specific fields pass straight through
        wire.update(message.extras)
        return wire

    def to_wire_messages(self, messages: Sequence[ConversationMessage]) -> dict[str, Any]:
        return {"messages": [self._message_to_wire(m) for m in messages]}

    def from_wire_messages(
        self,
        fragment: dict[str, Any],
        tool_names: Optional[dict] = None,
    ) -> list[ConversationMessage]:
        messages = []
        # Tool turns carry no name on the wire; recover it from the call id
        call_names: dict[str, str] = {}
        for wire in fragment.get("messages", []):
            content = wire.get("content") or ""
            if isinstance(content, list):
                content = tuple(ContentPart.from_dict(p) for p in content)
            tool_calls = normalize_tool_calls(wire.get("tool_calls") or (), tool_names)
            for tc in tool_calls:
                call_names[tc["id"]] = tc["name"]
            name = wire.get("name")
            if name is None and wire.get("tool_call_id"):
                name = call_names.get(wire["tool_call_id"])
            messages.append(ConversationMessage(
                role=Role(wire["role"]),
                content=content,
                name=name,
                tool_call_id=wire.get("tool_call_id"),
                tool_calls=tool_calls,
                extras={k: v for k, v in wire.items() if k not in _MESSAGE_KEYS},
            ))
        return messages

    def to_wire_tools(self, tools: Sequence["ToolDef"]) -> dict[str, Any]:
        if not tools:
            return {}
        return {
            "tools": [
                {
                    "type": "function",
                    "function": {
                        "name": wire_tool_name(td.name),
                        "description": td.description,
                        "parameters": td.parameters,
                    },
                }
                for td in tools
            ],
            "tool_choice": "auto",
        }

    def build_request(
        self,
        model: ModelDescriptor,
        messages: Sequence[ConversationMessage],
        tools: Sequence["ToolDef"],
        options: SendOptions,
    ) -> WireRequest:
        payload: dict[str, Any] = {
            "model": model.id,
            **self.to_wire_messages(messages),
            "temperature": self._temperature(options),
        }
        max_tokens = self._max_tokens(options)
        if max_tokens:
            payload["max_tokens"] = max_tokens
        payload.update(self.to_wire_tools(tools))
        payload.update(options.extra)

        return WireRequest(
            url=f"{self.base_url}{self.endpoint}",
            payload=payload,
            headers=self._headers(),
            tool_names=self.tool_name_map(tools),
        )

    def parse_response(
        self,
        data: Any,
        model: ModelDescriptor,
        tool_names: Optional[dict] = None,
    ) -> ProviderResponse:
        choices = data.get("choices") or [{}]
        message = choices[0].get("message") or {}
        usage = data.get("usage") or {}

        return ProviderResponse(
            content=message.get("content") or "",
            raw=data,
            tool_calls=normalize_tool_calls(message.get("tool_calls") or (), tool_names),
            finish_reason=choices[0].get("finish_reason") or "",
            input_tokens=usage.get("prompt_tokens", 0),
            output_tokens=usage.get("completion_tokens", 0),
            model=data.get("model") or model.id,
            provider=self.kind.value,
        )
