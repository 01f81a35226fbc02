"""Anthropic Claude provider implementation."""

import logging
from typing import TYPE_CHECKING, Any, Optional, Sequence

from ..messages import ContentPart, ConversationMessage, Role
from ..models import ModelDescriptor, ProviderKind
from .base import (
    BaseProvider,
    SendOptions,
    WireRequest,
    tag_system_text,
    untag_system_text,
    wire_tool_name,
)
from .registry import register_provider
from .response import ProviderResponse

if TYPE_CHECKING:
    from ..tools.schema import ToolDef

_log = logging.getLogger(__name__)


def _part_to_block(part: ContentPart) -> dict:
    if not part.is_image:
        return {"type": "text", "text": part.text}
    if part.url:
        return {"type": "image", "source": {"type": "url", "url": part.url}}
    return {
        "type": "image",
        "source": {"type": "base64", "media_type": part.media_type, "data": part.data or ""},
    }


def _block_to_part(block: dict) -> ContentPart:
    if block.get("type") == "image":
        source = block.get("source", {})
        if source.get("type") == "url":
            return ContentPart(type="image", url=source.get("url"))
        return ContentPart(
            type="image",
            data=source.get("data", ""),
            media_type=source.get("media_type", "image/png"),
        )
    return ContentPart.from_text(block.get("text", ""))


@register_provider(ProviderKind.CLAUDE)
class ClaudeProvider(BaseProvider):
    """Anthropic Claude API provider.

    The Messages API keeps system text out of the message list, so leading
    system turns are hoisted into the top-level ``system`` field. Later
    system turns go out as user text wrapped in ``<system>`` tags. Tool
    results travel as ``tool_result`` blocks inside a user turn.
    """

    default_base_url = "https://api.anthropic.com/v1"
    default_max_tokens = 2048

    def _headers(self) -> dict:
        return {
            "x-api-key": self.config.api_key,
            "anthropic-version": "2023-06-01",
            "content-type": "application/json",
        }

    def _content(self, message: ConversationMessage) -> Any:
        if isinstance(message.content, str):
            if untag_system_text(message.content) is not None:
                # Plain strings in that shape are read back as system turns
                return [{"type": "text", "text": message.content}]
            return message.content
        return [_part_to_block(p) for p in message.content]

    def to_wire_messages(self, messages: Sequence[ConversationMessage]) -> dict[str, Any]:
        system: list[dict] = []
        wire: list[dict] = []
        leading = True

        for message in messages:
            if message.role is Role.SYSTEM and leading:
                system.append({"type": "text", "text": message.text})
                continue
            leading = False

            if message.role is Role.SYSTEM:
                _log.debug("Sending mid-conversation system turn as tagged user text")
                wire.append({"role": "user", "content": tag_system_text(message.text)})
            elif message.role is Role.TOOL:
                block = {
                    "type": "tool_result",
                    "tool_use_id": message.tool_call_id or "",
                    "content": message.text,
                }
                # Consecutive tool results share one user turn
                if wire and wire[-1].get("_tool_results"):
                    wire[-1]["content"].append(block)
                else:
                    wire.append({"role": "user", "content": [block], "_tool_results": True})
            elif message.role is Role.ASSISTANT and message.tool_calls:
                blocks = [_part_to_block(p) for p in message.parts]
                for tc in message.tool_calls:
                    blocks.append({
                        "type": "tool_use",
                        "id": tc.get("id", ""),
                        "name": wire_tool_name(tc.get("name", "")),
                        "input": tc.get("arguments") or {},
                    })
                wire.append({"role": "assistant", "content": blocks})
            else:
                wire.append({"role": message.role.value, "content": self._content(message)})

        for entry in wire:
            entry.pop("_tool_results", None)

        fragment: dict[str, Any] = {"messages": wire}
        if system:
            fragment["system"] = system
        return fragment

    def from_wire_messages(
        self,
        fragment: dict[str, Any],
        tool_names: Optional[dict] = None,
    ) -> list[ConversationMessage]:
        names = tool_names or {}
        messages: list[ConversationMessage] = []

        system = fragment.get("system")
        if isinstance(system, str):
            messages.append(ConversationMessage(role=Role.SYSTEM, content=system))
        else:
            for block in system or ():
                messages.append(ConversationMessage(role=Role.SYSTEM, content=block.get("text", "")))

        # tool_result blocks only carry the id; recover names from tool_use blocks
        call_names: dict[str, str] = {}
        for wire in fragment.get("messages", []):
            content = wire.get("content", "")
            role = Role(wire["role"])
            if isinstance(content, str):
                system_text = untag_system_text(content) if role is Role.USER else None
                if system_text is not None:
                    messages.append(ConversationMessage(role=Role.SYSTEM, content=system_text))
                else:
                    messages.append(ConversationMessage(role=role, content=content))
                continue

            results = [b for b in content if b.get("type") == "tool_result"]
            if results:
                for block in results:
                    call_id = block.get("tool_use_id", "")
                    messages.append(ConversationMessage(
                        role=Role.TOOL,
                        content=block.get("content", ""),
                        name=call_names.get(call_id),
                        tool_call_id=call_id,
                    ))
                continue

            uses = [b for b in content if b.get("type") == "tool_use"]
            if uses:
                calls = []
                for block in uses:
                    name = names.get(block.get("name", ""), block.get("name", ""))
                    call_names[block.get("id", "")] = name
                    calls.append({"id": block.get("id", ""), "name": name, "arguments": block.get("input", {})})
                text = "".join(b.get("text", "") for b in content if b.get("type") == "text")
                messages.append(ConversationMessage(role=role, content=text, tool_calls=tuple(calls)))
                continue

            messages.append(ConversationMessage(
                role=role,
                content=tuple(_block_to_part(b) for b in content),
            ))
        return messages

    def to_wire_tools(self, tools: Sequence["ToolDef"]) -> dict[str, Any]:
        if not tools:
            return {}
        return {
            "tools": [
                {
                    "name": wire_tool_name(td.name),
                    "description": td.description,
                    "input_schema": td.parameters,
                }
                for td in tools
            ],
            "tool_choice": {"type": "auto"},
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
            "max_tokens": self._max_tokens(options) or self.default_max_tokens,
            "temperature": self._temperature(options),
            **self.to_wire_messages(messages),
        }
        payload.update(self.to_wire_tools(tools))
        payload.update(options.extra)

        return WireRequest(
            url=f"{self.base_url}/messages",
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
        names = tool_names or {}
        text_parts = []
        tool_calls = []
        for block in data.get("content") or ():
            if block.get("type") == "text":
                text_parts.append(block.get("text", ""))
            elif block.get("type") == "tool_use":
                tool_calls.append({
                    "id": block.get("id", ""),
                    "name": names.get(block.get("name", ""), block.get("name", "")),
                    "arguments": block.get("input") or {},
                })

        usage = data.get("usage") or {}
        return ProviderResponse(
            content="".join(text_parts),
            raw=data,
            tool_calls=tuple(tool_calls),
            finish_reason=data.get("stop_reason") or "",
            input_tokens=usage.get("input_tokens", 0),
            output_tokens=usage.get("output_tokens", 0),
            model=data.get("model") or model.id,
            provider=self.kind.value,
        )
