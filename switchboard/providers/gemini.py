"""Google Gemini provider implementation."""

import logging
from typing import TYPE_CHECKING, Any, Optional, Sequence

from ..messages import ContentPart, ConversationMessage, Role
from ..models import ModelDescriptor, ProviderKind
from .base import (
    SYSTEM_OPEN,
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

# JSON Schema keys the Gemini function declaration schema rejects
_UNSUPPORTED_SCHEMA_KEYS = ("$schema", "additionalProperties")


def _clean_schema(schema: Any) -> Any:
    if isinstance(schema, dict):
        return {
            k: _clean_schema(v)
            for k, v in schema.items()
            if k not in _UNSUPPORTED_SCHEMA_KEYS
        }
    if isinstance(schema, list):
        return [_clean_schema(v) for v in schema]
    return schema


def _part_to_wire(part: ContentPart) -> dict:
    if not part.is_image:
        return {"text": part.text}
    if part.url:
        return {"fileData": {"mimeType": part.media_type, "fileUri": part.url}}
    return {"inlineData": {"mimeType": part.media_type, "data": part.data or ""}}


def _wire_to_part(part: dict) -> Optional[ContentPart]:
    if "text" in part:
        return ContentPart.from_text(part["text"])
    if "inlineData" in part:
        inline = part["inlineData"]
        return ContentPart(type="image", data=inline.get("data", ""),
                           media_type=inline.get("mimeType", "image/png"))
    if "fileData" in part:
        file_data = part["fileData"]
        return ContentPart(type="image", url=file_data.get("fileUri"),
                           media_type=file_data.get("mimeType", "image/png"))
    return None


@register_provider(ProviderKind.GEMINI)
class GeminiProvider(BaseProvider):
    """Google Gemini API provider.

    Assistant turns are sent with the ``model`` role and leading system
    turns become ``systemInstruction``. Later system turns are sent as user
    text wrapped in ``<system>`` tags. Gemini function calls carry no id,
    so ids are synthesized from the call position.
    """

    default_base_url = "https://generativelanguage.googleapis.com/v1beta/models"

    def _auth(self) -> tuple[dict, dict]:
        """Return (headers, params) for authentication.

        OAuth tokens start with "ya29." and use Bearer auth, API keys use
        the ?key= query param.
        """
        headers = {"Content-Type": "application/json"}
        if self.config.api_key.startswith("ya29."):
            headers["Authorization"] = f"Bearer {self.config.api_key}"
            return headers, {}
        return headers, {"key": self.config.api_key}

    def to_wire_messages(self, messages: Sequence[ConversationMessage]) -> dict[str, Any]:
        system_parts: list[dict] = []
        contents: list[dict] = []
        call_names: dict[str, str] = {}
        leading = True

        for message in messages:
            if message.role is Role.SYSTEM and leading:
                system_parts.append({"text": message.text})
                continue
            leading = False

            if message.role is Role.TOOL:
                name = message.name or call_names.get(message.tool_call_id or "", "")
                part = {
                    "functionResponse": {
                        "name": wire_tool_name(name),
                        "response": {"content": message.text},
                    }
                }
                if contents and contents[-1].get("_tool_results"):
                    contents[-1]["parts"].append(part)
                else:
                    contents.append({"role": "user", "parts": [part], "_tool_results": True})
                continue

            if message.role is Role.SYSTEM:
                _log.debug("Sending mid-conversation system turn as tagged user text")
                contents.append({"role": "user", "parts": [{"text": tag_system_text(message.text)}]})
                continue

            parts = [_part_to_wire(p) for p in message.parts]
            text = parts[0].get("text") if len(parts) == 1 else None
            if text is not None and untag_system_text(text) is not None:
                # A lone part in that shape is read back as a system turn
                parts = [{"text": SYSTEM_OPEN}, {"text": text[len(SYSTEM_OPEN):]}]
            for tc in message.tool_calls:
                call_names[tc.get("id", "")] = tc.get("name", "")
                parts.append({
                    "functionCall": {
                        "name": wire_tool_name(tc.get("name", "")),
                        "args": tc.get("arguments") or {},
                    }
                })
            role = "model" if message.role is Role.ASSISTANT else "user"
            contents.append({"role": role, "parts": parts})

        for entry in contents:
            entry.pop("_tool_results", None)

        fragment: dict[str, Any] = {"contents": contents}
        if system_parts:
            fragment["systemInstruction"] = {"parts": system_parts}
        return fragment

    def from_wire_messages(
        self,
        fragment: dict[str, Any],
        tool_names: Optional[dict] = None,
    ) -> list[ConversationMessage]:
        names = tool_names or {}
        messages: list[ConversationMessage] = []

        for part in (fragment.get("systemInstruction") or {}).get("parts", []):
            messages.append(ConversationMessage(role=Role.SYSTEM, content=part.get("text", "")))

        call_index = 0
        pending_ids: dict[str, list] = {}
        for entry in fragment.get("contents", []):
            wire_parts = entry.get("parts", [])
            responses = [p["functionResponse"] for p in wire_parts if "functionResponse" in p]
            if responses:
                for response in responses:
                    name = names.get(response.get("name", ""), response.get("name", ""))
                    ids = pending_ids.get(name) or [None]
                    messages.append(ConversationMessage(
                        role=Role.TOOL,
                        content=(response.get("response") or {}).get("content", ""),
                        name=name,
                        tool_call_id=ids.pop(0),
                    ))
                continue

            calls = []
            for p in wire_parts:
                if "functionCall" in p:
                    fc = p["functionCall"]
                    name = names.get(fc.get("name", ""), fc.get("name", ""))
                    call_id = f"call_{call_index}"
                    call_index += 1
                    pending_ids.setdefault(name, []).append(call_id)
                    calls.append({"id": call_id, "name": name, "arguments": fc.get("args") or {}})

            role = Role.ASSISTANT if entry.get("role") == "model" else Role.USER
            if role is Role.USER and len(wire_parts) == 1 and "text" in wire_parts[0]:
                system_text = untag_system_text(wire_parts[0]["text"])
                if system_text is not None:
                    messages.append(ConversationMessage(role=Role.SYSTEM, content=system_text))
                    continue

            parts = [_wire_to_part(p) for p in wire_parts]
            parts = [p for p in parts if p is not None]
            if calls or all(not p.is_image for p in parts):
                content: Any = "".join(p.text for p in parts)
            else:
                content = tuple(parts)
            messages.append(ConversationMessage(role=role, content=content, tool_calls=tuple(calls)))
        return messages

    def to_wire_tools(self, tools: Sequence["ToolDef"]) -> dict[str, Any]:
        if not tools:
            return {}
        return {
            "tools": [{
                "function_declarations": [
                    {
                        "name": wire_tool_name(td.name),
                        "description": td.description,
                        "parameters": _clean_schema(td.parameters),
                    }
                    for td in tools
                ]
            }]
        }

    def build_request(
        self,
        model: ModelDescriptor,
        messages: Sequence[ConversationMessage],
        tools: Sequence["ToolDef"],
        options: SendOptions,
    ) -> WireRequest:
        generation: dict[str, Any] = {"temperature": self._temperature(options)}
        max_tokens = self._max_tokens(options)
        if max_tokens:
            generation["maxOutputTokens"] = max_tokens

        payload: dict[str, Any] = {
            **self.to_wire_messages(messages),
            "generationConfig": generation,
        }
        payload.update(self.to_wire_tools(tools))
        payload.update(options.extra)

        headers, params = self._auth()
        return WireRequest(
            url=f"{self.base_url}/{model.id}:generateContent",
            payload=payload,
            headers=headers,
            params=params,
            tool_names=self.tool_name_map(tools),
        )

    def parse_response(
        self,
        data: Any,
        model: ModelDescriptor,
        tool_names: Optional[dict] = None,
    ) -> ProviderResponse:
        names = tool_names or {}
        candidates = data.get("candidates") or [{}]
        candidate = candidates[0]

        text_parts = []
        tool_calls = []
        for part in (candidate.get("content") or {}).get("parts", []):
            if "text" in part:
                text_parts.append(part["text"])
            elif "functionCall" in part:
                fc = part["functionCall"]
                tool_calls.append({
                    "id": f"call_{len(tool_calls)}",
                    "name": names.get(fc.get("name", ""), fc.get("name", "")),
                    "arguments": fc.get("args") or {},
                })

        usage = data.get("usageMetadata") or {}
        return ProviderResponse(
            content="".join(text_parts),
            raw=data,
            tool_calls=tuple(tool_calls),
            finish_reason=candidate.get("finishReason") or "",
            input_tokens=usage.get("promptTokenCount", 0),
            output_tokens=usage.get("candidatesTokenCount", 0),
            model=data.get("modelVersion") or model.id,
            provider=self.kind.value,
        )
