"""Provider-agnostic conversation messages."""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional, Union

from .errors import InvalidRequest


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


_DATA_URL = re.compile(r"^data:(?P<media>[\w/+.-]+);base64,(?P<data>.*)$", re.DOTALL)


@dataclass(frozen=True)
class ContentPart:
    """One piece of structured message content: text or an image.

    Images carry either a remote ``url`` or base64 ``data`` with its
    ``media_type``.
    """

    type: str
    text: str = ""
    url: Optional[str] = None
    data: Optional[str] = None
    media_type: str = "image/png"

    @classmethod
    def from_text(cls, text: str) -> "ContentPart":
        return cls(type="text", text=text)

    @classmethod
    def image_from_url(cls, url: str) -> "ContentPart":
        """Build an image part, unpacking ``data:`` URLs into base64 data."""
        match = _DATA_URL.match(url)
        if match:
            return cls(type="image", data=match.group("data"), media_type=match.group("media"))
        return cls(type="image", url=url)

    @property
    def is_image(self) -> bool:
        return self.type == "image"

    def as_url(self) -> str:
        """Image location as a URL, encoding inline data as a ``data:`` URL."""
        if self.url:
            return self.url
        return f"data:{self.media_type};base64,{self.data or ''}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ContentPart":
        part_type = data.get("type", "text")
        if part_type == "text":
            return cls.from_text(data.get("text", ""))
        if part_type == "image_url":
            image = data.get("image_url", {})
            url = image.get("url", "") if isinstance(image, dict) else str(image)
            return cls.image_from_url(url)
        if part_type == "image":
            if data.get("url"):
                return cls.image_from_url(data["url"])
            return cls(
                type="image",
                data=data.get("data", ""),
                media_type=data.get("media_type", "image/png"),
            )
        raise ValueError(f"Unsupported content part type: {part_type!r}")

    def to_dict(self) -> dict[str, Any]:
        if self.type == "text":
            return {"type": "text", "text": self.text}
        if self.url:
            return {"type": "image", "url": self.url}
        return {"type": "image", "data": self.data, "media_type": self.media_type}


Content = Union[str, tuple]


@dataclass(frozen=True)
class ConversationMessage:
    """A single conversation turn.

    ``content`` is either plain text or a tuple of ContentPart. Tool
    round-trip fields (``tool_calls`` on assistant turns, ``tool_call_id``
    and ``name`` on tool turns) are carried alongside. ``extras`` holds
    provider-specific fields that are passed through opaquely where the
    target provider supports them.
    """

    role: Role
    content: Content = ""
    name: Optional[str] = None
    tool_call_id: Optional[str] = None
    tool_calls: tuple = ()
    extras: dict = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.role, Role):
            object.__setattr__(self, "role", Role(self.role))
        if isinstance(self.content, list):
            object.__setattr__(self, "content", tuple(self.content))
        if isinstance(self.tool_calls, list):
            object.__setattr__(self, "tool_calls", tuple(self.tool_calls))

    @property
    def parts(self) -> tuple:
        if isinstance(self.content, str):
            return (ContentPart.from_text(self.content),) if self.content else ()
        return self.content

    @property
    def text(self) -> str:
        """All text content joined, images omitted."""
        if isinstance(self.content, str):
            return self.content
        return "".join(p.text for p in self.content if p.type == "text")

    @property
    def has_image(self) -> bool:
        return any(p.is_image for p in self.parts)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConversationMessage":
        known = {"role", "content", "name", "tool_call_id", "tool_calls"}
        content = data.get("content") or ""
        if isinstance(content, list):
            content = tuple(ContentPart.from_dict(p) for p in content)
        elif not isinstance(content, str):
            raise ValueError(f"Unsupported content: {type(content).__name__}")
        return cls(
            role=Role(data["role"]),
            content=content,
            name=data.get("name"),
            tool_call_id=data.get("tool_call_id"),
            tool_calls=tuple(data.get("tool_calls") or ()),
            extras={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"role": self.role.value}
        if isinstance(self.content, str):
            data["content"] = self.content
        else:
            data["content"] = [p.to_dict() for p in self.content]
        if self.name:
            data["name"] = self.name
        if self.tool_call_id:
            data["tool_call_id"] = self.tool_call_id
        if self.tool_calls:
            data["tool_calls"] = [dict(tc) for tc in self.tool_calls]
        data.update(self.extras)
        return data


def coerce_messages(
    messages: Iterable[Union[ConversationMessage, dict]],
) -> list[ConversationMessage]:
    """Accept dicts or ConversationMessage objects, preserving order.

    Raises:
        InvalidRequest: A message is not an object or cannot be read.
    """
    if messages is None or isinstance(messages, (str, bytes, dict)):
        raise InvalidRequest("Messages must be a list of message objects")

    coerced = []
    for index, message in enumerate(messages):
        if isinstance(message, ConversationMessage):
            coerced.append(message)
            continue
        if not isinstance(message, dict):
            raise InvalidRequest(f"Message {index} is not an object: {message!r}")
        try:
            coerced.append(ConversationMessage.from_dict(message))
        except KeyError as e:
            raise InvalidRequest(f"Message {index} is missing {e}") from e
        except (AttributeError, TypeError, ValueError) as e:
            raise InvalidRequest(f"Message {index} is malformed: {e}") from e
    return coerced


def has_image_content(messages: Iterable[ConversationMessage]) -> bool:
    return any(m.has_image for m in messages)
