"""Base provider interface: translate, dispatch once, translate back."""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional, Sequence

import httpx

from ..errors import ProviderError
from ..messages import ConversationMessage
from ..models import ModelDescriptor, ProviderKind
from .response import ProviderResponse

if TYPE_CHECKING:
    from ..tools.schema import ToolDef

_log = logging.getLogger(__name__)

_WIRE_NAME_UNSAFE = re.compile(r"[^A-Za-z0-9_-]")
_WIRE_NAME_MAX = 64


@dataclass
class ProviderConfig:
    """Credentials and defaults for one provider."""
    api_key: str
    model: str = ""
    base_url: Optional[str] = None
    temperature: float = 0.7
    max_tokens: Optional[int] = None
    timeout: float = 60.0


@dataclass
class SendOptions:
    """Per-call options for ProviderGateway.send_message.

    ``extra`` is merged into the provider payload as-is.
    """
    tools: Sequence["ToolDef"] = ()
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    timeout: Optional[float] = None
    extra: dict = field(default_factory=dict)


@dataclass(frozen=True)
class WireRequest:
    """One provider HTTP request, fully translated.

    ``tool_names`` maps wire-safe tool names back to catalog names.
    """
    url: str
    payload: Any
    headers: dict = field(default_factory=dict)
    params: dict = field(default_factory=dict)
    tool_names: dict = field(default_factory=dict)


def wire_tool_name(name: str) -> str:
    """Catalog names may contain ':'; provider APIs only accept [A-Za-z0-9_-]."""
    return _WIRE_NAME_UNSAFE.sub("_", name)[:_WIRE_NAME_MAX]


# Wraps system turns that sit mid-conversation on APIs without such a role
SYSTEM_OPEN = "<system>\n"
SYSTEM_CLOSE = "\n</system>"


def tag_system_text(text: str) -> str:
    return f"{SYSTEM_OPEN}{text}{SYSTEM_CLOSE}"


def untag_system_text(text: str) -> Optional[str]:
    """The system text inside ``text``, or None when it is not a tagged system turn."""
    if (
        len(text) >= len(SYSTEM_OPEN) + len(SYSTEM_CLOSE)
        and text.startswith(SYSTEM_OPEN)
        and text.endswith(SYSTEM_CLOSE)
    ):
        return text[len(SYSTEM_OPEN):-len(SYSTEM_CLOSE)]
    return None


class BaseProvider(ABC):
    """Abstract base class for all provider transports.

    Subclasses own one wire format each. ``to_wire_messages`` returns the
    payload fragment holding the conversation and ``from_wire_messages``
    reverses it.
    """

    kind: ProviderKind
    default_base_url = ""
    supports_tools = True

    def __init__(self, config: ProviderConfig, client: Optional[httpx.Client] = None):
        self.config = config
        self.name = self.__class__.__name__
        self.base_url = (config.base_url or self.default_base_url).rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=config.timeout)

    @abstractmethod
    def to_wire_messages(
        self,
        messages: Sequence[ConversationMessage],
    ) -> dict[str, Any]:
        """Translate the conversation into this provider's payload fragment."""

    @abstractmethod
    def from_wire_messages(
        self,
        fragment: dict[str, Any],
        tool_names: Optional[dict] = None,
    ) -> list[ConversationMessage]:
        """Translate a payload fragment back into conversation messages."""

    @abstractmethod
    def to_wire_tools(self, tools: Sequence["ToolDef"]) -> dict[str, Any]:
        """Translate catalog tools into this provider's declaration fragment."""

    @abstractmethod
    def build_request(
        self,
        model: ModelDescriptor,
        messages: Sequence[ConversationMessage],
        tools: Sequence["ToolDef"],
        options: SendOptions,
    ) -> WireRequest:
        """Assemble the full HTTP request for one call."""

    @abstractmethod
    def parse_response(
        self,
        data: Any,
        model: ModelDescriptor,
        tool_names: Optional[dict] = None,
    ) -> ProviderResponse:
        """Normalize a decoded provider reply."""

    def tool_name_map(self, tools: Sequence["ToolDef"]) -> dict[str, str]:
        """Map wire names back to catalog names for the tools in a request."""
        names: dict[str, str] = {}
        for tool in tools:
            wire = wire_tool_name(tool.name)
            if wire in names and names[wire] != tool.name:
                _log.warning(
                    "Tool names %s and %s collide on the wire as %s; keeping the later",
                    names[wire], tool.name, wire,
                )
            names[wire] = tool.name
        return names

    def _temperature(self, options: SendOptions) -> float:
        if options.temperature is not None:
            return options.temperature
        return self.config.temperature

    def _max_tokens(self, options: SendOptions) -> Optional[int]:
        return options.max_tokens or self.config.max_tokens

    def send(self, request: WireRequest, timeout: Optional[float] = None) -> Any:
        """POST the request and return the decoded JSON body.

        httpx errors propagate for the gateway to classify. An undecodable
        body raises ProviderError.
        """
        response = self.client.post(
            request.url,
            json=request.payload,
            headers=request.headers,
            params=request.params or None,
            timeout=timeout if timeout is not None else self.config.timeout,
        )
        response.raise_for_status()
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                f"{self.kind.value} returned a body that is not JSON",
                status=response.status_code,
                body=response.text[:2000],
                provider=self.kind.value,
            ) from e

    def validate(self) -> bool:
        """Validate provider configuration."""
        return bool(self.config.api_key)

    def close(self) -> None:
        if self._owns_client:
            self.client.close()
