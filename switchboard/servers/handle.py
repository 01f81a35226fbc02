"""Tool server configuration and per-server runtime state."""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..errors import InvalidTransition


EMPTY_SCHEMA = {"type": "object", "properties": {}}


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    STARTING = "starting"
    CONNECTED = "connected"
    ERROR = "error"


# Allowed lifecycle transitions. CONNECTED -> CONNECTED and ERROR -> CONNECTED
# are refreshes against a still-running process.
_TRANSITIONS = {
    ConnectionState.DISCONNECTED: frozenset({
        ConnectionState.STARTING,
        ConnectionState.DISCONNECTED,
    }),
    ConnectionState.STARTING: frozenset({
        ConnectionState.CONNECTED,
        ConnectionState.ERROR,
        ConnectionState.DISCONNECTED,
    }),
    ConnectionState.CONNECTED: frozenset({
        ConnectionState.CONNECTED,
        ConnectionState.ERROR,
        ConnectionState.DISCONNECTED,
        ConnectionState.STARTING,
    }),
    ConnectionState.ERROR: frozenset({
        ConnectionState.STARTING,
        ConnectionState.CONNECTED,
        ConnectionState.ERROR,
        ConnectionState.DISCONNECTED,
    }),
}


@dataclass(frozen=True)
class ServerConfig:
    """Identity and launch settings for a tool server."""

    id: str
    command: str
    name: str = ""
    args: tuple = ()
    env: dict = field(default_factory=dict)

    def __post_init__(self):
        if not self.id:
            raise ValueError("ServerConfig.id is required")
        if not self.command:
            raise ValueError("ServerConfig.command is required")
        object.__setattr__(self, "args", tuple(str(a) for a in self.args))
        object.__setattr__(self, "env", {str(k): str(v) for k, v in self.env.items()})
        if not self.name:
            object.__setattr__(self, "name", self.id)

    @classmethod
    def from_dict(cls, data: dict[str, Any], server_id: Optional[str] = None) -> "ServerConfig":
        return cls(
            id=server_id or data.get("id", ""),
            command=data.get("command", ""),
            name=data.get("name", ""),
            args=tuple(data.get("args") or ()),
            env=dict(data.get("env") or {}),
        )


@dataclass(frozen=True)
class ToolDescriptor:
    """One tool declared by a server during discovery."""

    name: str
    description: str = ""
    input_schema: dict = field(default_factory=lambda: copy.deepcopy(EMPTY_SCHEMA))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolDescriptor":
        schema = data.get("inputSchema") or data.get("input_schema") or data.get("parameters")
        return cls(
            name=data["name"],
            description=data.get("description") or "",
            input_schema=dict(schema) if schema else copy.deepcopy(EMPTY_SCHEMA),
        )


@dataclass(frozen=True)
class HandleStatus:
    """Immutable snapshot of a handle's state.

    Replaced as a whole on every transition so readers never see ``tools``
    from one state paired with another state.
    """

    state: ConnectionState = ConnectionState.DISCONNECTED
    tools: tuple = ()
    last_error: Optional[str] = None


class ToolServerHandle:
    """Runtime state for one tool server. Owned by the ToolServerManager."""

    def __init__(self, config: ServerConfig):
        self.config = config
        self.process = None
        self._status = HandleStatus()

    @property
    def id(self) -> str:
        return self.config.id

    @property
    def status(self) -> HandleStatus:
        return self._status

    @property
    def state(self) -> ConnectionState:
        return self._status.state

    @property
    def tools(self) -> tuple:
        return self._status.tools

    @property
    def last_error(self) -> Optional[str]:
        return self._status.last_error

    @property
    def process_alive(self) -> bool:
        return self.process is not None and self.process.is_alive()

    def transition(
        self,
        state: ConnectionState,
        tools: tuple = (),
        error: Optional[str] = None,
    ) -> HandleStatus:
        """Move to ``state``. Tools are kept only when CONNECTED."""
        current = self._status.state
        if state not in _TRANSITIONS[current]:
            raise InvalidTransition(
                f"Server '{self.id}': {current.value} -> {state.value} is not allowed"
            )
        if state is not ConnectionState.CONNECTED:
            tools = ()
        self._status = HandleStatus(state=state, tools=tuple(tools), last_error=error)
        return self._status

    def describe(self) -> dict[str, Any]:
        status = self._status
        return {
            "id": self.config.id,
            "name": self.config.name,
            "state": status.state.value,
            "isConnected": status.state is ConnectionState.CONNECTED,
            "toolsCount": len(status.tools),
            "lastError": status.last_error,
        }
