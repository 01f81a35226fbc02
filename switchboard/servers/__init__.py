"""Tool server lifecycle: configs, handles, processes.

The manager lives in ``switchboard.servers.manager``; it is not re-exported
here because it depends on the tools package, which depends on this one.
"""

from .handle import (
    ConnectionState,
    HandleStatus,
    ServerConfig,
    ToolDescriptor,
    ToolServerHandle,
)
from .process import ServerProcess

__all__ = [
    "ConnectionState",
    "HandleStatus",
    "ServerConfig",
    "ToolDescriptor",
    "ToolServerHandle",
    "ServerProcess",
]
