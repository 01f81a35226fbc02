"""switchboard - tool server orchestration and multi-provider model routing."""

__version__ = "0.1.0"

from .errors import SwitchboardError
from .gateway import ProviderGateway
from .messages import ConversationMessage, ContentPart, Role
from .models import ModelDescriptor, ProviderKind
from .providers.base import ProviderConfig, SendOptions
from .providers.response import ProviderResponse
from .servers.handle import ConnectionState, ServerConfig
from .servers.manager import ToolServerManager

__all__ = [
    "__version__",
    "SwitchboardError",
    "ProviderGateway",
    "ConversationMessage",
    "ContentPart",
    "Role",
    "ModelDescriptor",
    "ProviderKind",
    "ProviderConfig",
    "SendOptions",
    "ProviderResponse",
    "ConnectionState",
    "ServerConfig",
    "ToolServerManager",
]
