"""Wiring of config, tool server manager and provider gateway."""

import dataclasses
import logging
from typing import Iterable, Optional, Union

import httpx

from .config import ConfigManager
from .gateway import ProviderGateway
from .messages import ConversationMessage
from .models import ModelDescriptor
from .providers.base import SendOptions
from .providers.response import ProviderResponse
from .servers.manager import Spawner, ToolServerManager
from .tools.executor import ToolExecutor
from .tools.schema import ToolDef
from .tools.thinking import default_builtin_tools

_log = logging.getLogger(__name__)


class Switchboard:
    """Main switchboard application.

    Handles the "send message with tools" flow: read the live catalog from
    the manager, hand it to the gateway with the conversation, and run any
    tool calls the model asks for.
    """

    def __init__(
        self,
        config: Optional[ConfigManager] = None,
        spawner: Optional[Spawner] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.config = config or ConfigManager()
        tools_config = self.config.get_tools_config()
        builtins = default_builtin_tools() if tools_config.get("sequential_thinking", True) else ()

        self.manager = ToolServerManager(
            spawner=spawner,
            discovery_timeout=self.config.get_discovery_timeout(),
            separator=tools_config.get("separator") or ":",
            builtin_tools=builtins,
        )
        self.gateway = ProviderGateway.from_config(
            self.config.get_provider_configs(), client=client,
        )

    def start_configured_servers(self) -> dict[str, bool]:
        """Add every enabled server from config. Returns id -> started.

        Servers that are already registered are started instead of added.
        """
        results = {}
        registered = {s["id"] for s in self.manager.get_servers_status()}
        for server in self.config.get_server_configs():
            if server.id in registered:
                results[server.id] = self.manager.start_server(server.id)
            else:
                results[server.id] = self.manager.add_server(server.id, server)
            if not results[server.id]:
                _log.warning("Server %s did not start", server.id)
        return results

    def catalog(self) -> list[ToolDef]:
        return self.manager.get_all_tools()

    def send_with_tools(
        self,
        messages: Iterable[Union[ConversationMessage, dict]],
        model: Union[ModelDescriptor, dict],
        use_tools: bool = True,
        options: Optional[SendOptions] = None,
    ) -> ProviderResponse:
        """Send a conversation with the current catalog attached."""
        options = options or SendOptions()
        if use_tools:
            options = dataclasses.replace(options, tools=self.catalog())
        return self.gateway.send_message(messages, model, options)

    def run_tool_calls(self, response: ProviderResponse) -> list[ConversationMessage]:
        """Execute the tool calls in ``response``, one tool message per call."""
        if not response.tool_calls:
            return []
        executor = ToolExecutor(self.catalog(), manager=self.manager)
        return [executor.execute_call(call) for call in response.tool_calls]

    def shutdown(self) -> None:
        self.manager.shutdown()
        self.gateway.close()
