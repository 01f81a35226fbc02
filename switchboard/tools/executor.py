"""Execute tool calls requested by a model.

Built-ins run in process; server tools are forwarded to the owning tool
server through the ToolServerManager. Results and failures both come back as
JSON strings so the model can see what happened.
"""

import json
import logging
from typing import TYPE_CHECKING, Any, Iterable, Optional

from ..errors import SwitchboardError
from ..messages import ConversationMessage, Role
from .schema import ToolDef

if TYPE_CHECKING:
    from ..servers.manager import ToolServerManager

_log = logging.getLogger(__name__)


class ToolExecutor:
    """Execute catalog tools by qualified name with argument dicts."""

    def __init__(
        self,
        tools: Iterable[ToolDef],
        manager: Optional["ToolServerManager"] = None,
        timeout: float = 30.0,
    ):
        self._tools = {t.name: t for t in tools}
        self._manager = manager
        self._timeout = timeout

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools.keys())

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def execute(self, tool_name: str, arguments: dict[str, Any]) -> str:
        """Execute a tool call and return the result as a JSON string.

        On error, returns a JSON object with an ``error`` key.
        """
        tool = self._tools.get(tool_name)
        if tool is None:
            return json.dumps({"error": f"Unknown tool: {tool_name}"})

        missing = tool.missing_arguments(arguments)
        if missing:
            return json.dumps({
                "error": f"Missing required arguments for {tool_name}: {', '.join(missing)}",
            })

        if tool.handler is not None:
            try:
                result = tool.handler(**arguments)
            except TypeError as e:
                return json.dumps({"error": f"Invalid arguments for {tool_name}: {e}"})
            except Exception as e:
                _log.warning("Built-in tool %s failed: %s", tool_name, e)
                return json.dumps({"error": f"Tool {tool_name} failed: {e}"})
            return json.dumps({"result": result})

        if self._manager is None:
            return json.dumps({"error": f"No tool server manager to run {tool_name}"})

        try:
            result = self._manager.call_tool(tool_name, arguments, timeout=self._timeout)
        except SwitchboardError as e:
            _log.warning("Tool %s failed: %s", tool_name, e.message)
            return json.dumps({"error": e.message, "kind": e.kind})
        return json.dumps({"result": result})

    def execute_call(self, tool_call: dict[str, Any]) -> ConversationMessage:
        """Run one normalized tool call and wrap the output as a tool message."""
        name = tool_call.get("name", "")
        arguments = tool_call.get("arguments") or {}
        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments)
            except json.JSONDecodeError:
                arguments = None

        if not isinstance(arguments, dict):
            content = json.dumps({"error": f"Arguments for {name} are not a JSON object"})
        else:
            content = self.execute(name, arguments)

        return ConversationMessage(
            role=Role.TOOL,
            content=content,
            name=name,
            tool_call_id=tool_call.get("id"),
        )
