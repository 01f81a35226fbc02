"""Tool catalog: qualified server tools plus always-present built-ins."""

from .schema import ToolDef, callable_to_tool_def
from .catalog import build_catalog, qualify_name, DEFAULT_SEPARATOR
from .thinking import SEQUENTIAL_THINKING, default_builtin_tools
from .executor import ToolExecutor

__all__ = [
    "ToolDef",
    "callable_to_tool_def",
    "build_catalog",
    "qualify_name",
    "DEFAULT_SEPARATOR",
    "SEQUENTIAL_THINKING",
    "default_builtin_tools",
    "ToolExecutor",
]
