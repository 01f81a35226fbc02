"""Tool definitions as handed to providers.

Server-derived tools carry an opaque JSON Schema taken verbatim from
discovery. Built-in tools are plain Python callables whose schema is derived
from their signature and Google-style docstring.
"""

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, get_type_hints


_TYPE_MAP = {
    str: {"type": "string"},
    int: {"type": "integer"},
    float: {"type": "number"},
    bool: {"type": "boolean"},
    list: {"type": "array"},
    dict: {"type": "object"},
}


@dataclass(frozen=True)
class ToolDef:
    """One callable tool in the catalog.

    ``name`` is the qualified catalog name. For server tools ``server_id`` and
    ``tool_name`` locate the original tool; built-ins carry a ``handler``.
    """

    name: str
    description: str
    parameters: dict
    handler: Optional[Callable] = field(default=None, compare=False)
    server_id: Optional[str] = None
    tool_name: str = ""
    builtin: bool = False

    def missing_arguments(self, arguments: dict) -> list[str]:
        """Required parameters absent from ``arguments``."""
        required = self.parameters.get("required") or []
        return [name for name in required if name not in arguments]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
            "server_id": self.server_id,
            "builtin": self.builtin,
        }


def _annotation_to_schema(annotation: Any) -> dict:
    if annotation is inspect.Parameter.empty or annotation is None:
        return {"type": "string"}

    schema = _TYPE_MAP.get(annotation)
    if schema:
        return dict(schema)

    origin = getattr(annotation, "__origin__", None)
    args = getattr(annotation, "__args__", ())

    # Optional[X]
    if origin is not None and len(args) == 2 and type(None) in args:
        inner = [a for a in args if a is not type(None)][0]
        return _annotation_to_schema(inner)

    if origin is list and args:
        return {"type": "array", "items": _annotation_to_schema(args[0])}

    if origin is dict:
        return {"type": "object"}

    return {"type": "string"}


def _split_docstring(doc: str) -> tuple[str, dict[str, str]]:
    """Return (summary, {param: description}) from a Google-style docstring."""
    summary_lines = []
    params: dict[str, str] = {}
    section = "summary"

    for line in doc.splitlines():
        stripped = line.strip()
        if section == "summary":
            if stripped.lower() in ("args:", "arguments:"):
                section = "args"
            elif stripped:
                summary_lines.append(stripped)
            elif summary_lines:
                section = "body"
            continue
        if stripped.lower() in ("args:", "arguments:"):
            section = "args"
            continue
        if section == "args":
            if stripped.endswith(":") and " " not in stripped:
                # Returns:, Raises:, ...
                section = "body"
                continue
            name, sep, text = stripped.partition(":")
            name = name.split(" (")[0].strip()
            if sep and name.isidentifier():
                params[name] = text.strip()

    return " ".join(summary_lines), params


def callable_to_tool_def(
    name: str,
    fn: Callable,
    description: str = "",
    builtin: bool = False,
) -> ToolDef:
    """Build a ToolDef from a Python callable's signature and docstring."""
    sig = inspect.signature(fn)
    summary, param_docs = _split_docstring(inspect.getdoc(fn) or "")

    try:
        hints = get_type_hints(fn)
    except Exception:
        hints = {}

    properties = {}
    required = []

    for param_name, param in sig.parameters.items():
        if param_name in ("self", "cls"):
            continue

        prop_schema = _annotation_to_schema(hints.get(param_name, param.annotation))
        if param_name in param_docs:
            prop_schema["description"] = param_docs[param_name]
        properties[param_name] = prop_schema

        if param.default is inspect.Parameter.empty:
            required.append(param_name)

    parameters: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        parameters["required"] = required

    return ToolDef(
        name=name,
        description=description or summary,
        parameters=parameters,
        handler=fn,
        tool_name=name,
        builtin=builtin,
    )
