"""Flatten connected tool servers into one namespaced catalog."""

import logging
from typing import Iterable

from ..servers.handle import ConnectionState, ToolServerHandle
from .schema import ToolDef

_log = logging.getLogger(__name__)

DEFAULT_SEPARATOR = ":"


def qualify_name(server_id: str, tool_name: str, separator: str = DEFAULT_SEPARATOR) -> str:
    return f"{server_id}{separator}{tool_name}"


def build_catalog(
    handles: Iterable[ToolServerHandle],
    builtins: Iterable[ToolDef] = (),
    separator: str = DEFAULT_SEPARATOR,
) -> list[ToolDef]:
    """Build the catalog from ``handles`` (in registration order) plus built-ins.

    Only CONNECTED handles contribute. Built-ins always come last. If two
    servers produce the same qualified name the later one shadows the
    earlier entry in place. The result depends only on the inputs, so an
    unchanged server set yields an identical catalog.
    """
    by_name: dict[str, ToolDef] = {}

    for handle in handles:
        # One snapshot per handle: state and tools always agree
        status = handle.status
        if status.state is not ConnectionState.CONNECTED:
            continue

        server = handle.config
        for tool in status.tools:
            qualified = qualify_name(server.id, tool.name, separator)
            if qualified in by_name:
                _log.debug("%s from %s shadows an earlier entry", qualified, server.id)
            by_name[qualified] = ToolDef(
                name=qualified,
                description=f"{tool.description or tool.name} (from {server.name} server)",
                parameters=tool.input_schema,
                server_id=server.id,
                tool_name=tool.name,
            )

    return list(by_name.values()) + list(builtins)
