"""Parse tool server definitions from configuration data."""

import logging
from typing import Any, Union

from .handle import ServerConfig

_log = logging.getLogger(__name__)


def load_servers_from_config(
    servers_data: Union[list[dict[str, Any]], dict[str, dict[str, Any]], None],
) -> tuple[ServerConfig, ...]:
    """Parse server config entries into ServerConfig instances.

    Accepts a list of dicts, each with an ``id``, or a mapping of
    id -> entry. Each entry should have:
        command: str (required)
        name: str (optional, defaults to the id)
        args: list[str] (optional)
        env: dict (optional, merged over the inherited environment)
        enabled: bool (optional, default True)

    Invalid and disabled entries are skipped; duplicate ids keep the first.
    """
    if isinstance(servers_data, dict):
        entries = [
            (entry, str(server_id))
            for server_id, entry in servers_data.items()
        ]
    else:
        entries = [(entry, None) for entry in servers_data or ()]

    servers = []
    seen = set()
    for entry, server_id in entries:
        if not isinstance(entry, dict):
            continue
        if not entry.get("enabled", True):
            continue
        try:
            config = ServerConfig.from_dict(entry, server_id=server_id)
        except (TypeError, ValueError, AttributeError) as e:
            _log.warning("Skipping invalid server entry %r: %s", entry, e)
            continue
        if config.id in seen:
            _log.warning("Skipping duplicate server id %s", config.id)
            continue
        seen.add(config.id)
        servers.append(config)

    return tuple(servers)
