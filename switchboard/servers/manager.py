"""Tool server manager: the registry of server-id -> ToolServerHandle.

Lifecycle operations on the same id are serialized by a per-id lock, so a
stop can never race a start into an inconsistent state. Operations on
different ids run concurrently. Reads (status, tools) never take the per-id
locks and report whatever state a handle is in, including STARTING.
"""

import contextlib
import dataclasses
import logging
import threading
from typing import Any, Callable, Iterable, Optional, Union

from ..errors import DiscoveryFailure, DuplicateId, ToolInvocationError, UnknownId
from ..tools.catalog import DEFAULT_SEPARATOR, build_catalog, qualify_name
from ..tools.schema import ToolDef
from ..tools.thinking import default_builtin_tools
from .handle import ConnectionState, ServerConfig, ToolServerHandle
from .process import ServerProcess

_log = logging.getLogger(__name__)

Spawner = Callable[[ServerConfig], Any]


class _IdLock:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class ToolServerManager:
    """Owns tool server handles and drives their lifecycle.

    Args:
        spawner: Factory launching a process for a ServerConfig. The returned
            object must provide ``discover(timeout, cancel)``,
            ``call_tool(name, arguments, timeout)``, ``terminate(grace)`` and
            ``is_alive()``. Defaults to ServerProcess.spawn.
        discovery_timeout: Seconds allowed for one discovery round.
        separator: Joins server id and tool name in qualified names.
        builtin_tools: Tools appended to every catalog.
        stop_grace: Seconds a stopping process gets before it is killed.
    """

    def __init__(
        self,
        spawner: Optional[Spawner] = None,
        discovery_timeout: float = 10.0,
        separator: str = DEFAULT_SEPARATOR,
        builtin_tools: Optional[Iterable[ToolDef]] = None,
        stop_grace: float = 2.0,
    ):
        self._spawner = spawner or ServerProcess.spawn
        self.discovery_timeout = discovery_timeout
        self.separator = separator
        self.builtin_tools = tuple(
            default_builtin_tools() if builtin_tools is None else builtin_tools
        )
        self._stop_grace = stop_grace

        # Insertion order is registration order
        self._handles: dict[str, ToolServerHandle] = {}
        self._registry_lock = threading.Lock()
        self._id_locks: dict[str, _IdLock] = {}

    @contextlib.contextmanager
    def _lock_for(self, server_id: str):
        """Hold the lifecycle lock for ``server_id``.

        A lock is dropped once nobody holds or waits on it and its id is no
        longer registered, so the map never outgrows the live ids.
        """
        with self._registry_lock:
            entry = self._id_locks.get(server_id)
            if entry is None:
                entry = self._id_locks[server_id] = _IdLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._registry_lock:
                entry.users -= 1
                if entry.users == 0 and server_id not in self._handles:
                    del self._id_locks[server_id]

    def _require(self, server_id: str) -> ToolServerHandle:
        with self._registry_lock:
            handle = self._handles.get(server_id)
        if handle is None:
            raise UnknownId(server_id)
        return handle

    def _snapshot(self) -> list[ToolServerHandle]:
        with self._registry_lock:
            return list(self._handles.values())

    # Lifecycle

    def add_server(
        self,
        server_id: str,
        config: Union[ServerConfig, dict],
        cancel: Optional[threading.Event] = None,
    ) -> bool:
        """Register a server and immediately try to start it.

        Returns whether the start succeeded. The handle stays registered
        (in ERROR) when it did not.

        Raises:
            DuplicateId: ``server_id`` already has a handle.
        """
        if isinstance(config, dict):
            config = ServerConfig.from_dict(config, server_id)
        elif config.id != server_id:
            config = dataclasses.replace(config, id=server_id)

        with self._lock_for(server_id):
            with self._registry_lock:
                if server_id in self._handles:
                    raise DuplicateId(server_id)
                handle = ToolServerHandle(config)
                self._handles[server_id] = handle
            _log.info("Added server %s (%s)", server_id, config.command)
            return self._start_locked(handle, cancel)

    def start_server(self, server_id: str, cancel: Optional[threading.Event] = None) -> bool:
        """Spawn the server and run discovery. No-op success if already connected.

        Blocks until the handle settles in CONNECTED or ERROR.

        Raises:
            UnknownId: No handle for ``server_id``.
        """
        with self._lock_for(server_id):
            handle = self._require(server_id)
            return self._start_locked(handle, cancel)

    def _start_locked(self, handle: ToolServerHandle, cancel: Optional[threading.Event]) -> bool:
        if handle.state is ConnectionState.CONNECTED and handle.process_alive:
            return True

        # Dead or unusable process left over from an earlier run
        self._terminate(handle)
        handle.transition(ConnectionState.STARTING)
        _log.debug("Starting %s", handle.id)

        try:
            handle.process = self._spawner(handle.config)
            tools = handle.process.discover(self.discovery_timeout, cancel)
        except DiscoveryFailure as e:
            self._terminate(handle)
            handle.transition(ConnectionState.ERROR, error=e.message)
            _log.warning("Server %s failed to start: %s", handle.id, e.message)
            return False
        except Exception as e:
            # A misbehaving spawner or server must not take the manager down
            self._terminate(handle)
            handle.transition(ConnectionState.ERROR, error=f"{type(e).__name__}: {e}")
            _log.exception("Unexpected error starting %s", handle.id)
            return False
        except BaseException:
            self._terminate(handle)
            handle.transition(ConnectionState.ERROR, error="interrupted")
            raise

        handle.transition(ConnectionState.CONNECTED, tools=tuple(tools))
        _log.info("Server %s connected with %d tool(s)", handle.id, len(tools))
        return True

    def stop_server(self, server_id: str) -> bool:
        """Terminate the server's process and clear its tools. Idempotent.

        Returns False only when ``server_id`` is not registered.
        """
        with self._lock_for(server_id):
            with self._registry_lock:
                handle = self._handles.get(server_id)
            if handle is None:
                return False
            self._stop_locked(handle)
            return True

    def _stop_locked(self, handle: ToolServerHandle) -> None:
        was = handle.state
        self._terminate(handle)
        handle.transition(ConnectionState.DISCONNECTED)
        if was is not ConnectionState.DISCONNECTED:
            _log.info("Stopped server %s", handle.id)

    def _terminate(self, handle: ToolServerHandle) -> None:
        process, handle.process = handle.process, None
        if process is None:
            return
        try:
            process.terminate(self._stop_grace)
        except OSError as e:
            _log.warning("Error terminating %s: %s", handle.id, e)

    def remove_server(self, server_id: str) -> None:
        """Stop and forget a server. Removing an unknown id is a no-op."""
        with self._lock_for(server_id):
            with self._registry_lock:
                handle = self._handles.get(server_id)
            if handle is None:
                return
            self._stop_locked(handle)
            with self._registry_lock:
                del self._handles[server_id]
            _log.info("Removed server %s", server_id)

    def refresh_server(self, server_id: str, cancel: Optional[threading.Event] = None) -> bool:
        """Re-run discovery against the running process to pick up tool changes.

        On failure the handle moves to ERROR but the process is left running.
        A handle without a live process is started instead.

        Raises:
            UnknownId: No handle for ``server_id``.
        """
        with self._lock_for(server_id):
            handle = self._require(server_id)
            if not handle.process_alive:
                return self._start_locked(handle, cancel)

            try:
                tools = handle.process.discover(self.discovery_timeout, cancel)
            except DiscoveryFailure as e:
                handle.transition(ConnectionState.ERROR, error=e.message)
                _log.warning("Refresh of %s failed: %s", server_id, e.message)
                return False
            except Exception as e:
                # Malformed tool declarations and the like
                handle.transition(ConnectionState.ERROR, error=f"{type(e).__name__}: {e}")
                _log.exception("Unexpected error refreshing %s", server_id)
                return False

            handle.transition(ConnectionState.CONNECTED, tools=tuple(tools))
            _log.info("Refreshed %s: %d tool(s)", server_id, len(tools))
            return True

    def shutdown(self) -> None:
        """Stop every registered server."""
        for handle in self._snapshot():
            self.stop_server(handle.id)

    # Reads

    def get_handle(self, server_id: str) -> ToolServerHandle:
        return self._require(server_id)

    def get_servers_status(self) -> list[dict[str, Any]]:
        """One status record per handle, in registration order."""
        return [handle.describe() for handle in self._snapshot()]

    def get_all_tools(self) -> list[ToolDef]:
        """Catalog of tools from CONNECTED servers, built-ins last."""
        return build_catalog(self._snapshot(), self.builtin_tools, self.separator)

    # Invocation

    def call_tool(self, qualified_name: str, arguments: dict, timeout: float = 30.0) -> Any:
        """Forward a tool call to the connected server that owns the tool.

        Raises:
            ToolInvocationError: No connected server provides the tool, or
                the server failed to answer.
        """
        owner = None
        tool_name = ""
        for handle in self._snapshot():
            status = handle.status
            if status.state is not ConnectionState.CONNECTED:
                continue
            for tool in status.tools:
                # Later registrations shadow earlier ones, as in the catalog
                if qualify_name(handle.id, tool.name, self.separator) == qualified_name:
                    owner, tool_name = handle, tool.name

        if owner is None:
            raise ToolInvocationError(f"No connected server provides '{qualified_name}'")

        process = owner.process
        if process is None or not process.is_alive():
            raise ToolInvocationError(f"Server '{owner.id}' is not running")

        _log.debug("Calling %s on %s", tool_name, owner.id)
        return process.call_tool(tool_name, arguments, timeout)
