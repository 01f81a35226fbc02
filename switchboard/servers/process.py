"""Spawn a tool server process and talk to it through an MCP client session.

The session is owned by a dedicated event-loop thread: one long-lived task
enters ``stdio_client`` and ``ClientSession`` and holds them open until the
process is terminated. The public methods are synchronous; each submits a
coroutine to that loop and waits on it with a deadline and an optional
cancellation event. The session matches replies to request ids, so a slow
``tools/call`` never holds up a concurrent discovery round.
"""

import asyncio
import concurrent.futures
import logging
import os
import threading
import time
from typing import Any, Optional

import anyio
import mcp.types as types
from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client
from mcp.shared.exceptions import McpError

from .. import __version__
from ..errors import DiscoveryFailure, DiscoveryTimeout, ToolInvocationError
from .handle import ServerConfig, ToolDescriptor

_log = logging.getLogger(__name__)

_POLL_INTERVAL = 0.05
_LAUNCH_TIMEOUT = 10.0
# Extra time on top of the grace period for the transport to wind down
_SHUTDOWN_SLACK = 5.0


class ServerProcess:
    """One running tool server process and its client session."""

    def __init__(self, config: ServerConfig):
        self.config = config
        self._session: Optional[ClientSession] = None
        self._initialized = False
        self._closed = False
        self._closing: Optional[asyncio.Event] = None
        self._launch_error: Optional[BaseException] = None
        self._launched = threading.Event()
        self._exited = threading.Event()

        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._loop.run_forever, name=f"{config.id}-mcp", daemon=True,
        )
        self._thread.start()
        self._runner = asyncio.run_coroutine_threadsafe(self._serve(), self._loop)

    @classmethod
    def spawn(cls, config: ServerConfig) -> "ServerProcess":
        """Launch ``config.command`` with ``config.env`` laid over os.environ.

        Blocks until the process is running and its session is open.

        Raises:
            DiscoveryFailure: The process could not be launched.
        """
        process = cls(config)
        if not process._launched.wait(_LAUNCH_TIMEOUT):
            process.terminate()
            raise DiscoveryFailure(f"Timed out launching '{config.command}'")
        if process._launch_error is not None:
            error = process._launch_error
            process.terminate()
            raise DiscoveryFailure(f"Failed to launch '{config.command}': {error}") from error
        _log.debug("Spawned %s", config.id)
        return process

    def is_alive(self) -> bool:
        return self._launched.is_set() and not self._exited.is_set() and not self._closed

    # Event loop side

    def _parameters(self, env: dict) -> StdioServerParameters:
        return StdioServerParameters(
            command=self.config.command,
            args=list(self.config.args),
            env=env,
            # Stray bytes in a banner must not kill the transport
            encoding_error_handler="replace",
        )

    async def _serve(self) -> None:
        self._closing = asyncio.Event()
        env = dict(os.environ)
        env.update(self.config.env)
        errlog = self._stderr_pipe()
        try:
            async with stdio_client(self._parameters(env), errlog=errlog) as (read, write):
                # The child holds its own copy of the write end now
                errlog.close()
                send, receive = anyio.create_memory_object_stream(0)
                async with anyio.create_task_group() as tg:
                    tg.start_soon(self._pump, read, send)
                    async with ClientSession(
                        receive,
                        write,
                        client_info=types.Implementation(name="switchboard", version=__version__),
                    ) as session:
                        self._session = session
                        self._launched.set()
                        await self._closing.wait()
                    tg.cancel_scope.cancel()
        except Exception as e:
            if not self._launched.is_set():
                self._launch_error = e
            else:
                _log.debug("Session for %s ended: %s", self.config.id, e)
        finally:
            if not errlog.closed:
                errlog.close()
            self._session = None
            self._exited.set()
            self._launched.set()

    async def _pump(self, source, sink) -> None:
        """Forward transport messages to the session and note when stdout ends."""
        async with sink:
            async for message in source:
                await sink.send(message)
        _log.debug("Server %s closed its output", self.config.id)
        self._exited.set()

    def _stderr_pipe(self):
        """Writable end of a pipe whose lines are logged at DEBUG."""
        read_fd, write_fd = os.pipe()
        reader = os.fdopen(read_fd, "r", encoding="utf-8", errors="replace")

        def drain():
            with reader:
                for line in reader:
                    _log.debug("[%s] %s", self.config.id, line.rstrip())

        threading.Thread(target=drain, name=f"{self.config.id}-stderr", daemon=True).start()
        return os.fdopen(write_fd, "w")

    # Caller side

    def _run(
        self,
        coro,
        action: str,
        deadline: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Any:
        """Run ``coro`` on the session loop, bounded by ``deadline`` and ``cancel``.

        Raises:
            DiscoveryTimeout: No reply before ``deadline`` (time.monotonic()).
            DiscoveryFailure: Error reply, process exit, or cancellation.
        """
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            while True:
                if cancel is not None and cancel.is_set():
                    raise DiscoveryFailure(f"'{action}' to '{self.config.id}' was cancelled")
                timeout = _POLL_INTERVAL
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise DiscoveryTimeout(
                            f"Server '{self.config.id}' did not answer '{action}' in time"
                        )
                    timeout = min(remaining, _POLL_INTERVAL)

                try:
                    return future.result(timeout=timeout)
                except concurrent.futures.TimeoutError:
                    pass

                if self._exited.is_set() and not future.done():
                    raise DiscoveryFailure(
                        f"Server '{self.config.id}' exited before answering '{action}'"
                    )
        except McpError as e:
            if self._exited.is_set():
                raise DiscoveryFailure(
                    f"Server '{self.config.id}' exited before answering '{action}'"
                ) from e
            raise DiscoveryFailure(
                f"'{action}' failed on '{self.config.id}': {e.error.message}"
            ) from e
        finally:
            # No-op once the reply is in
            future.cancel()

    def _require_session(self) -> ClientSession:
        session = self._session
        if self._exited.is_set() and not self._closed:
            raise DiscoveryFailure(f"Server '{self.config.id}' exited")
        if session is None or not self.is_alive():
            raise DiscoveryFailure(f"Server '{self.config.id}' is not running")
        return session

    def discover(
        self,
        timeout: float,
        cancel: Optional[threading.Event] = None,
    ) -> list[ToolDescriptor]:
        """Run the discovery round and return the declared tools.

        The handshake is only performed once per process; later calls (refresh)
        just re-list tools, following ``nextCursor`` pages. ``timeout`` bounds
        the whole round.
        """
        deadline = time.monotonic() + timeout
        session = self._require_session()

        if not self._initialized:
            info = self._run(session.initialize(), "initialize", deadline, cancel)
            self._initialized = True
            _log.debug("Initialized %s: %s", self.config.id, info.serverInfo)

        tools = []
        cursor = None
        while True:
            if cursor:
                coro = session.list_tools(cursor=cursor)
            else:
                coro = session.list_tools()
            result = self._run(coro, "tools/list", deadline, cancel)
            for tool in result.tools:
                tools.append(ToolDescriptor.from_dict(
                    tool.model_dump(by_alias=True, exclude_none=True)
                ))
            cursor = result.nextCursor
            if not cursor:
                break

        return tools

    def call_tool(self, name: str, arguments: dict, timeout: float = 30.0) -> dict:
        """Invoke one tool and return the result payload as plain JSON data."""
        try:
            session = self._require_session()
            result = self._run(
                session.call_tool(name, arguments=arguments),
                "tools/call",
                deadline=time.monotonic() + timeout,
            )
        except DiscoveryFailure as e:
            raise ToolInvocationError(str(e)) from e
        return result.model_dump(mode="json", by_alias=True, exclude_none=True)

    def terminate(self, grace: float = 2.0) -> None:
        """Close the session and stop the process. Idempotent.

        The transport closes the child's input, then signals it, then kills
        it if it is still running.
        """
        if self._closed:
            return
        self._closed = True

        if self._closing is not None:
            self._loop.call_soon_threadsafe(self._closing.set)
        try:
            self._runner.result(timeout=grace + _SHUTDOWN_SLACK)
        except concurrent.futures.TimeoutError:
            _log.warning("Server %s did not shut down, cancelling its session", self.config.id)
            self._runner.cancel()
        except concurrent.futures.CancelledError:
            pass

        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=grace + _SHUTDOWN_SLACK)
        if not self._thread.is_alive():
            self._loop.close()
        _log.debug("Terminated %s", self.config.id)
