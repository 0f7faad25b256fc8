"""
Stdio transport for MCP.

Runs a tool server as a child process wrapped in the user's login shell and
exchanges newline-delimited JSON-RPC messages over its stdin/stdout.
"""

import asyncio
import codecs
import json
import logging
import os
import signal
from collections import deque
from typing import TYPE_CHECKING, Any

from mcp_hub.domain.model.mcp.server import ServerDefinition
from mcp_hub.infrastructure.mcp.transport.base import (
    BaseTransport,
    MCPTransportClosedError,
    MCPTransportError,
)
from mcp_hub.infrastructure.mcp.transport.shell import (
    ShellWrapper,
    build_command_string,
    get_login_shell_wrapper,
)

if TYPE_CHECKING:
    from mcp_hub.configuration.config import Settings

logger = logging.getLogger(__name__)

SHUTDOWN_MESSAGE = {"jsonrpc": "2.0", "method": "shutdown", "id": "shutdown"}

# Known stderr banners of popular servers that are not errors
BENIGN_STDERR_MARKERS = (
    "chrome-devtools-mcp exposes content",
    "Avoid sharing sensitive",
    "debug, and modify any data",
)

READ_CHUNK_SIZE = 64 * 1024

# stderr lines kept for the close reason of a crashed process
STDERR_TAIL_LINES = 5
STDERR_DRAIN_TIMEOUT = 1.0


class StdioTransport(BaseTransport):
    """
    MCP transport using stdio (subprocess communication).

    stdout is buffered and split on newlines; only lines starting with ``{``
    are protocol traffic, everything else is log noise. stderr is logged
    and never affects the connection.

    On POSIX the shell runs in its own session. Shutdown signals the whole
    process group, which also reaches a server the shell forked instead of
    exec'ing.
    """

    def __init__(
        self,
        server: ServerDefinition,
        shutdown_grace_period: float = 1.0,
        kill_timeout: float = 5.0,
        shell: ShellWrapper | None = None,
    ) -> None:
        super().__init__(server)
        self._shutdown_grace_period = shutdown_grace_period
        self._kill_timeout = kill_timeout
        self._shell = shell or get_login_shell_wrapper()
        self._use_process_group = os.name == "posix"
        self._process: asyncio.subprocess.Process | None = None
        self._start_task: asyncio.Future[None] | None = None
        self._stdout_task: asyncio.Task[None] | None = None
        self._stderr_task: asyncio.Task[None] | None = None
        self._buffer = ""
        self._stderr_tail: deque[str] = deque(maxlen=STDERR_TAIL_LINES)

    @classmethod
    def from_settings(cls, server: ServerDefinition, settings: "Settings") -> "StdioTransport":
        return cls(
            server,
            shutdown_grace_period=settings.mcp_shutdown_grace_period,
            kill_timeout=settings.mcp_process_kill_timeout,
            shell=get_login_shell_wrapper(override=settings.mcp_login_shell),
        )

    @property
    def process_id(self) -> int | None:
        return self._process.pid if self._process else None

    @property
    def command_line(self) -> str:
        return build_command_string(
            self._server.process_command or "",
            self._server.process_args,
            posix=self._shell.is_posix,
        )

    def is_ready(self) -> bool:
        return self._is_open and self._process is not None

    async def start(self) -> None:
        """
        Spawn the server process.

        Concurrent callers share one spawn; calling again while the process
        runs is a no-op. Once the process has exited, a new one is spawned.

        Raises:
            MCPTransportError: If the process cannot be spawned.
        """
        if self.is_ready():
            return
        if self._start_task is None:
            self._start_task = asyncio.ensure_future(self._spawn())
        try:
            await asyncio.shield(self._start_task)
        except Exception:
            self._start_task = None
            raise

    async def _spawn(self) -> None:
        if not self._server.process_command:
            raise MCPTransportError(f"MCP server '{self.server_id}' has no process command")

        argv = self._shell.wrap(self.command_line)
        logger.info(f"[{self.server_id}] Starting MCP server via {self._shell.name}: {self.command_line}")

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=self._use_process_group,
            )
        except OSError as e:
            logger.error(f"[{self.server_id}] Failed to spawn MCP server: {e}")
            raise MCPTransportError(f"Failed to spawn MCP server '{self.server_id}': {e}", original_error=e) from e

        self._process = process
        self._buffer = ""
        self._stderr_tail.clear()
        self._close_reason = None
        self._is_open = True
        self._close_notified = False
        self._stderr_task = asyncio.create_task(self._read_stderr(process))
        self._stdout_task = asyncio.create_task(self._read_stdout(process, self._stderr_task))
        logger.info(f"[{self.server_id}] MCP server process started (pid={process.pid})")

    async def _read_stdout(self, process: asyncio.subprocess.Process, stderr_task: asyncio.Task[None]) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        assert process.stdout is not None
        try:
            while True:
                chunk = await process.stdout.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                await self._handle_stdout_data(decoder.decode(chunk))
            await self._handle_stdout_data(decoder.decode(b"", final=True))
        except Exception as e:
            logger.warning(f"[{self.server_id}] Error reading stdout: {e}")
            await self._notify_error(e)

        code = await process.wait()
        logger.info(f"[{self.server_id}] MCP server process exited with code {code}")
        if self._process is not process:
            return

        # Collect the last stderr lines for the close reason
        await asyncio.wait({stderr_task}, timeout=STDERR_DRAIN_TIMEOUT)
        if self._process is not process:
            return

        self._kill_process_group(process)
        self._close_reason = self._describe_exit(code)
        self._is_open = False
        self._start_task = None
        await self._notify_close()

    async def _read_stderr(self, process: asyncio.subprocess.Process) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        assert process.stderr is not None
        try:
            while True:
                chunk = await process.stderr.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                self._handle_stderr_data(decoder.decode(chunk))
        except Exception as e:
            logger.debug(f"[{self.server_id}] Error reading stderr: {e}")

    async def _handle_stdout_data(self, data: str) -> None:
        """Append decoded stdout data and dispatch every complete line."""
        self._buffer += data
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()

        for raw_line in lines:
            line = raw_line.strip()
            if not line:
                continue
            if not line.startswith("{"):
                logger.debug(f"[{self.server_id}] Skipping non-JSON stdout line: {line[:200]}")
                continue
            try:
                message = json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning(f"[{self.server_id}] Dropping unparseable message ({e}): {line[:200]}")
                continue
            await self._notify_message(message)

    def _handle_stderr_data(self, data: str) -> None:
        text = data.strip()
        if not text:
            return
        self._stderr_tail.extend(line.strip() for line in text.splitlines() if line.strip())
        if any(marker in text for marker in BENIGN_STDERR_MARKERS):
            logger.info(f"[{self.server_id}] MCP server notice: {text}")
        else:
            logger.warning(f"[{self.server_id}] MCP server stderr: {text}")

    def _describe_exit(self, code: int | None) -> str:
        reason = f"process exited with code {code}"
        if self._stderr_tail:
            reason += f" ({' | '.join(self._stderr_tail)})"
        return reason

    async def send(self, message: dict[str, Any]) -> None:
        """
        Write one message as a JSON line to the process stdin.

        Raises:
            MCPTransportClosedError: If the process is not running.
            MCPTransportError: If the pipe is broken.
        """
        process = self._process
        if not self._is_open or process is None or process.stdin is None or process.returncode is not None:
            detail = f": {self._close_reason}" if self._close_reason else ""
            raise MCPTransportClosedError(f"MCP server '{self.server_id}' is not running{detail}")

        logger.debug(f"[{self.server_id}] Sending: {message.get('method', 'response')} (id={message.get('id')})")
        try:
            process.stdin.write((json.dumps(message) + "\n").encode("utf-8"))
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise MCPTransportError(f"Failed to write to MCP server '{self.server_id}': {e}", original_error=e) from e

    def _signal(self, process: asyncio.subprocess.Process, force: bool = False) -> None:
        """Send SIGTERM (SIGKILL when forced) to the process group, or to the process alone off POSIX."""
        if self._use_process_group:
            try:
                os.killpg(process.pid, signal.SIGKILL if force else signal.SIGTERM)
                return
            except PermissionError:
                pass
        if force:
            process.kill()
        else:
            process.terminate()

    def _kill_process_group(self, process: asyncio.subprocess.Process) -> None:
        """Kill anything still running in the group of an exited shell."""
        if not self._use_process_group:
            return
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except (ProcessLookupError, PermissionError):
            pass

    async def close(self) -> None:
        """
        Shut the process down.

        Writes a shutdown message and waits the grace period, then
        terminates the process group if the process is still alive, killing
        it when it ignores the terminate signal. A spawn in progress is
        awaited first so its process is shut down too. No-op when not
        started.
        """
        start_task = self._start_task
        if start_task is not None and not start_task.done():
            try:
                await asyncio.shield(start_task)
            except Exception as e:
                logger.debug(f"[{self.server_id}] Pending start failed during close: {e}")

        process = self._process
        if process is None:
            self._start_task = None
            return

        self._process = None
        self._is_open = False
        logger.info(f"[{self.server_id}] Closing MCP server process (pid={process.pid})")

        if process.returncode is None and process.stdin is not None:
            try:
                process.stdin.write((json.dumps(SHUTDOWN_MESSAGE) + "\n").encode("utf-8"))
                await process.stdin.drain()
                await asyncio.sleep(self._shutdown_grace_period)
            except Exception as e:
                logger.warning(f"[{self.server_id}] Graceful shutdown failed: {e}")

        if process.returncode is None:
            try:
                self._signal(process)
                await asyncio.wait_for(process.wait(), timeout=self._kill_timeout)
            except ProcessLookupError:
                pass
            except TimeoutError:
                logger.warning(f"[{self.server_id}] Process ignored terminate, killing")
                try:
                    self._signal(process, force=True)
                except ProcessLookupError:
                    pass
                await process.wait()
        self._kill_process_group(process)

        readers = [
            task
            for task in (self._stdout_task, self._stderr_task)
            if task is not None and task is not asyncio.current_task() and not task.done()
        ]
        for task in readers:
            task.cancel()
        if readers:
            await asyncio.gather(*readers, return_exceptions=True)

        self._stdout_task = None
        self._stderr_task = None
        self._start_task = None
        self._buffer = ""

        logger.info(f"[{self.server_id}] Stdio transport closed")
        await self._notify_close()
