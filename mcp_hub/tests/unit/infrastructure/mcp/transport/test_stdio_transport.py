"""Unit tests for the stdio (child process) transport."""

import asyncio
import json
import os
import shutil
import signal
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from mcp_hub.domain.model.mcp.server import ServerDefinition, ServerProtocol
from mcp_hub.infrastructure.mcp.transport import stdio
from mcp_hub.infrastructure.mcp.transport.base import MCPTransportClosedError, MCPTransportError
from mcp_hub.infrastructure.mcp.transport.shell import ShellWrapper
from mcp_hub.infrastructure.mcp.transport.stdio import SHUTDOWN_MESSAGE, StdioTransport

posix_only = pytest.mark.skipif(os.name != "posix", reason="process groups are POSIX only")
requires_sh = pytest.mark.skipif(
    os.name != "posix" or shutil.which("sh") is None or shutil.which("sleep") is None,
    reason="requires a POSIX sh",
)


@pytest.fixture
def server():
    return ServerDefinition(
        id="fs",
        name="Filesystem",
        protocol=ServerProtocol.PROCESS,
        process_command="npx",
        process_args=["-y", "server filesystem"],
    )


@pytest.fixture
def events():
    return []


@pytest.fixture
def killpg(monkeypatch, events):
    """Record process group signals instead of sending them."""
    fake = MagicMock(side_effect=lambda pid, sig: events.append(("killpg", sig)))
    monkeypatch.setattr(stdio.os, "killpg", fake, raising=False)
    return fake


@pytest.fixture
def transport(server, killpg):
    return StdioTransport(
        server,
        shutdown_grace_period=0.5,
        kill_timeout=0.5,
        shell=ShellWrapper("bash", ("-l", "-c")),
    )


@pytest.fixture
def received(transport):
    messages = []
    transport.on_message(messages.append)
    return messages


def make_process(events=None):
    """Mock asyncio subprocess that is alive until terminated."""
    events = events if events is not None else []
    process = MagicMock()
    process.pid = 4242
    process.returncode = None
    process.stdin = MagicMock()
    process.stdin.write = MagicMock(side_effect=lambda data: events.append(("write", data)))
    process.stdin.drain = AsyncMock()
    process.terminate = MagicMock(side_effect=lambda: events.append(("terminate",)))
    process.kill = MagicMock(side_effect=lambda: events.append(("kill",)))
    process.wait = AsyncMock(return_value=0)
    return process


def make_running_process(events=None):
    """Mock process whose stdout stays open until the reader is cancelled."""
    process = make_process(events)
    process.stdout = MagicMock()
    process.stdout.read = AsyncMock(side_effect=block_forever)
    process.stderr = MagicMock()
    process.stderr.read = AsyncMock(return_value=b"")
    return process


async def block_forever(*args):
    await asyncio.Event().wait()


def attach(transport, process):
    transport._process = process
    transport._is_open = True


async def stop_readers(transport):
    transport._process = None
    for task in (transport._stdout_task, transport._stderr_task):
        task.cancel()
    await asyncio.gather(transport._stdout_task, transport._stderr_task, return_exceptions=True)


def is_running(pid):
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    stat = Path(f"/proc/{pid}/stat")
    if stat.exists():
        return stat.read_text().rsplit(")", 1)[1].split()[0] != "Z"
    return True


@pytest.mark.unit
class TestStdoutFraming:
    """Tests for newline-delimited JSON framing on stdout."""

    async def test_message_split_across_chunks(self, transport, received):
        """A message split across two reads is dispatched once complete."""
        await transport._handle_stdout_data('{"id":1,"resu')
        assert received == []

        await transport._handle_stdout_data('lt":{}}\n')

        assert received == [{"id": 1, "result": {}}]
        assert transport._buffer == ""

    async def test_noise_line_is_skipped(self, transport, received, caplog):
        caplog.set_level("DEBUG")

        await transport._handle_stdout_data('Server listening on stdio\n{"id":2,"result":{"ok":true}}\n')

        assert received == [{"id": 2, "result": {"ok": True}}]
        assert not [r for r in caplog.records if r.levelname in ("WARNING", "ERROR")]

    async def test_multiple_messages_in_one_chunk(self, transport, received):
        await transport._handle_stdout_data('{"id":1}\n{"id":2}\n{"id":')

        assert received == [{"id": 1}, {"id": 2}]
        assert transport._buffer == '{"id":'

    async def test_unparseable_json_line_is_dropped(self, transport, received, caplog):
        await transport._handle_stdout_data('{"id": 1, broken\n{"id":3}\n')

        assert received == [{"id": 3}]
        assert any("unparseable" in r.message for r in caplog.records)

    async def test_crlf_line_endings(self, transport, received):
        await transport._handle_stdout_data('{"id":5}\r\n')
        assert received == [{"id": 5}]

    async def test_failing_handler_does_not_stop_dispatch(self, transport, received):
        def broken(message):
            raise RuntimeError("handler bug")

        transport._message_handlers.insert(0, broken)

        await transport._handle_stdout_data('{"id":9}\n')

        assert received == [{"id": 9}]


@pytest.mark.unit
class TestStderrHandling:
    """Tests for stderr logging."""

    def test_benign_banner_logged_as_info(self, transport, caplog):
        caplog.set_level("INFO")
        transport._handle_stderr_data("chrome-devtools-mcp exposes content of the browser instance")

        record = caplog.records[-1]
        assert record.levelname == "INFO"

    def test_other_output_logged_as_warning(self, transport, caplog):
        transport._handle_stderr_data("npm WARN deprecated package")

        assert caplog.records[-1].levelname == "WARNING"
        assert transport.is_ready() is False

    def test_tail_keeps_last_lines(self, transport):
        transport._handle_stderr_data("\n".join(f"line {i}" for i in range(10)))

        assert list(transport._stderr_tail) == [f"line {i}" for i in range(5, 10)]


@pytest.mark.unit
class TestStdioStart:
    """Tests for spawning the child process."""

    def test_command_line_quotes_arguments(self, transport):
        assert transport.command_line == 'npx -y "server filesystem"'

    async def test_start_wraps_command_in_login_shell(self, transport):
        process = make_running_process()

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)) as spawn:
            await transport.start()

        args = spawn.call_args.args
        assert args == ("bash", "-l", "-c", 'npx -y "server filesystem"')
        assert spawn.call_args.kwargs["start_new_session"] is (os.name == "posix")
        assert transport.is_ready() is True
        assert transport.process_id == 4242

        await stop_readers(transport)

    async def test_concurrent_start_spawns_once(self, transport):
        process = make_running_process()

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)) as spawn:
            await asyncio.gather(transport.start(), transport.start(), transport.start())
            await transport.start()

        assert spawn.await_count == 1

        await stop_readers(transport)

    async def test_spawn_failure_raises_transport_error(self, transport):
        with patch(
            "asyncio.create_subprocess_exec",
            AsyncMock(side_effect=FileNotFoundError("bash not found")),
        ):
            with pytest.raises(MCPTransportError, match="Failed to spawn"):
                await transport.start()

        assert transport.is_ready() is False
        assert transport._start_task is None


@pytest.mark.unit
@posix_only
class TestStdioProcessExit:
    """Tests for a process that exits on its own."""

    @pytest.fixture
    def exited_process(self):
        process = make_process()
        process.stdout = MagicMock()
        process.stdout.read = AsyncMock(return_value=b"")
        process.stderr = MagicMock()
        process.stderr.read = AsyncMock(side_effect=[b"boom: command not found\n", b""])
        process.wait = AsyncMock(return_value=127)
        return process

    async def test_exit_code_and_stderr_become_close_reason(self, transport, exited_process):
        closed = asyncio.Event()
        transport.on_close(closed.set)

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=exited_process)):
            await transport.start()
            await asyncio.wait_for(closed.wait(), timeout=2)

        assert transport.is_ready() is False
        assert transport.close_reason == "process exited with code 127 (boom: command not found)"
        with pytest.raises(MCPTransportClosedError, match="code 127"):
            await transport.send({"jsonrpc": "2.0", "method": "ping", "id": 1})

    async def test_exit_sweeps_leftover_process_group(self, transport, exited_process, events):
        closed = asyncio.Event()
        transport.on_close(closed.set)

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=exited_process)):
            await transport.start()
            await asyncio.wait_for(closed.wait(), timeout=2)

        assert events == [("killpg", signal.SIGKILL)]

    async def test_start_after_exit_spawns_again(self, transport, exited_process):
        closed = asyncio.Event()
        transport.on_close(closed.set)
        replacement = make_running_process()
        replacement.pid = 4343

        with patch(
            "asyncio.create_subprocess_exec", AsyncMock(side_effect=[exited_process, replacement])
        ) as spawn:
            await transport.start()
            await asyncio.wait_for(closed.wait(), timeout=2)
            await transport.start()

        assert spawn.await_count == 2
        assert transport.is_ready() is True
        assert transport.process_id == 4343
        assert transport.close_reason is None

        await stop_readers(transport)


@pytest.mark.unit
class TestStdioSend:
    """Tests for writing messages to stdin."""

    async def test_send_before_start_raises(self, transport):
        with pytest.raises(MCPTransportClosedError):
            await transport.send({"jsonrpc": "2.0", "method": "ping", "id": 1})

    async def test_send_after_exit_raises(self, transport):
        process = make_process()
        process.returncode = 1
        attach(transport, process)

        with pytest.raises(MCPTransportClosedError):
            await transport.send({"jsonrpc": "2.0", "method": "ping", "id": 1})

    async def test_send_writes_one_json_line(self, transport, events):
        attach(transport, make_process(events))

        await transport.send({"jsonrpc": "2.0", "method": "ping", "id": 1})

        (_, data), = events
        assert data.endswith(b"\n")
        assert data.count(b"\n") == 1
        assert json.loads(data) == {"jsonrpc": "2.0", "method": "ping", "id": 1}

    async def test_broken_pipe_becomes_transport_error(self, transport):
        process = make_process()
        process.stdin.drain = AsyncMock(side_effect=BrokenPipeError())
        attach(transport, process)

        with pytest.raises(MCPTransportError):
            await transport.send({"jsonrpc": "2.0", "method": "ping", "id": 1})


@pytest.mark.unit
@posix_only
class TestStdioClose:
    """Tests for shutdown sequencing."""

    async def test_close_unstarted_is_noop(self, transport, killpg):
        closed = []
        transport.on_close(lambda: closed.append(True))

        await transport.close()

        assert closed == []
        killpg.assert_not_called()

    async def test_close_sends_shutdown_then_terminates_group(self, transport, events):
        process = make_process(events)
        attach(transport, process)
        closed = []
        transport.on_close(lambda: closed.append(True))

        async def fake_sleep(delay):
            events.append(("sleep", delay))

        with patch("mcp_hub.infrastructure.mcp.transport.stdio.asyncio.sleep", side_effect=fake_sleep):
            await transport.close()

        assert [e[0] for e in events] == ["write", "sleep", "killpg", "killpg"]
        assert json.loads(events[0][1]) == SHUTDOWN_MESSAGE
        assert events[1] == ("sleep", 0.5)
        assert events[2] == ("killpg", signal.SIGTERM)
        # leftovers of the group are swept after the shell is gone
        assert events[3] == ("killpg", signal.SIGKILL)
        process.terminate.assert_not_called()
        assert closed == [True]
        assert transport.is_ready() is False
        assert transport.process_id is None

    async def test_close_skips_terminate_when_process_exited(self, transport, events):
        process = make_process(events)
        attach(transport, process)

        async def exit_during_grace(delay):
            process.returncode = 0

        with patch("mcp_hub.infrastructure.mcp.transport.stdio.asyncio.sleep", side_effect=exit_during_grace):
            await transport.close()

        assert ("killpg", signal.SIGTERM) not in events
        process.terminate.assert_not_called()

    async def test_close_kills_group_when_terminate_ignored(self, transport, events):
        process = make_process(events)
        process.wait = AsyncMock(side_effect=[asyncio.TimeoutError(), 0])
        attach(transport, process)

        with patch("mcp_hub.infrastructure.mcp.transport.stdio.asyncio.sleep", AsyncMock()):
            await transport.close()

        signals = [e[1] for e in events if e[0] == "killpg"]
        assert signals[:2] == [signal.SIGTERM, signal.SIGKILL]

    async def test_close_falls_back_to_process_when_group_not_permitted(self, transport, killpg):
        killpg.side_effect = PermissionError()
        process = make_process()
        attach(transport, process)

        with patch("mcp_hub.infrastructure.mcp.transport.stdio.asyncio.sleep", AsyncMock()):
            await transport.close()

        process.terminate.assert_called_once()

    async def test_close_without_process_groups_terminates_process(self, transport, killpg):
        transport._use_process_group = False
        process = make_process()
        attach(transport, process)

        with patch("mcp_hub.infrastructure.mcp.transport.stdio.asyncio.sleep", AsyncMock()):
            await transport.close()

        process.terminate.assert_called_once()
        killpg.assert_not_called()

    async def test_close_terminates_even_if_graceful_write_fails(self, transport, events):
        process = make_process(events)
        process.stdin.drain = AsyncMock(side_effect=BrokenPipeError())
        attach(transport, process)

        await transport.close()

        assert ("killpg", signal.SIGTERM) in events

    async def test_close_twice_notifies_once(self, transport):
        attach(transport, make_process())
        closed = []
        transport.on_close(lambda: closed.append(True))

        with patch("mcp_hub.infrastructure.mcp.transport.stdio.asyncio.sleep", AsyncMock()):
            await transport.close()
            await transport.close()

        assert closed == [True]

    async def test_close_during_start_shuts_down_spawned_process(self, transport, events):
        """A process spawned while close is waiting is shut down, not left running."""
        process = make_running_process(events)
        release = asyncio.Event()

        async def slow_spawn(*args, **kwargs):
            await release.wait()
            return process

        with patch("asyncio.create_subprocess_exec", side_effect=slow_spawn), patch(
            "mcp_hub.infrastructure.mcp.transport.stdio.asyncio.sleep", AsyncMock()
        ):
            starting = asyncio.create_task(transport.start())
            await asyncio.sleep(0)
            closing = asyncio.create_task(transport.close())
            await asyncio.sleep(0)
            release.set()
            await asyncio.gather(starting, closing)

        assert transport.is_ready() is False
        assert transport.process_id is None
        assert ("killpg", signal.SIGTERM) in events
        assert transport._stdout_task is None


@pytest.mark.unit
@requires_sh
class TestStdioWithRealProcess:
    """Real child processes run through sh."""

    async def test_echo_process(self):
        server = ServerDefinition(id="echo", name="Echo", protocol=ServerProtocol.PROCESS, process_command="cat")
        transport = StdioTransport(server, shutdown_grace_period=0.1, kill_timeout=2.0, shell=ShellWrapper("sh", ("-c",)))
        received = asyncio.Queue()
        transport.on_message(received.put_nowait)
        closed = []
        transport.on_close(lambda: closed.append(True))

        await transport.start()
        try:
            await transport.send({"jsonrpc": "2.0", "method": "ping", "id": 7})
            message = await asyncio.wait_for(received.get(), timeout=5)
        finally:
            await transport.close()

        assert message == {"jsonrpc": "2.0", "method": "ping", "id": 7}
        assert closed == [True]

    async def test_close_stops_server_forked_by_shell(self, tmp_path):
        """A server the shell forks instead of exec'ing does not outlive close."""
        pid_file = tmp_path / "server.pid"
        server = ServerDefinition(
            id="sleeper",
            name="Sleeper",
            protocol=ServerProtocol.PROCESS,
            process_command=f"sleep 30 & echo $! > {pid_file}; wait",
        )
        transport = StdioTransport(server, shutdown_grace_period=0.1, kill_timeout=2.0, shell=ShellWrapper("sh", ("-c",)))

        await transport.start()
        try:
            for _ in range(50):
                if pid_file.exists() and pid_file.read_text().strip():
                    break
                await asyncio.sleep(0.1)
            server_pid = int(pid_file.read_text())
            assert is_running(server_pid)
        finally:
            await transport.close()

        for _ in range(20):
            if not is_running(server_pid):
                break
            await asyncio.sleep(0.1)
        assert not is_running(server_pid)

    async def test_crashing_server_reports_exit_code(self):
        server = ServerDefinition(
            id="crash", name="Crash", protocol=ServerProtocol.PROCESS, process_command="echo boom >&2; exit 3"
        )
        transport = StdioTransport(server, shutdown_grace_period=0.1, kill_timeout=2.0, shell=ShellWrapper("sh", ("-c",)))
        closed = asyncio.Event()
        transport.on_close(closed.set)

        await transport.start()
        try:
            await asyncio.wait_for(closed.wait(), timeout=5)
        finally:
            await transport.close()

        assert transport.close_reason == "process exited with code 3 (boom)"
