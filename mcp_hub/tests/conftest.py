"""Pytest configuration and shared fixtures for testing."""

import asyncio
import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from mcp_hub.configuration.config import Settings
from mcp_hub.domain.model.mcp.server import ServerDefinition, ServerProtocol
from mcp_hub.infrastructure.mcp.transport.base import (
    BaseTransport,
    MCPTransportClosedError,
    MCPTransportError,
)
from mcp_hub.infrastructure.persistence.in_memory_server_store import InMemoryServerDefinitionStore

DEFAULT_TOOLS = [
    {
        "name": "search",
        "description": "Search the index",
        "inputSchema": {"type": "object", "properties": {"query": {"type": "string"}}},
    },
    {
        "name": "fetch",
        "description": "Fetch a document",
        "inputSchema": {"type": "object", "properties": {"url": {"type": "string"}}},
    },
]


class FakeServerTransport(BaseTransport):
    """
    In-memory tool server.

    Answers initialize, tools/list (paginated when ``page_size`` is set),
    tools/call and ping requests synchronously through the message handlers.
    """

    def __init__(
        self,
        server: ServerDefinition,
        tools: list[dict[str, Any]] | None = None,
        fail_start: bool = False,
        silent_methods: tuple[str, ...] = (),
        error_methods: tuple[str, ...] = (),
        page_size: int | None = None,
    ) -> None:
        super().__init__(server)
        self.tools = DEFAULT_TOOLS if tools is None else tools
        self.fail_start = fail_start
        self.silent_methods = silent_methods
        self.error_methods = error_methods
        self.page_size = page_size
        self.start_count = 0
        self.close_count = 0
        self.sent: list[dict[str, Any]] = []

    async def start(self) -> None:
        if self._is_open:
            return
        self.start_count += 1
        await asyncio.sleep(0)
        if self.fail_start:
            raise MCPTransportError(f"Failed to spawn MCP server '{self.server_id}'")
        self._is_open = True

    async def send(self, message: dict[str, Any]) -> None:
        if not self._is_open:
            raise MCPTransportClosedError(f"MCP server '{self.server_id}' is not running")
        self.sent.append(message)
        await asyncio.sleep(0)

        method = message.get("method")
        if "id" not in message or method is None or method in self.silent_methods:
            return
        if method in self.error_methods:
            await self._notify_message(
                {
                    "jsonrpc": "2.0",
                    "id": message["id"],
                    "error": {"code": -32603, "message": f"{method} exploded"},
                }
            )
            return
        await self._notify_message({"jsonrpc": "2.0", "id": message["id"], "result": self._answer(message)})

    def _answer(self, message: dict[str, Any]) -> dict[str, Any]:
        method = message["method"]
        params = message.get("params") or {}
        if method == "initialize":
            return {
                "protocolVersion": params.get("protocolVersion"),
                "capabilities": {"tools": {}},
                "serverInfo": {"name": self.server_name, "version": "1.0.0"},
            }
        if method == "tools/list":
            if self.page_size is None:
                return {"tools": self.tools}
            start = int(params.get("cursor") or 0)
            end = start + self.page_size
            result: dict[str, Any] = {"tools": self.tools[start:end]}
            if end < len(self.tools):
                result["nextCursor"] = str(end)
            return result
        if method == "tools/call":
            return {
                "content": [{"type": "text", "text": f"{params['name']}: {json.dumps(params['arguments'])}"}],
                "isError": False,
            }
        return {}

    async def close(self) -> None:
        self.close_count += 1
        if not self._is_open:
            return
        self._is_open = False
        await self._notify_close()


class FakeTransportFactory:
    """Transport builder recording every transport it creates."""

    def __init__(self) -> None:
        self.created: list[FakeServerTransport] = []
        self.behaviors: dict[str, dict[str, Any]] = {}

    def configure(self, server_id: str, **behavior: Any) -> None:
        self.behaviors[server_id] = behavior

    def __call__(self, server: ServerDefinition) -> FakeServerTransport:
        transport = FakeServerTransport(server, **self.behaviors.get(server.id, {}))
        self.created.append(transport)
        return transport

    def for_server(self, server_id: str) -> list[FakeServerTransport]:
        return [t for t in self.created if t.server_id == server_id]


@pytest.fixture
def settings() -> Settings:
    """Settings with short lifecycle timings."""
    return Settings(
        mcp_client_creation_timeout=1.0,
        mcp_shutdown_grace_period=0.0,
        mcp_process_kill_timeout=0.5,
    )


@pytest.fixture
def make_server() -> Callable[..., ServerDefinition]:
    """Build server definitions with protocol-appropriate defaults."""

    def _make(
        server_id: str = "alpha",
        protocol: ServerProtocol | str = ServerProtocol.HTTP_REQUEST,
        **kwargs: Any,
    ) -> ServerDefinition:
        fields: dict[str, Any] = {"name": f"{server_id.title()} Server"}
        if protocol == ServerProtocol.PROCESS:
            fields["process_command"] = "fake-server"
        else:
            fields["url"] = f"https://{server_id}.example.com/mcp"
        fields.update(kwargs)
        return ServerDefinition(id=server_id, protocol=protocol, **fields)

    return _make


@pytest.fixture
def fake_transport_factory() -> FakeTransportFactory:
    return FakeTransportFactory()


@pytest.fixture
def server_store() -> InMemoryServerDefinitionStore:
    return InMemoryServerDefinitionStore()


@pytest.fixture
def jsonrpc_handler() -> Callable[..., Callable[[httpx.Request], httpx.Response]]:
    """Build an ``httpx.MockTransport`` handler acting as a JSON-RPC tool server."""

    def _build(
        tools: list[dict[str, Any]] | None = None,
        requests: list[httpx.Request] | None = None,
    ) -> Callable[[httpx.Request], httpx.Response]:
        catalog = DEFAULT_TOOLS if tools is None else tools

        def handler(request: httpx.Request) -> httpx.Response:
            if requests is not None:
                requests.append(request)
            message = json.loads(request.content)
            if "id" not in message:
                return httpx.Response(202)
            method = message["method"]
            if method == "initialize":
                result: dict[str, Any] = {"serverInfo": {"name": "mock", "version": "1.0.0"}, "capabilities": {}}
            elif method == "tools/list":
                result = {"tools": catalog}
            elif method == "tools/call":
                result = {"content": [{"type": "text", "text": "ok"}]}
            else:
                result = {}
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": message["id"], "result": result})

        return handler

    return _build
