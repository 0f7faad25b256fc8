"""
MCP protocol client.

JSON-RPC 2.0 client speaking the MCP request/response protocol over any
transport. Responses are matched to requests by id through pending futures
resolved from the transport's message handler.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, cast

from mcp_hub.configuration.config import Settings, get_settings
from mcp_hub.domain.exceptions.mcp import MCPConnectionError, MCPRequestError
from mcp_hub.domain.model.mcp.tool import MCPToolResult, MCPToolSchema
from mcp_hub.domain.ports.mcp.transport_port import MCPTransportPort

logger = logging.getLogger(__name__)

METHOD_NOT_FOUND = -32601


@dataclass(frozen=True)
class MCPTool:
    """Invocable handle for one tool of a connected server."""

    schema: MCPToolSchema
    client: "MCPProtocolClient"

    @property
    def name(self) -> str:
        return self.schema.name

    @property
    def description(self) -> str | None:
        return self.schema.description

    @property
    def input_schema(self) -> dict[str, Any]:
        return self.schema.input_schema

    async def execute(self, arguments: dict[str, Any] | None = None, **kwargs: Any) -> MCPToolResult:
        """Invoke the tool. Keyword arguments are merged over ``arguments``."""
        return await self.client.call_tool(self.name, {**(arguments or {}), **kwargs})


class MCPProtocolClient:
    """
    MCP client bound to one transport.

    Call ``initialize`` (or use ``create_client``) before any other request.
    """

    def __init__(
        self,
        transport: MCPTransportPort,
        client_name: str = "mcp-hub",
        client_version: str = "0.1.0",
        protocol_version: str = "2024-11-05",
    ) -> None:
        self._transport = transport
        self._client_name = client_name
        self._client_version = client_version
        self._protocol_version = protocol_version
        self._request_id = 0
        self._pending_requests: dict[int, asyncio.Future[Any]] = {}
        self._request_methods: dict[int, str] = {}
        self._server_info: dict[str, Any] = {}
        self._initialized = False
        self._closed = False

        transport.on_message(self._handle_message)
        transport.on_close(self._handle_close)

    @property
    def transport(self) -> MCPTransportPort:
        return self._transport

    @property
    def server_info(self) -> dict[str, Any]:
        return self._server_info

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> dict[str, Any]:
        """Perform MCP protocol initialization handshake."""
        if self._initialized:
            return self._server_info

        # Step 1: Send initialize request
        init_params = {
            "protocolVersion": self._protocol_version,
            "capabilities": {"roots": {"listChanged": True}, "sampling": {}},
            "clientInfo": {"name": self._client_name, "version": self._client_version},
        }
        result = await self.send_request("initialize", init_params)
        self._server_info = result.get("serverInfo", {}) or {}
        logger.info(f"MCP server initialized: {self._server_info}")

        # Step 2: Send initialized notification (no response expected)
        await self.send_notification("notifications/initialized")

        self._initialized = True
        return self._server_info

    async def send_notification(self, method: str, params: dict[str, Any] | None = None) -> None:
        """Send a JSON-RPC notification (no response expected)."""
        message: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params:
            message["params"] = params
        await self._transport.send(message)

    async def send_request(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Send JSON-RPC request and wait for response.

        Raises:
            MCPConnectionError: If the client is closed or the transport is lost.
            MCPRequestError: If the server answers with an error object.
        """
        if self._closed:
            raise MCPConnectionError(f"MCP client is closed (request: {method})")

        self._request_id += 1
        request_id = self._request_id
        request = {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": method,
            "params": params or {},
        }

        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending_requests[request_id] = future
        self._request_methods[request_id] = method

        try:
            logger.debug(f"Sending request: {method} (id={request_id})")
            await self._transport.send(request)
            result = await future
            return cast(dict[str, Any], result)
        finally:
            self._pending_requests.pop(request_id, None)
            self._request_methods.pop(request_id, None)

    async def list_tools(self) -> dict[str, MCPTool]:
        """List all tools of the server, following pagination cursors."""
        tools: dict[str, MCPTool] = {}
        cursor: str | None = None
        while True:
            result = await self.send_request("tools/list", {"cursor": cursor} if cursor else None)
            for data in result.get("tools", []) or []:
                schema = MCPToolSchema.from_dict(data)
                if schema.name:
                    tools[schema.name] = MCPTool(schema=schema, client=self)
            cursor = result.get("nextCursor")
            if not cursor:
                return tools

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> MCPToolResult:
        """
        Call a tool on the MCP server.

        A tool-level failure is reported through ``is_error`` on the result,
        not raised.
        """
        result = await self.send_request("tools/call", {"name": name, "arguments": arguments or {}})
        return MCPToolResult.from_dict(result)

    async def ping(self) -> bool:
        """Send a ping request to check connection health."""
        try:
            await self.send_request("ping")
            return True
        except Exception as e:
            logger.error(f"Ping failed: {e}")
            return False

    async def close(self) -> None:
        """Close the client and its transport. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._initialized = False
        self._fail_pending(MCPConnectionError("MCP client closed"))
        await self._transport.close()

    def _fail_pending(self, error: Exception) -> None:
        for future in self._pending_requests.values():
            if not future.done():
                future.set_exception(error)
        self._pending_requests.clear()
        self._request_methods.clear()

    def _handle_close(self) -> None:
        if self._pending_requests:
            logger.warning(f"Transport closed with {len(self._pending_requests)} pending request(s)")
        reason = self._transport.close_reason
        message = f"MCP server connection closed: {reason}" if reason else "MCP server connection closed"
        self._fail_pending(MCPConnectionError(message))

    async def _handle_message(self, data: dict[str, Any]) -> None:
        """Handle incoming JSON-RPC message."""
        request_id = data.get("id")

        if "method" in data:
            if request_id is None:
                logger.debug(f"Received server notification: {data.get('method')}")
            else:
                await self._handle_server_request(data)
            return

        if request_id is not None and request_id in self._pending_requests:
            future = self._pending_requests.pop(request_id)
            method = self._request_methods.pop(request_id, str(request_id))
            if future.done():
                return
            if "error" in data:
                error = data["error"]
                if isinstance(error, dict):
                    future.set_exception(
                        MCPRequestError(
                            method=method,
                            code=error.get("code"),
                            message=error.get("message", str(error)),
                            data=error.get("data"),
                        )
                    )
                else:
                    future.set_exception(MCPRequestError(method=method, message=str(error)))
            else:
                future.set_result(data.get("result", {}) or {})
        else:
            logger.warning(f"Received unexpected message: {data}")

    async def _handle_server_request(self, data: dict[str, Any]) -> None:
        method = data.get("method")
        response: dict[str, Any] = {"jsonrpc": "2.0", "id": data.get("id")}
        if method == "ping":
            response["result"] = {}
        else:
            logger.debug(f"Rejecting unsupported server request: {method}")
            response["error"] = {"code": METHOD_NOT_FOUND, "message": f"Method not found: {method}"}
        try:
            await self._transport.send(response)
        except Exception as e:
            logger.warning(f"Failed to answer server request {method}: {e}")


async def create_client(transport: MCPTransportPort, settings: Settings | None = None) -> MCPProtocolClient:
    """
    Build an initialized client over a transport.

    Starts the transport if it is not ready yet. On handshake failure the
    client (and with it the transport) is closed before the error propagates.
    """
    settings = settings or get_settings()

    if not transport.is_ready():
        await transport.start()

    client = MCPProtocolClient(
        transport,
        client_name=settings.mcp_client_name,
        client_version=settings.mcp_client_version,
        protocol_version=settings.mcp_protocol_version,
    )
    try:
        await client.initialize()
    except BaseException:
        await client.close()
        raise
    return client
