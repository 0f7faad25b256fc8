"""
Multi-server tool adapter.

Owns one ServerConnection per configured tool server, drives connect,
refresh and teardown, and exposes every connected server's tools under
``{server_id}__{tool_name}`` names.

Connection records are only ever replaced whole, so concurrent readers see
a consistent snapshot. A refresh does not cancel a connect already in
flight for the same server; a slow stale connect can still overwrite the
fresher record when it completes.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from mcp_hub.configuration.config import Settings, get_settings
from mcp_hub.domain.exceptions.mcp import (
    MCPConfigurationError,
    MCPConnectionError,
    MCPServerNotConnectedError,
    MCPToolNotFoundError,
)
from mcp_hub.domain.model.mcp.connection import (
    ConnectionTestResult,
    InitializationState,
    ServerConnection,
    ServerStatus,
)
from mcp_hub.domain.model.mcp.naming import build_prefixed_name, parse_prefixed_name
from mcp_hub.domain.model.mcp.server import ServerDefinition, ServerProtocol
from mcp_hub.domain.model.mcp.tool import (
    NO_SCHEMA_ERROR,
    MCPToolDetails,
    MCPToolInfo,
    lookup_tool_description,
)
from mcp_hub.domain.ports.mcp.client_port import MCPClientPort
from mcp_hub.domain.ports.mcp.server_store_port import ServerDefinitionStorePort
from mcp_hub.domain.ports.mcp.transport_port import MCPTransportPort
from mcp_hub.infrastructure.mcp.client import create_client
from mcp_hub.infrastructure.mcp.transport.factory import TransportFactory

logger = logging.getLogger(__name__)

TransportBuilder = Callable[[ServerDefinition], MCPTransportPort]
ClientBuilder = Callable[[MCPTransportPort], Awaitable[MCPClientPort]]


def _describe_error(error: BaseException) -> str:
    return str(error) or type(error).__name__


class MultiServerToolAdapter:
    """
    Connection registry for tool servers.

    Per-server states: unconnected -> connecting -> connected | failed.
    Failures are recorded on the connection and never raised out of
    ``initialize`` or ``connect_to_server``.
    """

    def __init__(
        self,
        server_store: ServerDefinitionStorePort,
        transport_factory: TransportBuilder | None = None,
        client_factory: ClientBuilder | None = None,
        client_creation_timeout: float | None = None,
        settings: Settings | None = None,
    ) -> None:
        """
        Initialize the adapter.

        Args:
            server_store: Source of server definitions.
            transport_factory: Builds a transport for a definition.
            client_factory: Builds an initialized client over a transport.
            client_creation_timeout: Seconds allowed for client creation.
            settings: Defaults for anything not passed explicitly.
        """
        self._settings = settings or get_settings()
        self._server_store = server_store
        self._transport_factory = transport_factory or self._default_transport_factory
        self._client_factory = client_factory or self._default_client_factory
        self._client_creation_timeout = (
            client_creation_timeout
            if client_creation_timeout is not None
            else self._settings.mcp_client_creation_timeout
        )
        self._connections: dict[str, ServerConnection] = {}
        self._state = InitializationState.IDLE
        self._init_task: asyncio.Task[None] | None = None

    def _default_transport_factory(self, server: ServerDefinition) -> MCPTransportPort:
        return TransportFactory.create_transport(server, self._settings)

    async def _default_client_factory(self, transport: MCPTransportPort) -> MCPClientPort:
        return await create_client(transport, self._settings)

    @property
    def state(self) -> InitializationState:
        return self._state

    @property
    def is_initialized(self) -> bool:
        return self._state is InitializationState.READY

    @property
    def connections(self) -> Mapping[str, ServerConnection]:
        """Read-only snapshot of the registry."""
        return dict(self._connections)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """
        Connect to every enabled server once.

        Concurrent callers share a single in-flight initialization. A store
        failure resets the adapter to idle and is raised to every caller.
        """
        if self._state is InitializationState.READY:
            return
        if self._init_task is None:
            self._state = InitializationState.INITIALIZING
            self._init_task = asyncio.create_task(self._run_initialization())
        await asyncio.shield(self._init_task)

    async def _run_initialization(self) -> None:
        try:
            servers = await self._server_store.list_enabled_server_definitions()
            logger.info(f"Initializing MCP adapter with {len(servers)} enabled server(s)")

            results = await asyncio.gather(
                *(self.connect_to_server(server) for server in servers),
                return_exceptions=True,
            )
            for server, result in zip(servers, results):
                if isinstance(result, BaseException):
                    logger.error(f"[{server.id}] Unexpected error while connecting: {result}")
                    self._connections[server.id] = ServerConnection.failed(server, _describe_error(result))

            self._state = InitializationState.READY
            connected = sum(1 for c in self._connections.values() if c.is_connected)
            logger.info(f"MCP adapter initialized: {connected}/{len(servers)} server(s) connected")
        except Exception as e:
            self._state = InitializationState.IDLE
            logger.error(f"MCP adapter initialization failed: {e}")
            raise
        finally:
            self._init_task = None

    async def _wait_for_initialization(self) -> None:
        task = self._init_task
        if task is None:
            return
        try:
            await asyncio.shield(task)
        except Exception as e:
            logger.warning(f"In-flight initialization failed: {e}")

    async def connect_to_server(self, server: ServerDefinition) -> ServerConnection:
        """
        Connect to one server and record the outcome.

        Steps run strictly in order: validate, start the transport (process
        servers), create the client, fetch the tool catalog, record.

        Returns:
            The connection record stored for the server.
        """
        validation = TransportFactory.validate_server_config(server)
        if not validation.is_valid:
            error = MCPConfigurationError(validation.errors, server_id=server.id)
            logger.error(f"[{server.id}] {error}")
            return self._record(ServerConnection.failed(server, str(error)))

        try:
            client, tools = await self._open_client(server)
        except Exception as e:
            logger.error(f"[{server.id}] Failed to connect to MCP server '{server.name}': {e}")
            return self._record(ServerConnection.failed(server, _describe_error(e)))

        logger.info(f"[{server.id}] Connected to MCP server '{server.name}' with {len(tools)} tool(s)")
        return self._record(ServerConnection.connected(server, client, tools))

    def _record(self, connection: ServerConnection) -> ServerConnection:
        self._connections[connection.server_id] = connection
        return connection

    async def _open_client(self, server: ServerDefinition) -> tuple[MCPClientPort, Mapping[str, Any]]:
        """Build transport and client and fetch tools; closes everything on failure."""
        transport = self._transport_factory(server)
        client: MCPClientPort | None = None
        try:
            if ServerProtocol.normalize(server.protocol) is ServerProtocol.PROCESS:
                await transport.start()

            try:
                client = await asyncio.wait_for(
                    self._client_factory(transport),
                    timeout=self._client_creation_timeout,
                )
            except TimeoutError:
                raise MCPConnectionError(
                    f"MCP client creation timeout ({self._client_creation_timeout:g}s)"
                ) from None

            tools = await client.list_tools()
            return client, tools
        except Exception:
            closer = client.close if client is not None else transport.close
            try:
                await closer()
            except Exception as close_error:
                logger.warning(f"[{server.id}] Error closing failed connection: {close_error}")
            raise

    async def _close_connection(self, connection: ServerConnection) -> None:
        if connection.client is None:
            return
        try:
            await connection.client.close()
        except Exception as e:
            logger.warning(f"[{connection.server_id}] Error closing MCP client: {e}")

    async def _close_all(self) -> None:
        connections, self._connections = self._connections, {}
        await asyncio.gather(*(self._close_connection(c) for c in connections.values()))

    async def refresh_server(self, server_id: str) -> None:
        """
        Reconnect one server using its current definition.

        A server that was deleted or disabled is left out of the registry.
        """
        existing = self._connections.pop(server_id, None)
        if existing is not None:
            await self._close_connection(existing)

        server = await self._server_store.get_server_definition(server_id)
        if server is None or not server.is_enabled:
            logger.info(f"[{server_id}] Server missing or disabled, not reconnecting")
            return

        await self.connect_to_server(server)

    async def refresh_connections(self) -> None:
        """Close everything and initialize again from scratch."""
        await self._wait_for_initialization()
        await self._close_all()
        self._state = InitializationState.IDLE
        await self.initialize()

    async def cleanup(self) -> None:
        """Close every client and reset the adapter."""
        await self._wait_for_initialization()
        await self._close_all()
        self._state = InitializationState.IDLE
        logger.info("MCP adapter cleaned up")

    async def test_connection(self, server: ServerDefinition) -> ConnectionTestResult:
        """
        Connect with a throwaway client that is never registered.

        Raises:
            MCPConfigurationError: If the definition is invalid.
        """
        validation = TransportFactory.validate_server_config(server)
        if not validation.is_valid:
            raise MCPConfigurationError(validation.errors, server_id=server.id)

        try:
            client, tools = await self._open_client(server)
        except Exception as e:
            logger.info(f"[{server.id}] Connection test failed: {e}")
            return ConnectionTestResult(success=False, error=_describe_error(e))

        try:
            await client.close()
        except Exception as e:
            logger.warning(f"[{server.id}] Error closing test client: {e}")
        return ConnectionTestResult(success=True, tool_count=len(tools))

    async def health_check(self) -> bool:
        """True if at least one server is connected."""
        if not self.is_initialized:
            try:
                await self.initialize()
            except Exception as e:
                logger.error(f"Health check initialization failed: {e}")
                return False
        return any(c.is_connected for c in self._connections.values())

    # ------------------------------------------------------------------
    # Tool access
    # ------------------------------------------------------------------

    async def get_adapted_tools(self) -> dict[str, Any]:
        """Prefixed name -> tool handle for every connected server."""
        if not self.is_initialized:
            await self.initialize()

        tools: dict[str, Any] = {}
        for server_id, connection in list(self._connections.items()):
            if not connection.is_connected:
                continue
            for name, tool in connection.tools.items():
                tools[build_prefixed_name(server_id, name)] = tool
        return tools

    def _resolve(self, prefixed_name: str) -> tuple[ServerConnection, str, Any]:
        server_id, tool_name = parse_prefixed_name(prefixed_name)
        connection = self._connections.get(server_id)
        if connection is None or not connection.is_connected:
            raise MCPServerNotConnectedError(server_id)
        tool = connection.tools.get(tool_name)
        if tool is None:
            raise MCPToolNotFoundError(tool_name, server_id=server_id)
        return connection, tool_name, tool

    async def get_adapted_tool(self, prefixed_name: str) -> Any:
        """
        Resolve one tool handle by prefixed name.

        Raises:
            MCPInvalidToolNameError: If the name has no server prefix.
            MCPServerNotConnectedError: If the server is not connected.
            MCPToolNotFoundError: If the server has no such tool.
        """
        if not self.is_initialized:
            await self.initialize()
        _, _, tool = self._resolve(prefixed_name)
        return tool

    def get_tool_info(self, prefixed_name: str) -> MCPToolDetails:
        """Describe one tool by prefixed name. Raises like ``get_adapted_tool``."""
        connection, tool_name, tool = self._resolve(prefixed_name)
        lookup = lookup_tool_description(tool)
        return MCPToolDetails(
            name=tool_name,
            description=lookup.description if lookup.ok else f"Tool from {connection.server.name}",
            input_schema=getattr(tool, "input_schema", None),
            server_id=connection.server_id,
            server_name=connection.server.name,
            prefixed_name=prefixed_name,
        )

    async def merge_with_local_tools(self, local_tools: Mapping[str, Any]) -> dict[str, Any]:
        """Local tools overlaid with adapted tools; local tools alone on failure."""
        try:
            adapted = await self.get_adapted_tools()
        except Exception as e:
            logger.warning(f"Failed to load MCP tools, using local tools only: {e}")
            return dict(local_tools)
        return {**local_tools, **adapted}

    # ------------------------------------------------------------------
    # Administrative projections
    # ------------------------------------------------------------------

    def _tool_infos(self, connection: ServerConnection) -> list[MCPToolInfo]:
        server = connection.server
        infos = []
        for name, tool in connection.tools.items():
            lookup = lookup_tool_description(tool)
            if not lookup.ok:
                logger.debug(f"[{server.id}] No description for tool '{name}': {lookup.error}")
            prefixed_name = build_prefixed_name(server.id, name)
            infos.append(
                MCPToolInfo(
                    id=prefixed_name,
                    name=name,
                    description=lookup.description if lookup.ok else f"Tool from {server.name}",
                    prefixed_name=prefixed_name,
                    server_id=server.id,
                    server_name=server.name,
                    is_available=lookup.error != NO_SCHEMA_ERROR,
                )
            )
        return infos

    def list_mcp_tools(self) -> list[MCPToolInfo]:
        """Tool records of every connected server."""
        infos: list[MCPToolInfo] = []
        for connection in list(self._connections.values()):
            if connection.is_connected:
                infos.extend(self._tool_infos(connection))
        return infos

    def list_server_tools(self, server_id: str) -> list[MCPToolInfo]:
        """Tool records of one server; empty unless it is connected."""
        connection = self._connections.get(server_id)
        if connection is None or not connection.is_connected:
            return []
        return self._tool_infos(connection)

    def get_server_status(self, server_id: str) -> ServerStatus:
        connection = self._connections.get(server_id)
        if connection is None:
            return ServerStatus.not_found()
        return connection.to_status()

    def get_all_server_statuses(self) -> dict[str, ServerStatus]:
        return {server_id: c.to_status() for server_id, c in list(self._connections.items())}
