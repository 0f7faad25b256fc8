"""
In-memory server definition store.

Reference implementation of ServerDefinitionStorePort, used for tests and
for embedding the adapter without a database.
"""

import asyncio
import logging
from collections.abc import Iterable

from mcp_hub.domain.exceptions.mcp import MCPBuiltInServerError, MCPServerNotFoundError
from mcp_hub.domain.model.mcp.server import ServerDefinition

logger = logging.getLogger(__name__)


class InMemoryServerDefinitionStore:
    """Server definitions kept in a dict keyed by id."""

    def __init__(self, servers: Iterable[ServerDefinition] = ()) -> None:
        self._servers: dict[str, ServerDefinition] = {s.id: s for s in servers}
        self._lock = asyncio.Lock()

    @staticmethod
    def _ordered(servers: Iterable[ServerDefinition]) -> list[ServerDefinition]:
        # Built-in first, then by name
        return sorted(servers, key=lambda s: (not s.is_built_in, s.name))

    async def list_all(self) -> list[ServerDefinition]:
        return self._ordered(self._servers.values())

    async def list_enabled_server_definitions(self) -> list[ServerDefinition]:
        return self._ordered(s for s in self._servers.values() if s.is_enabled)

    async def get_server_definition(self, server_id: str) -> ServerDefinition | None:
        return self._servers.get(server_id)

    async def add(self, server: ServerDefinition) -> ServerDefinition:
        async with self._lock:
            self._servers[server.id] = server
        logger.debug(f"Stored MCP server definition: {server.id}")
        return server

    async def update(self, server: ServerDefinition) -> ServerDefinition:
        """
        Replace an existing definition.

        Raises:
            MCPServerNotFoundError: If no definition has the same id.
        """
        async with self._lock:
            if server.id not in self._servers:
                raise MCPServerNotFoundError(server.id)
            self._servers[server.id] = server
        return server

    async def delete(self, server_id: str) -> None:
        """
        Delete a definition.

        Raises:
            MCPServerNotFoundError: If the id is unknown.
            MCPBuiltInServerError: If the definition is built in.
        """
        async with self._lock:
            server = self._servers.get(server_id)
            if server is None:
                raise MCPServerNotFoundError(server_id)
            if server.is_built_in:
                raise MCPBuiltInServerError(server_id)
            del self._servers[server_id]
        logger.debug(f"Deleted MCP server definition: {server_id}")
