"""
ServerDefinitionStorePort - Abstract interface for server definitions.

The adapter only reads definitions; writes belong to the configuration
store's own administrative surface.
"""

from abc import abstractmethod
from typing import Protocol, runtime_checkable

from mcp_hub.domain.model.mcp.server import ServerDefinition


@runtime_checkable
class ServerDefinitionStorePort(Protocol):
    """Read interface over persisted tool server definitions."""

    @abstractmethod
    async def list_enabled_server_definitions(self) -> list[ServerDefinition]:
        """
        List all enabled server definitions.

        Returns:
            Enabled definitions, built-in first, then by name.

        Raises:
            Exception: Store failures propagate to the caller.
        """
        ...

    @abstractmethod
    async def get_server_definition(self, server_id: str) -> ServerDefinition | None:
        """
        Get a server definition by ID.

        Returns:
            The definition if found (enabled or not), None otherwise.
        """
        ...
