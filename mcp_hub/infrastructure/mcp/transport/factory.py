"""
Transport factory for MCP.

Validates server definitions and creates the transport matching the
declared protocol.
"""

import logging
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

from mcp_hub.configuration.config import Settings, get_settings
from mcp_hub.domain.exceptions.mcp import MCPConfigurationError
from mcp_hub.domain.model.mcp.naming import TOOL_NAME_SEPARATOR
from mcp_hub.domain.model.mcp.server import ServerDefinition, ServerProtocol
from mcp_hub.infrastructure.mcp.transport.base import BaseTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a server definition."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        return ", ".join(self.errors)


_PROTOCOL_METADATA: dict[ServerProtocol, dict[str, Any]] = {
    ServerProtocol.PROCESS: {
        "label": "Standard I/O",
        "description": "Local MCP server launched as a child process, JSON-RPC over stdin/stdout",
        "required": ["process_command"],
        "optional": ["process_args"],
    },
    ServerProtocol.HTTP_REQUEST: {
        "label": "HTTP",
        "description": "MCP server exposing a single JSON-RPC endpoint",
        "required": ["url"],
        "optional": ["api_key", "headers"],
    },
    ServerProtocol.HTTP_STREAMING: {
        "label": "Streamable HTTP",
        "description": "MCP server answering with JSON or event-stream responses",
        "required": ["url"],
        "optional": ["api_key", "headers"],
    },
}


class TransportFactory:
    """
    Factory for creating MCP transport instances.

    Stateless apart from the protocol -> transport class registry, which is
    populated lazily with the built-in transports.
    """

    _transports: dict[ServerProtocol, type[BaseTransport]] = {}

    @classmethod
    def register(cls, protocol: ServerProtocol, transport_class: type[BaseTransport]) -> None:
        """
        Register a transport implementation.

        Args:
            protocol: Protocol served by the transport.
            transport_class: Class providing ``from_settings(server, settings)``.
        """
        cls._transports[protocol] = transport_class
        logger.debug(f"Registered transport: {protocol.value} -> {transport_class.__name__}")

    @classmethod
    def _lazy_register(cls) -> None:
        """Lazily register built-in transports."""
        if cls._transports:
            return

        from mcp_hub.infrastructure.mcp.transport.http import HTTPTransport
        from mcp_hub.infrastructure.mcp.transport.stdio import StdioTransport
        from mcp_hub.infrastructure.mcp.transport.streamable_http import StreamableHTTPTransport

        cls.register(ServerProtocol.PROCESS, StdioTransport)
        cls.register(ServerProtocol.HTTP_REQUEST, HTTPTransport)
        cls.register(ServerProtocol.HTTP_STREAMING, StreamableHTTPTransport)

    @classmethod
    def create_transport(cls, server: ServerDefinition, settings: Settings | None = None) -> BaseTransport:
        """
        Create a transport for a server definition.

        Raises:
            MCPConfigurationError: If the definition is invalid.
        """
        validation = cls.validate_server_config(server)
        if not validation.is_valid:
            raise MCPConfigurationError(validation.errors, server_id=server.id)

        cls._lazy_register()
        protocol = ServerProtocol.normalize(server.protocol)
        transport_class = cls._transports.get(protocol)
        if transport_class is None:
            raise MCPConfigurationError([f"Unsupported protocol: {protocol.value}"], server_id=server.id)

        logger.debug(f"[{server.id}] Creating {transport_class.__name__}")
        return transport_class.from_settings(server, settings or get_settings())  # type: ignore[attr-defined]

    @classmethod
    def validate_server_config(cls, server: ServerDefinition) -> ValidationResult:
        """Check common and protocol-specific required fields, collecting every violation."""
        errors: list[str] = []

        if not server.id:
            errors.append("Server ID is required")
        elif TOOL_NAME_SEPARATOR in server.id:
            errors.append(f"Server ID must not contain '{TOOL_NAME_SEPARATOR}'")
        if not server.name:
            errors.append("Server name is required")
        if not server.protocol:
            errors.append("Protocol is required")
            return ValidationResult(is_valid=False, errors=errors)

        try:
            protocol = ServerProtocol.normalize(server.protocol)
        except ValueError:
            errors.append(f"Unsupported protocol: {server.protocol}")
            return ValidationResult(is_valid=False, errors=errors)

        if protocol.is_remote:
            if not server.url:
                errors.append("URL is required for HTTP protocols")
            elif not _is_valid_url(server.url):
                errors.append("Invalid URL format")
        elif not server.process_command:
            errors.append("process_command is required for process protocol")

        return ValidationResult(is_valid=not errors, errors=errors)

    @classmethod
    def supports(cls, protocol: str) -> bool:
        """Check if a protocol string (aliases included) is supported."""
        try:
            normalized = ServerProtocol.normalize(protocol)
        except ValueError:
            return False
        cls._lazy_register()
        return normalized in cls._transports

    @classmethod
    def get_supported_protocols(cls) -> list[dict[str, str]]:
        """Protocols offered to the administrative UI."""
        cls._lazy_register()
        return [
            {
                "value": protocol.value,
                "label": _PROTOCOL_METADATA[protocol]["label"],
                "description": _PROTOCOL_METADATA[protocol]["description"],
            }
            for protocol in cls._transports
            if protocol in _PROTOCOL_METADATA
        ]

    @classmethod
    def get_protocol_schema(cls, protocol: str) -> dict[str, Any]:
        """Required and optional definition fields for a protocol."""
        try:
            metadata = _PROTOCOL_METADATA[ServerProtocol.normalize(protocol)]
        except ValueError:
            return {"required": [], "optional": [], "description": "Unknown protocol"}
        return {
            "required": list(metadata["required"]),
            "optional": list(metadata["optional"]),
            "description": metadata["description"],
        }


def _is_valid_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)
