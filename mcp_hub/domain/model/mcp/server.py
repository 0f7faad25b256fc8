"""
MCP Server Domain Models.

Defines the server definition value object supplied by the configuration
store and the closed set of wire protocols a tool server may speak.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ServerProtocol(str, Enum):
    """Wire protocols supported for tool servers."""

    PROCESS = "process"  # child process, JSON-RPC lines over stdin/stdout
    HTTP_REQUEST = "http-request"  # single JSON-RPC endpoint, request/response
    HTTP_STREAMING = "http-streaming"  # streamable HTTP with event-stream replies

    @classmethod
    def normalize(cls, value: "str | ServerProtocol") -> "ServerProtocol":
        """Normalize a protocol string (including legacy aliases) to enum."""
        if isinstance(value, ServerProtocol):
            return value
        normalized = value.lower().strip()
        alias = _PROTOCOL_ALIASES.get(normalized)
        if alias is not None:
            return alias
        return cls(normalized)

    @property
    def is_remote(self) -> bool:
        """Whether the protocol talks to a network endpoint."""
        return self is not ServerProtocol.PROCESS


_PROTOCOL_ALIASES: dict[str, ServerProtocol] = {
    "stdio": ServerProtocol.PROCESS,
    "local": ServerProtocol.PROCESS,
    "http": ServerProtocol.HTTP_REQUEST,
    "sse": ServerProtocol.HTTP_STREAMING,
    "streamable-http": ServerProtocol.HTTP_STREAMING,
}


@dataclass(frozen=True)
class ServerDefinition:
    """
    Tool server definition value object.

    Owned by the configuration store and read-only to the adapter. The
    protocol-specific required fields are checked by
    ``TransportFactory.validate_server_config`` rather than at construction,
    so an invalid definition can still be reported as a failed connection.
    """

    id: str
    name: str
    protocol: ServerProtocol | str
    url: str | None = None
    api_key: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    process_command: str | None = None
    process_args: list[str] = field(default_factory=list)
    is_enabled: bool = True
    is_built_in: bool = False

    @property
    def endpoint(self) -> str:
        """Human-readable endpoint (URL or command line) for diagnostics."""
        if self.protocol == ServerProtocol.PROCESS:
            return " ".join([self.process_command or "", *self.process_args]).strip()
        return self.url or ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        protocol = self.protocol.value if isinstance(self.protocol, ServerProtocol) else self.protocol
        return {
            "id": self.id,
            "name": self.name,
            "protocol": protocol,
            "url": self.url,
            "api_key": self.api_key,
            "headers": dict(self.headers),
            "process_command": self.process_command,
            "process_args": list(self.process_args),
            "is_enabled": self.is_enabled,
            "is_built_in": self.is_built_in,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ServerDefinition":
        """
        Create from dictionary.

        Accepts the column names of the persisted server table
        (``stdio_command``/``stdio_args``) as well as the native field names.
        Unknown protocol strings are kept verbatim so validation can report them.
        """
        raw_protocol = data.get("protocol") or ""
        protocol: ServerProtocol | str
        try:
            protocol = ServerProtocol.normalize(raw_protocol)
        except ValueError:
            protocol = str(raw_protocol)

        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            protocol=protocol,
            url=data.get("url") or None,
            api_key=data.get("api_key") or None,
            headers=dict(data.get("headers") or {}),
            process_command=data.get("process_command") or data.get("stdio_command") or None,
            process_args=list(data.get("process_args") or data.get("stdio_args") or []),
            is_enabled=bool(data.get("is_enabled", True)),
            is_built_in=bool(data.get("is_built_in", False)),
        )
