"""
MCP Tool Domain Models.

Defines the tool schema, call result and the read-only projections the
adapter exposes to the administrative UI.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class MCPToolSchema:
    """
    MCP tool schema definition.

    Describes a tool's interface including its name, description,
    and JSON Schema for input parameters.
    """

    name: str
    description: str | None = None
    input_schema: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (MCP protocol format)."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MCPToolSchema":
        """Create from dictionary (MCP protocol format)."""
        return cls(
            name=data.get("name", ""),
            description=data.get("description"),
            input_schema=data.get("inputSchema", data.get("input_schema", {})) or {},
        )


@dataclass
class MCPToolResult:
    """
    MCP tool execution result.

    Contains the content items returned by ``tools/call`` and the
    server-reported error flag.
    """

    content: list[dict[str, Any]] = field(default_factory=list)
    is_error: bool = False
    structured_content: dict[str, Any] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MCPToolResult":
        """Create from dictionary (MCP protocol format)."""
        return cls(
            content=list(data.get("content", [])),
            is_error=bool(data.get("isError", data.get("is_error", False))),
            structured_content=data.get("structuredContent"),
        )

    @property
    def text(self) -> str:
        """Extract text content from result."""
        texts = []
        for item in self.content:
            if isinstance(item, dict) and item.get("type") == "text":
                texts.append(item.get("text", ""))
            else:
                texts.append(str(item))
        return "\n".join(texts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        result: dict[str, Any] = {
            "content": self.content,
            "is_error": self.is_error,
        }
        if self.structured_content is not None:
            result["structured_content"] = self.structured_content
        return result


@dataclass(frozen=True)
class MCPToolInfo:
    """Listing record for one tool of a connected server."""

    id: str
    name: str
    description: str
    prefixed_name: str
    server_id: str
    server_name: str
    is_available: bool = True

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "prefixed_name": self.prefixed_name,
            "server_id": self.server_id,
            "server_name": self.server_name,
            "is_available": self.is_available,
        }


@dataclass(frozen=True)
class MCPToolDetails:
    """Detailed view of a single tool resolved by its prefixed name."""

    name: str
    description: str
    input_schema: dict[str, Any] | None
    server_id: str
    server_name: str
    prefixed_name: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
            "server_id": self.server_id,
            "server_name": self.server_name,
            "prefixed_name": self.prefixed_name,
        }


NO_SCHEMA_ERROR = "tool handle carries no schema"
NO_DESCRIPTION_ERROR = "tool declares no description"


@dataclass(frozen=True)
class DescriptionLookup:
    """
    Outcome of reading a tool's declared description.

    Exactly one of ``description`` or ``error`` is set; callers choose the
    fallback text explicitly when ``ok`` is false.
    """

    description: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def lookup_tool_description(tool: Any) -> DescriptionLookup:
    """Read the description declared by a tool handle."""
    schema = getattr(tool, "schema", None)
    if not isinstance(schema, MCPToolSchema):
        return DescriptionLookup(error=NO_SCHEMA_ERROR)
    if not schema.description:
        return DescriptionLookup(error=NO_DESCRIPTION_ERROR)
    return DescriptionLookup(description=schema.description)
