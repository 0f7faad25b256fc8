"""
MCP (Model Context Protocol) Domain Models.

Key entities:
- ServerDefinition: tool server definition supplied by the config store
- ServerConnection: per-server connection record owned by the adapter
- MCPToolSchema / MCPToolResult: tool interface and call result
- Prefixed tool names: ``{server_id}__{tool_name}``
"""

from mcp_hub.domain.model.mcp.connection import (
    ConnectionTestResult,
    InitializationState,
    ServerConnection,
    ServerStatus,
)
from mcp_hub.domain.model.mcp.naming import (
    TOOL_NAME_SEPARATOR,
    PrefixedToolName,
    build_prefixed_name,
    extract_server_id,
    extract_tool_name,
    is_prefixed_tool_name,
    parse_prefixed_name,
)
from mcp_hub.domain.model.mcp.server import ServerDefinition, ServerProtocol
from mcp_hub.domain.model.mcp.tool import (
    DescriptionLookup,
    MCPToolDetails,
    MCPToolInfo,
    MCPToolResult,
    MCPToolSchema,
    lookup_tool_description,
)

__all__ = [
    # Server
    "ServerDefinition",
    "ServerProtocol",
    # Connection
    "ConnectionTestResult",
    "InitializationState",
    "ServerConnection",
    "ServerStatus",
    # Tool
    "DescriptionLookup",
    "MCPToolDetails",
    "MCPToolInfo",
    "MCPToolResult",
    "MCPToolSchema",
    "lookup_tool_description",
    # Naming
    "TOOL_NAME_SEPARATOR",
    "PrefixedToolName",
    "build_prefixed_name",
    "extract_server_id",
    "extract_tool_name",
    "is_prefixed_tool_name",
    "parse_prefixed_name",
]
