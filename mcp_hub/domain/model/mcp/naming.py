"""
Prefixed tool names.

A tool exposed by the adapter is addressed as ``{server_id}__{tool_name}``.
The first ``__``-delimited segment is always the server id; everything after
it is the tool name, which may itself contain the separator. Server ids are
validated to never contain the separator.
"""

from typing import NamedTuple

from mcp_hub.domain.exceptions.mcp import MCPInvalidToolNameError

TOOL_NAME_SEPARATOR = "__"


class PrefixedToolName(NamedTuple):
    """A prefixed tool name split into its parts."""

    server_id: str
    tool_name: str


def build_prefixed_name(server_id: str, tool_name: str) -> str:
    """Join a server id and a tool name into a prefixed tool name."""
    return f"{server_id}{TOOL_NAME_SEPARATOR}{tool_name}"


def parse_prefixed_name(prefixed_name: str) -> PrefixedToolName:
    """
    Split a prefixed tool name into server id and tool name.

    Raises:
        MCPInvalidToolNameError: If the name has no separator.
    """
    parts = prefixed_name.split(TOOL_NAME_SEPARATOR)
    if len(parts) < 2:
        raise MCPInvalidToolNameError(prefixed_name)
    return PrefixedToolName(parts[0], TOOL_NAME_SEPARATOR.join(parts[1:]))


def is_prefixed_tool_name(name: str) -> bool:
    """Cheap structural check used to tell adapter tools from local ones."""
    return TOOL_NAME_SEPARATOR in name and len(name.split(TOOL_NAME_SEPARATOR)) >= 2


def extract_server_id(prefixed_name: str) -> str:
    """Return the server id part of a prefixed tool name."""
    return prefixed_name.split(TOOL_NAME_SEPARATOR)[0]


def extract_tool_name(prefixed_name: str) -> str:
    """Return the tool name part of a prefixed tool name."""
    return TOOL_NAME_SEPARATOR.join(prefixed_name.split(TOOL_NAME_SEPARATOR)[1:])
