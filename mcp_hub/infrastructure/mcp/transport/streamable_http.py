"""
Streamable HTTP transport for MCP.

Like the HTTP transport, but the server may answer a POST with an event
stream carrying one or more JSON-RPC messages, and may bind the client to
a session through the ``Mcp-Session-Id`` header.
"""

import json
import logging
from typing import Any

import httpx

from mcp_hub.infrastructure.mcp.transport.base import MCPProtocolError, MCPTransportError
from mcp_hub.infrastructure.mcp.transport.http import HTTPTransport

logger = logging.getLogger(__name__)

SESSION_HEADER = "Mcp-Session-Id"


class StreamableHTTPTransport(HTTPTransport):
    """MCP transport using streamable HTTP (JSON or event-stream replies)."""

    accept = "application/json, text/event-stream"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._session_id: str | None = None

    @property
    def session_id(self) -> str | None:
        return self._session_id

    def _build_headers(self) -> dict[str, str]:
        headers = super()._build_headers()
        if self._session_id:
            headers[SESSION_HEADER] = self._session_id
        return headers

    async def send(self, message: dict[str, Any]) -> None:
        client = self._require_client()
        request = client.build_request("POST", self.url, json=message, headers=self._build_headers())
        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise MCPTransportError(f"HTTP request to {self.url} failed: {e}", original_error=e) from e

        try:
            self._check_status(response)
            session_id = response.headers.get(SESSION_HEADER)
            if session_id and session_id != self._session_id:
                logger.debug(f"[{self.server_id}] Session established: {session_id}")
                self._session_id = session_id

            if "text/event-stream" in response.headers.get("content-type", ""):
                await self._consume_event_stream(response)
            else:
                await response.aread()
                await self._handle_response(response)
        except httpx.HTTPError as e:
            raise MCPTransportError(f"Reading response from {self.url} failed: {e}", original_error=e) from e
        finally:
            await response.aclose()

    async def _consume_event_stream(self, response: httpx.Response) -> None:
        data_lines: list[str] = []
        async for line in response.aiter_lines():
            if not line:
                if data_lines:
                    await self._dispatch_event("\n".join(data_lines))
                    data_lines = []
                continue
            if line.startswith(":"):
                continue
            field, _, value = line.partition(":")
            if value.startswith(" "):
                value = value[1:]
            if field == "data":
                data_lines.append(value)

        if data_lines:
            await self._dispatch_event("\n".join(data_lines))

    async def _dispatch_event(self, data: str) -> None:
        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            raise MCPProtocolError(f"Malformed event data from {self.url}: {e}", original_error=e) from e
        await self._dispatch_payload(payload)

    async def close(self) -> None:
        if self._is_open and self._session_id and self._client is not None:
            try:
                await self._client.delete(self.url, headers=self._build_headers())
            except httpx.HTTPError as e:
                logger.debug(f"[{self.server_id}] Session termination failed: {e}")
        self._session_id = None
        await super().close()
