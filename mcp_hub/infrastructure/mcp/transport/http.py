"""
HTTP transport for MCP.

Posts each JSON-RPC message to a single endpoint and dispatches the
response body (one message or a batch) to the message handlers.
"""

import logging
from typing import TYPE_CHECKING, Any

import httpx

from mcp_hub.domain.model.mcp.server import ServerDefinition
from mcp_hub.infrastructure.mcp.transport.base import (
    BaseTransport,
    MCPProtocolError,
    MCPTransportClosedError,
    MCPTransportError,
)

if TYPE_CHECKING:
    from mcp_hub.configuration.config import Settings

logger = logging.getLogger(__name__)


class HTTPTransport(BaseTransport):
    """
    MCP transport using HTTP request/response.

    Only the connect phase is time limited; a tool call may take as long
    as the server needs.
    """

    accept = "application/json"

    def __init__(
        self,
        server: ServerDefinition,
        connect_timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize HTTP transport.

        Args:
            server: Server definition with ``url`` and optional credentials.
            connect_timeout: Connect timeout in seconds.
            client: Pre-built client; the transport will not close it.
        """
        super().__init__(server)
        self._connect_timeout = connect_timeout
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_settings(cls, server: ServerDefinition, settings: "Settings") -> "HTTPTransport":
        return cls(server, connect_timeout=settings.mcp_http_connect_timeout)

    @property
    def url(self) -> str:
        return self._server.url or ""

    def _build_headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": self.accept,
        }
        headers.update(self._server.headers or {})
        if self._server.api_key:
            headers["Authorization"] = f"Bearer {self._server.api_key}"
        return headers

    async def start(self) -> None:
        if self._is_open:
            return
        if not self._server.url:
            raise MCPTransportError(f"MCP server '{self.server_id}' has no URL")

        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(None, connect=self._connect_timeout))
            self._owns_client = True

        self._is_open = True
        self._close_notified = False

        key_hint = f" (api key {self._server.api_key[:8]}...)" if self._server.api_key else ""
        logger.info(f"[{self.server_id}] HTTP transport ready for {self.url}{key_hint}")

    def _require_client(self) -> httpx.AsyncClient:
        if not self._is_open or self._client is None:
            raise MCPTransportClosedError(f"MCP server '{self.server_id}' transport is not open")
        return self._client

    async def send(self, message: dict[str, Any]) -> None:
        client = self._require_client()
        logger.debug(f"[{self.server_id}] POST {message.get('method', 'response')} (id={message.get('id')})")
        try:
            response = await client.post(self.url, json=message, headers=self._build_headers())
        except httpx.HTTPError as e:
            raise MCPTransportError(f"HTTP request to {self.url} failed: {e}", original_error=e) from e
        await self._handle_response(response)

    def _check_status(self, response: httpx.Response) -> None:
        if not response.is_success:
            raise MCPTransportError(f"HTTP {response.status_code} from {self.url}: {response.reason_phrase}")

    async def _handle_response(self, response: httpx.Response) -> None:
        self._check_status(response)
        if response.status_code in (202, 204) or not response.content.strip():
            return
        try:
            payload = response.json()
        except ValueError as e:
            raise MCPProtocolError(f"Malformed JSON response from {self.url}: {e}", original_error=e) from e
        await self._dispatch_payload(payload)

    async def _dispatch_payload(self, payload: Any) -> None:
        messages = payload if isinstance(payload, list) else [payload]
        for message in messages:
            if not isinstance(message, dict):
                raise MCPProtocolError(f"Unexpected JSON-RPC payload from {self.url}: {message!r}")
            await self._notify_message(message)

    async def close(self) -> None:
        if not self._is_open:
            return
        self._is_open = False

        if self._owns_client and self._client is not None:
            client, self._client = self._client, None
            await client.aclose()

        logger.info(f"[{self.server_id}] HTTP transport closed")
        await self._notify_close()
