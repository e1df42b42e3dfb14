"""HTTP client for the pairing relay.

Three stateless calls, all JSON with base64 binary fields:
- GET  /v1/auth/request/status   (agent: is the request pending?)
- POST /v1/auth/response         (agent: submit approval, bearer auth)
- POST /v1/auth/account/request  (client: has approval arrived?)

Every failure (network, timeout, bad URL, non-2xx status, malformed body)
surfaces as TransportError. No retries are made here.
"""

import base64
import logging
from typing import Any

import httpx

from pairlink.errors import TransportError
from pairlink.pairing.keys import encode_public_key
from pairlink.pairing.status import AccountRequestState, RequestStatus

logger = logging.getLogger(__name__)

__all__ = [
    "RelayClient",
    "TransportError",
]

STATUS_PATH = "/v1/auth/request/status"
RESPONSE_PATH = "/v1/auth/response"
ACCOUNT_REQUEST_PATH = "/v1/auth/account/request"


class RelayClient:
    """Client for the relay's pairing endpoints.

    Attributes:
        server_url: Relay base URL.
        http_client: httpx client (injected, or created on context entry).
        timeout: Per-request timeout in seconds for owned clients.
    """

    def __init__(
        self,
        server_url: str,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        """Initialize relay client.

        Args:
            server_url: Relay base URL.
            http_client: Optional httpx client (for DI).
            timeout: Request timeout for the client created on entry.
        """
        self.server_url = server_url.rstrip("/")
        self.http_client = http_client
        self.timeout = timeout
        self._owns_client = False

    async def __aenter__(self) -> "RelayClient":
        """Enter async context, creating http client if needed."""
        if self.http_client is None:
            self.http_client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context, closing http client if we own it."""
        if self._owns_client and self.http_client:
            await self.http_client.aclose()
            self.http_client = None
            self._owns_client = False

    def _client(self) -> httpx.AsyncClient:
        if self.http_client is None:
            raise TransportError("HTTP client not initialized")
        return self.http_client

    @staticmethod
    def _check(response: httpx.Response, what: str) -> None:
        if not response.is_success:
            raise TransportError(
                f"{what} returned {response.status_code}",
                status_code=response.status_code,
            )

    @staticmethod
    def _json(response: httpx.Response, what: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"{what} returned malformed JSON: {e}") from e

    async def get_request_status(self, public_key: bytes) -> RequestStatus:
        """Look up the pairing request for a public key. No auth.

        Args:
            public_key: Client's ephemeral public key.

        Returns:
            Parsed status.

        Raises:
            TransportError: On any request failure.
        """
        client = self._client()
        try:
            response = await client.get(
                f"{self.server_url}{STATUS_PATH}",
                params={"publicKey": encode_public_key(public_key)},
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"Status check failed: {e}") from e

        self._check(response, "Status check")
        return RequestStatus.from_json(self._json(response, "Status check"))

    async def post_auth_response(
        self, token: str, public_key: bytes, response: bytes
    ) -> None:
        """Submit an encrypted approval.

        Args:
            token: Agent's bearer token.
            public_key: Client's ephemeral public key.
            response: Encrypted approval payload.

        Raises:
            TransportError: On any request failure.
        """
        client = self._client()
        body = {
            "publicKey": encode_public_key(public_key),
            "response": base64.b64encode(response).decode("ascii"),
        }
        try:
            result = await client.post(
                f"{self.server_url}{RESPONSE_PATH}",
                json=body,
                headers={"Authorization": f"Bearer {token}"},
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"Approval failed: {e}") from e

        self._check(result, "Approval")

    async def post_account_request(self, public_key: bytes) -> AccountRequestState:
        """Ask whether the pairing request has been approved. No auth.

        Args:
            public_key: Client's ephemeral public key.

        Returns:
            Parsed request state.

        Raises:
            TransportError: On any request failure.
        """
        client = self._client()
        try:
            response = await client.post(
                f"{self.server_url}{ACCOUNT_REQUEST_PATH}",
                json={"publicKey": encode_public_key(public_key)},
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"Poll failed: {e}") from e

        self._check(response, "Poll")
        return AccountRequestState.from_json(self._json(response, "Poll"))
