"""Agent-side approval of a pairing request.

One status check, then at most one approval POST, and only while the
request is pending. Transport errors propagate to the caller.
"""

import logging
from enum import Enum
from typing import Protocol

from pairlink.config import Config
from pairlink.pairing.status import PairingStatus, RequestStatus
from pairlink.pairing.transport import RelayClient
from pairlink.server_config import ServerConfigStore, resolve_server_url

logger = logging.getLogger(__name__)


class ApprovalTransport(Protocol):
    """Relay calls used by the approver."""

    async def get_request_status(self, public_key: bytes) -> RequestStatus:
        ...

    async def post_auth_response(
        self, token: str, public_key: bytes, response: bytes
    ) -> None:
        ...


class ApprovalOutcome(Enum):
    """What approve() did."""

    APPROVED = "approved"
    ALREADY_AUTHORIZED = "already_authorized"
    NOT_FOUND = "not_found"
    SKIPPED = "skipped"  # relay reported a status we don't know


class PairingApprover:
    """Approve a controlling client's pairing request."""

    def __init__(self, transport: ApprovalTransport):
        """Initialize approver.

        Args:
            transport: Relay client.
        """
        self.transport = transport

    async def approve(
        self,
        token: str,
        public_key: bytes,
        answer_v1: bytes,
        answer_v2: bytes,
    ) -> ApprovalOutcome:
        """Approve the request for public_key if it is pending.

        Args:
            token: Agent's bearer token.
            public_key: Client's ephemeral public key.
            answer_v1: Approval encrypted in the legacy format.
            answer_v2: Approval encrypted in the version 0 format.

        Returns:
            The outcome. Only APPROVED performed a write.

        Raises:
            TransportError: If either relay call fails.
        """
        request = await self.transport.get_request_status(public_key)

        if request.status == PairingStatus.NOT_FOUND:
            logger.info("Pairing request not found or already consumed")
            return ApprovalOutcome.NOT_FOUND

        if request.status == PairingStatus.AUTHORIZED:
            logger.info("Pairing request already authorized")
            return ApprovalOutcome.ALREADY_AUTHORIZED

        if request.status != PairingStatus.PENDING:
            logger.warning("Relay returned an unrecognized pairing status")
            return ApprovalOutcome.SKIPPED

        answer = answer_v2 if request.supports_v2 else answer_v1
        await self.transport.post_auth_response(token, public_key, answer)
        logger.info(
            f"Pairing request approved ({'v2' if request.supports_v2 else 'v1'})"
        )
        return ApprovalOutcome.APPROVED


async def approve_pairing(
    token: str,
    public_key: bytes,
    answer_v1: bytes,
    answer_v2: bytes,
    server_url: str | None = None,
    config: Config | None = None,
) -> ApprovalOutcome:
    """Approve a pairing request against the resolved relay.

    Args:
        token: Agent's bearer token.
        public_key: Client's ephemeral public key.
        answer_v1: Legacy-format encrypted approval.
        answer_v2: Version 0 encrypted approval.
        server_url: Relay URL for this call only (self-hosted relays).
        config: Configuration; defaults apply when None.

    Returns:
        Approval outcome.

    Raises:
        TransportError: If a relay call fails.
    """
    config = config or Config()
    url = resolve_server_url(
        explicit=server_url,
        store=ServerConfigStore(config.override_path()),
        configured=config.server_url,
    )
    async with RelayClient(url, timeout=config.request_timeout) as relay:
        return await PairingApprover(relay).approve(
            token, public_key, answer_v1, answer_v2
        )
