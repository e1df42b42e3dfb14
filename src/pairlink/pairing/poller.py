"""Client-side wait for pairing approval.

State machine:

    POLLING --cancel requested--------------> DONE(CANCELLED)
    POLLING --relay error-------------------> DONE(FAILED)
    POLLING --authorized, decrypt fails-----> DONE(FAILED)
    POLLING --authorized, decrypt ok--------> DONE(AUTHORIZED)
    POLLING --any other state---------------> progress, sleep, POLLING

Cancellation is cooperative and checked at the top of each iteration.
Failures are terminal: the caller restarts pairing with a fresh key pair
instead of retrying.
"""

import asyncio
import base64
import binascii
import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Awaitable, Callable, Optional, Protocol

from pairlink.config import Config
from pairlink.crypto.box import decrypt_box
from pairlink.errors import CryptoError, PairlinkError, TransportError
from pairlink.pairing.keys import KeyPair
from pairlink.pairing.payload import extract_secret, is_v0
from pairlink.pairing.status import AccountRequestState, AuthCredentials
from pairlink.pairing.transport import RelayClient
from pairlink.server_config import ServerConfigStore, resolve_server_url

logger = logging.getLogger(__name__)


class PollTransport(Protocol):
    """Relay call used by the poller."""

    async def post_account_request(self, public_key: bytes) -> AccountRequestState:
        ...


class PollState(Enum):
    """Poller states."""

    POLLING = auto()
    DONE = auto()


class PollOutcome(Enum):
    """Terminal outcomes of a pairing attempt."""

    AUTHORIZED = auto()
    CANCELLED = auto()
    FAILED = auto()


@dataclass(frozen=True)
class PollResult:
    """Result of PairingPoller.run().

    Attributes:
        outcome: How the attempt ended.
        credentials: Set only for AUTHORIZED.
        error: The transport or crypto error for FAILED.
    """

    outcome: PollOutcome
    credentials: Optional[AuthCredentials] = None
    error: Optional[PairlinkError] = None

    @property
    def ok(self) -> bool:
        return self.outcome == PollOutcome.AUTHORIZED


class PairingPoller:
    """Poll the relay until the pairing request is approved.

    Each instance owns its key pair and loop state; independent pollers
    can run concurrently.
    """

    def __init__(
        self,
        transport: PollTransport,
        keypair: KeyPair,
        on_progress: Optional[Callable[[int], None]] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
        interval: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        decrypt: Callable[[bytes, bytes], Optional[bytes]] = decrypt_box,
    ):
        """Initialize poller.

        Args:
            transport: Relay client.
            keypair: This attempt's ephemeral key pair.
            on_progress: Called once per non-terminal iteration with the
                tick (0, 1, 2, ...).
            should_cancel: Checked before every request.
            interval: Seconds between polls.
            sleep: Awaitable sleep, injectable for tests.
            decrypt: Box decryption returning None on failure.
        """
        self.transport = transport
        self.keypair = keypair
        self.on_progress = on_progress
        self.should_cancel = should_cancel
        self.interval = interval
        self._sleep = sleep
        self._decrypt = decrypt

        self.state = PollState.POLLING
        self.tick = 0

    def _finish(self, result: PollResult) -> PollResult:
        self.state = PollState.DONE
        return result

    def _cancel_requested(self) -> bool:
        return self.should_cancel is not None and self.should_cancel()

    def _open(self, reply: AccountRequestState) -> AuthCredentials:
        """Decrypt an authorized reply into credentials.

        Raises:
            CryptoError: If the response is not base64, fails
                authentication, or decrypts to an empty payload.
        """
        try:
            ciphertext = base64.b64decode(reply.response or "", validate=True)
        except binascii.Error as e:
            raise CryptoError(f"Response is not valid base64: {e}") from e

        decrypted = self._decrypt(ciphertext, self.keypair.secret_key)
        if decrypted is None:
            raise CryptoError("Failed to decrypt approval")

        secret = extract_secret(decrypted)
        layout = "version 0" if is_v0(decrypted) else "legacy"
        logger.debug(f"Approval payload layout: {layout}")
        return AuthCredentials(secret=secret, token=reply.token or "")

    async def step(self) -> Optional[PollResult]:
        """Run one iteration up to, but not including, progress and sleep.

        Returns:
            Terminal result, or None to keep polling.
        """
        if self._cancel_requested():
            logger.info("Pairing cancelled")
            return self._finish(PollResult(PollOutcome.CANCELLED))

        try:
            reply = await self.transport.post_account_request(self.keypair.public_key)
        except TransportError as e:
            logger.warning(f"Failed to check pairing status: {e}")
            return self._finish(PollResult(PollOutcome.FAILED, error=e))

        if not reply.authorized:
            return None

        try:
            credentials = self._open(reply)
        except CryptoError as e:
            logger.warning(f"Pairing approval rejected: {e}")
            return self._finish(PollResult(PollOutcome.FAILED, error=e))

        logger.info("Pairing approved")
        return self._finish(
            PollResult(PollOutcome.AUTHORIZED, credentials=credentials)
        )

    async def run(self) -> PollResult:
        """Poll until approved, cancelled, or failed.

        There is no attempt limit; bound the wait with should_cancel.
        """
        while self.state == PollState.POLLING:
            result = await self.step()
            if result is not None:
                return result

            if self.on_progress is not None:
                self.on_progress(self.tick)
            self.tick += 1

            await self._sleep(self.interval)

        raise RuntimeError("Poller already finished")

    async def wait_for_credentials(self) -> Optional[AuthCredentials]:
        """Run and return credentials, or None if cancelled or failed."""
        result = await self.run()
        return result.credentials


async def wait_for_pairing(
    keypair: KeyPair,
    on_progress: Optional[Callable[[int], None]] = None,
    should_cancel: Optional[Callable[[], bool]] = None,
    server_url: Optional[str] = None,
    config: Optional[Config] = None,
) -> PollResult:
    """Wait for approval against the resolved relay.

    Args:
        keypair: This attempt's ephemeral key pair.
        on_progress: Progress callback.
        should_cancel: Cancellation predicate.
        server_url: Relay URL for this call only.
        config: Configuration; defaults apply when None.

    Returns:
        Poll result.
    """
    config = config or Config()
    url = resolve_server_url(
        explicit=server_url,
        store=ServerConfigStore(config.override_path()),
        configured=config.server_url,
    )
    logger.debug(f"Waiting for pairing approval via {url}")
    async with RelayClient(url, timeout=config.request_timeout) as relay:
        poller = PairingPoller(
            relay,
            keypair,
            on_progress=on_progress,
            should_cancel=should_cancel,
            interval=config.poll_interval,
        )
        return await poller.run()
