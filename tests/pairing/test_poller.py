"""Tests for the client-side approval poller."""

import base64
from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest

from pairlink.config import Config
from pairlink.crypto.box import encrypt_box
from pairlink.errors import CryptoError, TransportError
from pairlink.pairing.keys import generate_keypair
from pairlink.pairing.poller import (
    PairingPoller,
    PollOutcome,
    PollState,
    wait_for_pairing,
)
from pairlink.pairing.status import AccountRequestState
from pairlink.pairing.transport import RelayClient


@pytest.fixture
def keypair():
    return generate_keypair()


def pending(state="requested"):
    return AccountRequestState(state=state)


def authorized(bundle: bytes, token: str = "bearer-token"):
    return AccountRequestState(
        state="authorized",
        token=token,
        response=base64.b64encode(bundle).decode(),
    )


def make_poller(transport, keypair, **kwargs):
    kwargs.setdefault("sleep", AsyncMock())
    return PairingPoller(transport, keypair, **kwargs)


class TestPayloadExtraction:
    """Version 0 extraction and legacy fallback through the poller."""

    @pytest.mark.asyncio
    async def test_version_0_payload(self, keypair):
        seed = bytes(range(1, 33))
        transport = AsyncMock()
        transport.post_account_request.return_value = authorized(
            encrypt_box(b"\x00" + seed, keypair.public_key)
        )

        result = await make_poller(transport, keypair).run()

        assert result.outcome == PollOutcome.AUTHORIZED
        assert result.ok
        assert result.credentials.secret == seed
        assert result.credentials.token == "bearer-token"

    @pytest.mark.asyncio
    async def test_version_0_trailing_bytes_ignored(self, keypair):
        seed = bytes(range(1, 33))
        transport = AsyncMock()
        transport.post_account_request.return_value = authorized(
            encrypt_box(b"\x00" + seed + b"extra-data", keypair.public_key)
        )

        credentials = await make_poller(transport, keypair).wait_for_credentials()

        assert credentials.secret == seed

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            b"\x01" + bytes(32),
            b"\x00" + bytes(31),
            b"\x00",
            bytes(range(200, 232)),
        ],
        ids=["nonzero_tag", "short_zero_tag", "single_zero", "legacy_secret"],
    )
    async def test_legacy_payload(self, keypair, payload):
        """Whole payload is the secret when not version 0."""
        transport = AsyncMock()
        transport.post_account_request.return_value = authorized(
            encrypt_box(payload, keypair.public_key)
        )

        credentials = await make_poller(transport, keypair).wait_for_credentials()

        assert credentials.secret == payload

    @pytest.mark.asyncio
    async def test_injected_decrypt_receives_secret_key(self, keypair):
        """The configured decrypt is called with ciphertext and secret key."""
        transport = AsyncMock()
        transport.post_account_request.return_value = authorized(b"ciphertext")
        decrypt = Mock(return_value=b"\x00" + b"s" * 32)

        result = await make_poller(transport, keypair, decrypt=decrypt).run()

        decrypt.assert_called_once_with(b"ciphertext", keypair.secret_key)
        assert result.credentials.secret == b"s" * 32


class TestDecryptionFailure:
    """Decryption failures end the attempt without further calls."""

    @pytest.mark.asyncio
    async def test_wrong_key(self, keypair):
        other = generate_keypair()
        transport = AsyncMock()
        transport.post_account_request.return_value = authorized(
            encrypt_box(b"\x00" + bytes(32), other.public_key)
        )
        sleep = AsyncMock()

        result = await make_poller(transport, keypair, sleep=sleep).run()

        assert result.outcome == PollOutcome.FAILED
        assert result.credentials is None
        assert isinstance(result.error, CryptoError)
        assert transport.post_account_request.await_count == 1
        sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_decrypt_returns_none(self, keypair):
        transport = AsyncMock()
        transport.post_account_request.return_value = authorized(b"anything")

        poller = make_poller(transport, keypair, decrypt=Mock(return_value=None))
        credentials = await poller.wait_for_credentials()

        assert credentials is None
        assert poller.state == PollState.DONE
        assert transport.post_account_request.await_count == 1

    @pytest.mark.asyncio
    async def test_empty_plaintext(self, keypair):
        transport = AsyncMock()
        transport.post_account_request.return_value = authorized(b"x")

        result = await make_poller(
            transport, keypair, decrypt=Mock(return_value=b"")
        ).run()

        assert result.outcome == PollOutcome.FAILED
        assert isinstance(result.error, CryptoError)

    @pytest.mark.asyncio
    async def test_response_not_base64(self, keypair):
        transport = AsyncMock()
        transport.post_account_request.return_value = AccountRequestState(
            state="authorized", token="t", response="***"
        )

        result = await make_poller(transport, keypair).run()

        assert result.outcome == PollOutcome.FAILED
        assert isinstance(result.error, CryptoError)


class TestCancellation:
    """Cooperative cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_before_first_call(self, keypair):
        transport = AsyncMock()
        on_progress = Mock()

        result = await make_poller(
            transport, keypair, should_cancel=lambda: True, on_progress=on_progress
        ).run()

        assert result.outcome == PollOutcome.CANCELLED
        assert result.credentials is None
        assert result.error is None
        transport.post_account_request.assert_not_called()
        on_progress.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancel_after_iterations(self, keypair):
        """Cancellation is honoured at the top of the next iteration."""
        transport = AsyncMock()
        transport.post_account_request.return_value = pending()
        checks = iter([False, False, False, True])

        result = await make_poller(
            transport, keypair, should_cancel=lambda: next(checks)
        ).run()

        assert result.outcome == PollOutcome.CANCELLED
        assert transport.post_account_request.await_count == 3

    @pytest.mark.asyncio
    async def test_cancel_distinct_from_failure(self, keypair):
        """Cancelled results carry no error; failed results do."""
        transport = AsyncMock()
        transport.post_account_request.side_effect = TransportError("boom")

        failed = await make_poller(transport, keypair).run()
        cancelled = await make_poller(
            transport, keypair, should_cancel=lambda: True
        ).run()

        assert failed.outcome == PollOutcome.FAILED
        assert failed.error is not None
        assert cancelled.outcome == PollOutcome.CANCELLED
        assert cancelled.error is None


class TestTransportFailure:
    """Transport failures are terminal."""

    @pytest.mark.asyncio
    async def test_first_call_fails(self, keypair):
        transport = AsyncMock()
        transport.post_account_request.side_effect = TransportError("Poll returned 500")
        sleep = AsyncMock()

        result = await make_poller(transport, keypair, sleep=sleep).run()

        assert result.outcome == PollOutcome.FAILED
        assert isinstance(result.error, TransportError)
        assert transport.post_account_request.await_count == 1
        sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_unparseable_relay_url_fails(self, keypair):
        """A bad relay URL ends the attempt instead of raising."""
        handler = httpx.MockTransport(lambda r: httpx.Response(200, json={}))
        async with httpx.AsyncClient(transport=handler) as http:
            relay = RelayClient("http://[::1", http_client=http)
            result = await make_poller(relay, keypair).run()

        assert result.outcome == PollOutcome.FAILED
        assert isinstance(result.error, TransportError)

    @pytest.mark.asyncio
    async def test_redirect_fails(self, keypair):
        handler = httpx.MockTransport(
            lambda r: httpx.Response(307, json={"state": "requested"})
        )
        async with httpx.AsyncClient(transport=handler) as http:
            relay = RelayClient("https://relay.test", http_client=http)
            result = await make_poller(relay, keypair).run()

        assert result.outcome == PollOutcome.FAILED
        assert result.error.status_code == 307

    @pytest.mark.asyncio
    async def test_failure_after_pending_not_retried(self, keypair):
        transport = AsyncMock()
        transport.post_account_request.side_effect = [
            pending(),
            TransportError("connection reset"),
            pending(),
        ]

        credentials = await make_poller(transport, keypair).wait_for_credentials()

        assert credentials is None
        assert transport.post_account_request.await_count == 2


class TestPolling:
    """Non-terminal iterations."""

    @pytest.mark.asyncio
    async def test_progress_ticks(self, keypair):
        """N pending iterations give N progress calls with ticks 0..N-1."""
        seed = b"q" * 32
        transport = AsyncMock()
        transport.post_account_request.side_effect = [pending()] * 5 + [
            authorized(encrypt_box(b"\x00" + seed, keypair.public_key))
        ]
        ticks = []

        result = await make_poller(transport, keypair, on_progress=ticks.append).run()

        assert result.ok
        assert ticks == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_sleeps_interval_between_polls(self, keypair):
        transport = AsyncMock()
        transport.post_account_request.side_effect = [
            pending(),
            pending(),
            authorized(encrypt_box(b"legacy", keypair.public_key)),
        ]
        sleep = AsyncMock()

        await make_poller(transport, keypair, sleep=sleep, interval=1.0).run()

        assert sleep.await_count == 2
        sleep.assert_awaited_with(1.0)

    @pytest.mark.asyncio
    async def test_unknown_state_keeps_polling(self, keypair):
        transport = AsyncMock()
        transport.post_account_request.side_effect = [
            pending("something-new"),
            pending(""),
            authorized(encrypt_box(b"legacy", keypair.public_key)),
        ]

        result = await make_poller(transport, keypair).run()

        assert result.ok
        assert transport.post_account_request.await_count == 3

    @pytest.mark.asyncio
    async def test_polls_with_own_public_key(self, keypair):
        transport = AsyncMock()
        transport.post_account_request.return_value = authorized(
            encrypt_box(b"legacy", keypair.public_key)
        )

        await make_poller(transport, keypair).run()

        transport.post_account_request.assert_awaited_once_with(keypair.public_key)

    @pytest.mark.asyncio
    async def test_run_after_done_raises(self, keypair):
        transport = AsyncMock()
        poller = make_poller(transport, keypair, should_cancel=lambda: True)
        await poller.run()

        with pytest.raises(RuntimeError, match="already finished"):
            await poller.run()

    @pytest.mark.asyncio
    async def test_step_returns_none_while_pending(self, keypair):
        transport = AsyncMock()
        transport.post_account_request.return_value = pending()
        poller = make_poller(transport, keypair)

        assert await poller.step() is None
        assert poller.state == PollState.POLLING


class TestLogging:
    """Cancellation and failure are logged differently."""

    @pytest.mark.asyncio
    async def test_cancel_logged_at_info(self, keypair, caplog):
        with caplog.at_level("DEBUG", logger="pairlink"):
            await make_poller(AsyncMock(), keypair, should_cancel=lambda: True).run()

        records = [r for r in caplog.records if "cancelled" in r.getMessage()]
        assert records and all(r.levelname == "INFO" for r in records)

    @pytest.mark.asyncio
    async def test_failure_logged_at_warning(self, keypair, caplog):
        transport = AsyncMock()
        transport.post_account_request.side_effect = TransportError("down")

        with caplog.at_level("DEBUG", logger="pairlink"):
            await make_poller(transport, keypair).run()

        assert any(r.levelname == "WARNING" for r in caplog.records)
        assert not any("cancelled" in r.getMessage() for r in caplog.records)


class TestWaitForPairing:
    """Tests for the convenience entry point."""

    @pytest.mark.asyncio
    async def test_uses_config_interval_and_server(self, keypair, tmp_path):
        config = Config(
            server_url="https://configured.example.com",
            server_override_file=str(tmp_path / "server.json"),
            poll_interval=0.25,
        )

        with patch("pairlink.pairing.poller.RelayClient") as relay_class, patch(
            "pairlink.pairing.poller.PairingPoller"
        ) as poller_class:
            poller_class.return_value.run = AsyncMock(return_value="result")

            result = await wait_for_pairing(
                keypair,
                server_url="https://explicit.example.com",
                config=config,
            )

        assert result == "result"
        relay_class.assert_called_once_with(
            "https://explicit.example.com", timeout=config.request_timeout
        )
        assert poller_class.call_args.kwargs["interval"] == 0.25
